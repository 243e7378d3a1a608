import pytest

from gemini_core.prompts import PromptNotFoundError, PromptSource, load_prompt


def test_bundled_template_renders():
    prompt = load_prompt("line_item_analysis", {"context": "Vendor: X", "vendor_name": "X"})
    assert "Vendor: X" in prompt
    assert '"isHomeImprovement": true/false' in prompt
    assert "{{" not in prompt


def test_missing_parameter_raises_key_error():
    with pytest.raises(KeyError):
        load_prompt("line_item_analysis", {"context": "only context"})


def test_unknown_template(tmp_path):
    source = PromptSource(root=tmp_path)
    with pytest.raises(PromptNotFoundError):
        source.get_prompt("nope", {})


def test_custom_root_and_locale(tmp_path):
    (tmp_path / "nl").mkdir()
    (tmp_path / "nl" / "greeting.md").write_text("Hallo {{ name }}, {\"a\": 1}", encoding="utf-8")
    source = PromptSource(root=tmp_path, locale="nl")
    assert source.get_prompt("greeting", {"name": "Jan"}) == 'Hallo Jan, {"a": 1}'
