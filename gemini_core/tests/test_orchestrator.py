import json

import pytest
from pydantic import BaseModel

from gemini_core.agents.orchestrator import RequestOrchestrator
from gemini_core.domain.exceptions import ApiError, ResponseFormatError
from gemini_core.domain.models import ImagePart, PageImage, TextPart


class SettingsStub:
    gemini_model_id = "gemini-flash-2.0"
    gemini_location = "us-central1"
    gemini_project_id = "proj"
    conversation_timeout_minutes = 30
    max_history_messages = 10
    use_conversation_history = False
    history_append_policy = "before_send"
    image_workers = 4


class AfterSuccessSettings(SettingsStub):
    history_append_policy = "after_success"


class FakeTransport:
    """按顺序返回预设响应；元素为异常时直接抛出。"""

    name = "fake"

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def generate(self, envelope, model_id):
        self.calls.append((envelope, model_id))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class Ok(BaseModel):
    ok: bool


def gemini_body(text):
    return json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]})


def test_end_to_end_single_image_without_history():
    transport = FakeTransport(gemini_body('noise\r\n{"ok":true}'))
    orch = RequestOrchestrator(transport, cfg=SettingsStub())
    image = PageImage.from_bytes(b"\x89PNG fake page", page_number=1)

    text = orch.send("Categorize this purchase", images=[image], use_history=False)

    assert text == '{"ok":true}'
    envelope, model_id = transport.calls[0]
    assert model_id == "gemini-flash-2.0"
    assert not envelope.multi_turn
    assert len(envelope.contents) == 1
    parts = envelope.contents[0].parts
    assert parts[0] == TextPart(content="Categorize this purchase")
    assert parts[1] == ImagePart(mime_type="image/png", data=image.base64_encoded)
    assert orch.current_conversation().messages == []
    assert orch.decode_as(text, Ok).value == Ok(ok=True)


def test_history_enabled_sends_previous_turns():
    transport = FakeTransport(gemini_body("first answer"), gemini_body("second answer"))
    orch = RequestOrchestrator(transport, cfg=SettingsStub())

    assert orch.send("q1", use_history=True) == "first answer"
    assert orch.send("q2", use_history=True) == "second answer"

    first, _ = transport.calls[0]
    second, _ = transport.calls[1]
    assert not first.multi_turn
    assert second.multi_turn
    assert [(m.role, m.text) for m in second.contents] == [
        ("user", "q1"),
        ("model", "first answer"),
        ("user", "q2"),
    ]
    assert len(orch.current_conversation().messages) == 4


def test_model_turn_stored_before_sanitizing():
    transport = FakeTransport(gemini_body('see:\n{"ok": true}'))
    orch = RequestOrchestrator(transport, cfg=SettingsStub())
    assert orch.send("q", use_history=True) == '{"ok": true}'
    assert orch.current_conversation().messages[-1].text == 'see:\n{"ok": true}'


def test_use_history_defaults_from_settings():
    class HistoryOn(SettingsStub):
        use_conversation_history = True

    orch = RequestOrchestrator(FakeTransport(gemini_body("a")), cfg=HistoryOn())
    orch.send("q")
    assert len(orch.current_conversation().messages) == 2


def test_transport_failure_propagates_and_keeps_user_turn():
    orch = RequestOrchestrator(
        FakeTransport(ApiError(code="API_ERROR", message="boom", http_status=500)),
        cfg=SettingsStub(),
    )
    with pytest.raises(ApiError):
        orch.send("q", operation="LineItemAnalysis", use_history=True)
    assert [m.role for m in orch.current_conversation().messages] == ["user"]


def test_after_success_policy_leaves_history_untouched_on_failure():
    orch = RequestOrchestrator(
        FakeTransport(ApiError(code="API_ERROR", message="boom", http_status=500), gemini_body("ok")),
        cfg=AfterSuccessSettings(),
    )
    with pytest.raises(ApiError):
        orch.send("q", use_history=True)
    assert orch.current_conversation().messages == []

    orch.send("q", use_history=True)
    assert [m.role for m in orch.current_conversation().messages] == ["user", "model"]


def test_missing_candidate_text_is_a_format_error():
    orch = RequestOrchestrator(FakeTransport('{"candidates": []}'), cfg=SettingsStub())
    with pytest.raises(ResponseFormatError):
        orch.send("q", use_history=True)
    # 失败时不写入模型回复
    assert [m.role for m in orch.current_conversation().messages] == ["user"]


def test_conversation_management_delegates_to_store():
    orch = RequestOrchestrator(FakeTransport(gemini_body("a")), cfg=SettingsStub())
    default_id = orch.current_conversation().id
    new_id = orch.start_new_conversation({"invoice": "INV-9"})
    assert orch.current_conversation().metadata == {"invoice": "INV-9"}

    orch.converse("hello")
    assert len(orch.current_conversation().messages) == 2
    orch.clear_current_conversation()
    assert orch.current_conversation().messages == []

    assert orch.switch_conversation(default_id) is True
    assert orch.switch_conversation("missing") is False
    assert orch.current_conversation().id == default_id
    assert orch.store.get(new_id) is not None
