import base64
from datetime import datetime, timezone

from gemini_core.domain.conversation import Conversation
from gemini_core.domain.models import (
    GenerationConfig,
    ImagePart,
    Message,
    PageImage,
    RequestEnvelope,
    TextPart,
)


def test_parts_payload():
    assert TextPart(content="hi").to_payload() == {"text": "hi"}
    assert ImagePart(mime_type="image/png", data="QUJD").to_payload() == {
        "inline_data": {"mime_type": "image/png", "data": "QUJD"}
    }


def test_message_parts_are_frozen_and_ordered():
    parts = [TextPart(content="a"), ImagePart(mime_type="image/png", data="x")]
    msg = Message(role="user", parts=parts)
    parts.append(TextPart(content="late"))
    assert len(msg.parts) == 2
    assert isinstance(msg.parts[0], TextPart)
    assert msg.to_payload() == {
        "role": "user",
        "parts": [{"text": "a"}, {"inline_data": {"mime_type": "image/png", "data": "x"}}],
    }
    assert msg.text == "a"


def test_envelope_payload_uses_fixed_generation_config():
    env = RequestEnvelope(contents=[Message(role="user", parts=[TextPart(content="q")])])
    payload = env.to_payload()
    assert payload["generationConfig"] == {
        "temperature": 0.2,
        "maxOutputTokens": 2048,
        "topP": 0.8,
        "topK": 40,
    }
    assert payload["contents"] == [{"role": "user", "parts": [{"text": "q"}]}]
    assert GenerationConfig() == env.generation_config


def test_page_image_from_bytes():
    img = PageImage.from_bytes(b"png-bytes", page_number=3)
    assert img.base64_encoded == base64.b64encode(b"png-bytes").decode("ascii")
    assert img.has_data
    assert not PageImage.from_bytes(b"", page_number=1).has_data


def test_conversation_add_and_clear_refresh_timestamp():
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    t1 = datetime(2024, 1, 1, 0, 5, tzinfo=timezone.utc)
    t2 = datetime(2024, 1, 1, 0, 9, tzinfo=timezone.utc)
    conv = Conversation(created_at=t0, last_updated_at=t0)
    conv_id = conv.id
    conv.add_message("user", [TextPart(content="x")], now=t1)
    assert conv.last_updated_at == t1
    assert conv.messages[0].created_at == t1
    conv.clear_messages(now=t2)
    assert conv.messages == []
    assert conv.last_updated_at == t2
    assert conv.id == conv_id
    assert conv.idle_minutes(t2) == 0
