import pytest
from pydantic import ValidationError

from realtime_voice.core.models import (
    AudioData,
    AudioFormat,
    ConversationEventKind,
    ErrorEvent,
    InterruptedEvent,
    ResponseAudioChunkEvent,
    ResponseTextChunkEvent,
    SpeechDetectedEvent,
    SpeechSegment,
    parse_conversation_event,
)


class TestConversationEvent:

    def test_kind_values_match_enum(self):
        assert ResponseTextChunkEvent(text="x").kind == ConversationEventKind.RESPONSE_TEXT_CHUNK.value
        assert InterruptedEvent().kind == ConversationEventKind.INTERRUPTED.value

    def test_parse_dispatches_on_kind(self):
        event = parse_conversation_event({"kind": "error", "message": "boom", "stage": "generation"})
        assert isinstance(event, ErrorEvent)
        assert event.stage == "generation"

        event = parse_conversation_event({"kind": "response_text_chunk", "text": "hi", "session_id": "s1"})
        assert isinstance(event, ResponseTextChunkEvent)
        assert event.session_id == "s1"

    def test_parse_nested_payloads(self):
        segment = SpeechSegment(audio_data=b"\x01\x00", start_time=0.0, end_time=0.1)
        dumped = SpeechDetectedEvent(segment=segment).model_dump()
        assert parse_conversation_event(dumped).segment == segment

        audio = AudioData(data=b"mp3", format=AudioFormat.MP3)
        dumped = ResponseAudioChunkEvent(audio=audio).model_dump()
        assert parse_conversation_event(dumped).audio.format == AudioFormat.MP3

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_conversation_event({"kind": "mystery"})

    def test_fields_of_other_variants_rejected(self):
        # 每个变体只携带自己的字段
        with pytest.raises(ValidationError):
            ResponseTextChunkEvent(text="hi", message="not here")
        with pytest.raises(ValidationError):
            parse_conversation_event({"kind": "response_started", "text": "hi"})

    def test_events_are_frozen(self):
        event = ResponseTextChunkEvent(text="hi")
        with pytest.raises(ValidationError):
            event.text = "changed"

    def test_media_type(self):
        assert AudioFormat.MP3.media_type == "audio/mpeg"
        assert AudioFormat.PCM.media_type == "audio/pcm"
