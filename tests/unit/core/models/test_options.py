import pytest
from pydantic import ValidationError

from realtime_voice.core.constants import DEFAULT_SESSION_ID
from realtime_voice.core.models import (
    ConversationMessage,
    ConversationOptions,
    InvalidSessionIdError,
    MessageRole,
    SpeechSegment,
    TextToSpeechOptions,
    VadOptions,
    validate_session_id,
)


class TestSessionIdValidation:

    @pytest.mark.parametrize("session_id", ["s1", "user-42", "A_b-C", DEFAULT_SESSION_ID, "x" * 256])
    def test_valid_ids(self, session_id):
        assert validate_session_id(session_id) == session_id

    @pytest.mark.parametrize("session_id", ["", "x" * 257, "has space", "semi;colon", "ünïcode", "s1\n", "\ns1", "s1\r\n", None, 42])
    def test_invalid_ids(self, session_id):
        with pytest.raises(InvalidSessionIdError):
            validate_session_id(session_id)

    def test_options_reject_invalid_session_id(self):
        with pytest.raises(InvalidSessionIdError) as exc_info:
            ConversationOptions(session_id="../etc/passwd")
        assert exc_info.value.details["config_key"] == "session_id"

    def test_long_id_is_truncated_in_message(self):
        with pytest.raises(InvalidSessionIdError) as exc_info:
            validate_session_id("!" * 300)
        assert "..." in str(exc_info.value)


class TestConversationOptions:

    def test_defaults(self):
        options = ConversationOptions()
        assert options.session_id is None
        assert options.enable_audio_response is True
        assert options.enable_barge_in is True
        assert options.enable_partial_transcripts is False
        assert options.max_conversation_history == 20

    def test_negative_history_rejected(self):
        with pytest.raises(ValidationError):
            ConversationOptions(max_conversation_history=-1)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            ConversationOptions(sesion_id="typo")


class TestVadOptions:

    def test_sample_counts(self):
        options = VadOptions(min_speech_duration_ms=250, min_silence_duration_ms=100, sample_rate=16000)
        assert options.min_speech_samples() == 4000
        assert options.min_silence_samples() == 1600

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            VadOptions(speech_threshold=1.5)

    def test_clone_is_independent(self):
        options = VadOptions(additional_properties={"a": 1})
        copy = options.clone()
        copy.additional_properties["a"] = 2
        assert options.additional_properties == {"a": 1}


class TestTextToSpeechOptions:

    def test_speed_must_be_positive(self):
        with pytest.raises(ValidationError):
            TextToSpeechOptions(speed=0)

    def test_clone(self):
        options = TextToSpeechOptions(voice_id="en-US-GuyNeural", speed=1.2)
        assert options.clone() == options
        assert options.clone() is not options


class TestMessagesAndSegments:

    def test_message_factories(self):
        assert ConversationMessage.system("s").role == MessageRole.SYSTEM
        assert ConversationMessage.system("s").is_system
        assert ConversationMessage.user("u").role == MessageRole.USER
        assert not ConversationMessage.assistant("a").is_system

    def test_segment_duration_and_immutability(self):
        segment = SpeechSegment(audio_data=b"\x00\x00", start_time=1.0, end_time=1.5, confidence=0.8)
        assert segment.duration == pytest.approx(0.5)
        with pytest.raises(ValidationError):
            segment.start_time = 2.0
