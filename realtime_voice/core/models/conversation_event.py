"""对话事件模型

converse() 输出的事件流是一个以 kind 为判别字段的联合类型，
每个变体只携带与其类型相关的字段。
"""

import time
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from realtime_voice.core.models.audio_data import AudioData, SpeechSegment


class ConversationEventKind(str, Enum):
    """对话事件类型"""

    SPEECH_DETECTED = "speech_detected"
    TRANSCRIPTION_PARTIAL = "transcription_partial"
    TRANSCRIPTION_COMPLETE = "transcription_complete"
    RESPONSE_STARTED = "response_started"
    RESPONSE_TEXT_CHUNK = "response_text_chunk"
    RESPONSE_AUDIO_CHUNK = "response_audio_chunk"
    RESPONSE_COMPLETE = "response_complete"
    INTERRUPTED = "interrupted"
    ERROR = "error"


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: Optional[str] = None
    timestamp: float = Field(default_factory=time.time)


class SpeechDetectedEvent(_EventBase):
    kind: Literal["speech_detected"] = "speech_detected"
    segment: SpeechSegment


class TranscriptionPartialEvent(_EventBase):
    kind: Literal["transcription_partial"] = "transcription_partial"
    text: str


class TranscriptionCompleteEvent(_EventBase):
    kind: Literal["transcription_complete"] = "transcription_complete"
    text: str


class ResponseStartedEvent(_EventBase):
    kind: Literal["response_started"] = "response_started"


class ResponseTextChunkEvent(_EventBase):
    kind: Literal["response_text_chunk"] = "response_text_chunk"
    text: str


class ResponseAudioChunkEvent(_EventBase):
    kind: Literal["response_audio_chunk"] = "response_audio_chunk"
    audio: AudioData


class ResponseCompleteEvent(_EventBase):
    kind: Literal["response_complete"] = "response_complete"
    text: str


class InterruptedEvent(_EventBase):
    kind: Literal["interrupted"] = "interrupted"
    reason: str = "barge_in"


class ErrorEvent(_EventBase):
    kind: Literal["error"] = "error"
    message: str
    error_code: Optional[str] = None
    stage: Optional[str] = None


ConversationEvent = Annotated[
    Union[
        SpeechDetectedEvent,
        TranscriptionPartialEvent,
        TranscriptionCompleteEvent,
        ResponseStartedEvent,
        ResponseTextChunkEvent,
        ResponseAudioChunkEvent,
        ResponseCompleteEvent,
        InterruptedEvent,
        ErrorEvent,
    ],
    Field(discriminator="kind"),
]

conversation_event_adapter: TypeAdapter[ConversationEvent] = TypeAdapter(ConversationEvent)


def parse_conversation_event(data: Dict[str, Any]) -> ConversationEvent:
    """根据 kind 字段解析为对应的事件变体

    Raises:
        pydantic.ValidationError: kind 未知或字段组合非法
    """
    return conversation_event_adapter.validate_python(data)
