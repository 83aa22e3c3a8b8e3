from .audio_data import AudioData, AudioFormat, SpeechSegment
from .text_data import TextData
from .conversation import ConversationMessage, ConversationTurn, MessageRole
from .options import ConversationOptions, TextToSpeechOptions, VadOptions, validate_session_id
from .conversation_event import (
    ConversationEvent,
    ConversationEventKind,
    SpeechDetectedEvent,
    TranscriptionPartialEvent,
    TranscriptionCompleteEvent,
    ResponseStartedEvent,
    ResponseTextChunkEvent,
    ResponseAudioChunkEvent,
    ResponseCompleteEvent,
    InterruptedEvent,
    ErrorEvent,
    parse_conversation_event,
)
from .exceptions import (
    FrameworkException,
    ModuleInitializationError,
    ModuleProcessingError,
    PortUnavailableError,
    PipelineExecutionError,
    ComponentClosedError,
    ConfigurationError,
    InvalidSessionIdError,
)

__all__ = [
    "AudioData", "AudioFormat", "SpeechSegment",
    "TextData",
    "ConversationMessage", "ConversationTurn", "MessageRole",
    "ConversationOptions", "TextToSpeechOptions", "VadOptions", "validate_session_id",
    "ConversationEvent", "ConversationEventKind",
    "SpeechDetectedEvent", "TranscriptionPartialEvent", "TranscriptionCompleteEvent",
    "ResponseStartedEvent", "ResponseTextChunkEvent", "ResponseAudioChunkEvent",
    "ResponseCompleteEvent", "InterruptedEvent", "ErrorEvent",
    "parse_conversation_event",
    "FrameworkException",
    "ModuleInitializationError",
    "ModuleProcessingError",
    "PortUnavailableError",
    "PipelineExecutionError",
    "ComponentClosedError",
    "ConfigurationError",
    "InvalidSessionIdError",
]
