"""调用级选项模型

VadOptions / TextToSpeechOptions / ConversationOptions 都是单次调用的覆盖项，
未设置的字段回退到 PipelineConfig 中的默认值。
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from realtime_voice.core.constants import (
    AUDIO_SAMPLE_RATE,
    DEFAULT_MAX_CONVERSATION_HISTORY,
    DEFAULT_MIN_SILENCE_DURATION_MS,
    DEFAULT_MIN_SPEECH_DURATION_MS,
    DEFAULT_VAD_THRESHOLD,
    SESSION_ID_MAX_LENGTH,
    SESSION_ID_PATTERN,
)
from realtime_voice.core.models.exceptions import InvalidSessionIdError

_SESSION_ID_RE = re.compile(SESSION_ID_PATTERN)


def validate_session_id(session_id: Any) -> str:
    """校验会话 ID

    会话 ID 用作共享会话表的键，只允许 ASCII 字母数字、'-' 和 '_'，
    长度 1~256。

    Raises:
        InvalidSessionIdError: 会话 ID 非法
    """
    if not isinstance(session_id, str):
        raise InvalidSessionIdError(session_id)
    if not 0 < len(session_id) <= SESSION_ID_MAX_LENGTH:
        raise InvalidSessionIdError(session_id)
    if not session_id.isascii() or not _SESSION_ID_RE.fullmatch(session_id):
        raise InvalidSessionIdError(session_id)
    return session_id


class VadOptions(BaseModel):
    """语音活动检测选项"""

    speech_threshold: float = Field(default=DEFAULT_VAD_THRESHOLD, ge=0.0, le=1.0, description="语音概率阈值")
    min_speech_duration_ms: int = Field(default=DEFAULT_MIN_SPEECH_DURATION_MS, ge=0, description="最短语音时长")
    min_silence_duration_ms: int = Field(default=DEFAULT_MIN_SILENCE_DURATION_MS, ge=0, description="结束语音所需静音时长")
    sample_rate: int = Field(default=AUDIO_SAMPLE_RATE, ge=8000, le=48000, description="采样率")
    channels: int = Field(default=1, ge=1, le=2, description="声道数")
    additional_properties: Optional[Dict[str, Any]] = None

    def clone(self) -> "VadOptions":
        """创建独立副本"""
        return self.model_copy(deep=True)

    def min_speech_samples(self) -> int:
        return int(self.min_speech_duration_ms / 1000.0 * self.sample_rate)

    def min_silence_samples(self) -> int:
        return int(self.min_silence_duration_ms / 1000.0 * self.sample_rate)


class TextToSpeechOptions(BaseModel):
    """语音合成选项"""

    model_id: Optional[str] = None
    voice_id: Optional[str] = None
    language: Optional[str] = None
    sample_rate: Optional[int] = None
    speed: Optional[float] = Field(default=None, gt=0.0)
    additional_properties: Optional[Dict[str, Any]] = None

    def clone(self) -> "TextToSpeechOptions":
        """创建独立副本"""
        return self.model_copy(deep=True)


class ConversationOptions(BaseModel):
    """单次对话调用的选项

    session_id 在构造时即校验，非法值直接抛出 InvalidSessionIdError，
    不会进入任何处理阶段。
    """

    model_config = ConfigDict(extra="forbid")

    session_id: Optional[str] = Field(default=None, description="会话ID")
    system_prompt: Optional[str] = Field(default=None, description="系统提示词")
    voice_id: Optional[str] = None
    language: Optional[str] = None
    enable_audio_response: bool = True
    enable_barge_in: bool = True
    enable_partial_transcripts: bool = False
    max_conversation_history: int = Field(default=DEFAULT_MAX_CONVERSATION_HISTORY, ge=0)
    vad_options: Optional[VadOptions] = None
    additional_properties: Optional[Dict[str, Any]] = None

    @field_validator("session_id")
    @classmethod
    def check_session_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_session_id(v)
