"""对话消息与对话轮次模型"""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    """消息角色"""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """会话历史中的一条消息

    消息在历史列表中的下标即为其顺序位置。
    """

    role: MessageRole
    content: str = ""
    created_at: float = Field(default_factory=time.time)

    @classmethod
    def system(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    @property
    def is_system(self) -> bool:
        return self.role == MessageRole.SYSTEM

    def __str__(self) -> str:
        preview = self.content if len(self.content) <= 50 else self.content[:50] + "..."
        return f"{self.role.value}: {preview}"


class ConversationTurn(BaseModel):
    """一次完整的单轮对话结果 (process_turn 的返回值)

    Attributes:
        user_text: 识别出的用户文本
        response_text: 生成的回复文本
        response_audio: 合成的回复音频（未启用语音回复时为 None）
        audio_media_type: 音频 MIME 类型
        processing_time: 处理耗时（秒）
        model_id: 生成回复所用模型（若可知）
    """

    user_text: str = ""
    response_text: str = ""
    response_audio: Optional[bytes] = Field(default=None, repr=False)
    audio_media_type: Optional[str] = None
    processing_time: float = 0.0
    model_id: Optional[str] = None
