from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from realtime_voice.core.constants import AUDIO_SAMPLE_RATE


class AudioFormat(str, Enum):
    """
    音频格式枚举。
    """
    PCM = "pcm"
    WAV = "wav"
    MP3 = "mp3"
    OGG = "ogg"
    FLAC = "flac"
    OPUS = "opus"  # 通常用于 WebRTC 和流式传输

    @property
    def media_type(self) -> str:
        """对应的 MIME 类型"""
        return _MEDIA_TYPES[self]


_MEDIA_TYPES = {
    AudioFormat.PCM: "audio/pcm",
    AudioFormat.WAV: "audio/wav",
    AudioFormat.MP3: "audio/mpeg",
    AudioFormat.OGG: "audio/ogg",
    AudioFormat.FLAC: "audio/flac",
    AudioFormat.OPUS: "audio/opus",
}


class AudioData(BaseModel):
    """
    音频数据模型。
    """
    message_id: Optional[str] = Field(None, description="消息id")
    data: bytes = Field(..., description="原始音频数据。")
    format: AudioFormat = Field(..., description="音频数据的格式。")
    # 语音处理通常使用单声道
    channels: int = Field(1, description="音频声道数")
    sample_rate: int = Field(AUDIO_SAMPLE_RATE, description="音频采样率 (Hz)")
    sample_width: int = Field(2, description="音频采样宽度 (字节数，2=16bit)")
    is_final: bool = Field(False, description="指示这是否是流的最后一个音频块。")
    metadata: Optional[Dict[str, Any]] = Field(default_factory=dict, description="任何附加的元数据。")

    def __str__(self) -> str:
        """
        返回 AudioData 对象的字符串表示形式。
        """
        return (f"AudioData(格式={self.format.value}, "
                f"数据长度={len(self.data)}, "
                f"采样率={self.sample_rate}, 是否最后一块={self.is_final})")


class SpeechSegment(BaseModel):
    """检测到的语音段

    由 SpeechSegmenter 在滞回状态机关闭一个语音段时创建，发出后不可变。

    Attributes:
        audio_data: 语音段的 16-bit 单声道 PCM 数据
        start_time: 相对流起点的开始时间（秒）
        end_time: 相对流起点的结束时间（秒）
        confidence: 置信度 (0-1)
    """

    model_config = ConfigDict(frozen=True)

    audio_data: bytes = Field(default=b"", repr=False)
    start_time: float = Field(0.0, ge=0.0, description="开始时间（秒）")
    end_time: float = Field(0.0, ge=0.0, description="结束时间（秒）")
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    sample_rate: int = Field(AUDIO_SAMPLE_RATE, description="采样率 (Hz)")

    @computed_field
    @property
    def duration(self) -> float:
        """语音段时长（秒）"""
        return self.end_time - self.start_time

    def __str__(self) -> str:
        return (f"SpeechSegment({self.start_time:.3f}s-{self.end_time:.3f}s, "
                f"bytes={len(self.audio_data)}, confidence={self.confidence:.2f})")
