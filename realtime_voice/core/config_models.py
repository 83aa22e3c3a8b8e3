"""配置模型定义

提供 Pydantic 配置模型，用于配置验证和类型安全。
"""

from typing import Dict, Any, Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict

from realtime_voice.core.constants import (
    AUDIO_SAMPLE_RATE,
    DEFAULT_LANGUAGE,
    DEFAULT_MAX_CONSECUTIVE_ERRORS,
    DEFAULT_MIN_SILENCE_DURATION_MS,
    DEFAULT_MIN_SPEECH_DURATION_MS,
    DEFAULT_VAD_THRESHOLD,
)


# ==================== 日志配置 ====================

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _normalize_level(v: str) -> str:
    if v.upper() not in _LOG_LEVELS:
        raise ValueError(f"Invalid log level: {v}. Must be one of {_LOG_LEVELS}")
    return v.upper()


class LoggingConfig(BaseModel):
    """日志配置模型"""
    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(
        default="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        description="日志格式"
    )
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S", description="日期时间格式")
    file_path: Optional[str] = Field(default=None, description="日志文件路径")
    max_bytes: int = Field(default=10 * 1024 * 1024, description="单个日志文件最大字节数 (10MB)")
    backup_count: int = Field(default=5, description="保留的旧日志文件数量")
    encoding: str = Field(default="utf-8", description="日志文件编码")
    json_format: bool = Field(default=False, description="是否使用结构化 JSON 格式")
    quiet_loggers: Dict[str, str] = Field(
        default_factory=lambda: {"httpx": "WARNING", "httpcore": "WARNING", "urllib3": "WARNING"},
        description="需要单独调高级别的第三方 logger",
    )

    model_config = ConfigDict(extra="ignore")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        return _normalize_level(v)

    @field_validator("quiet_loggers")
    @classmethod
    def validate_quiet_loggers(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {name: _normalize_level(level) for name, level in v.items()}


# ==================== 模块特定配置 ====================

class ASRModuleConfig(BaseModel):
    """ASR 模块通用配置"""
    sample_rate: int = Field(default=AUDIO_SAMPLE_RATE, ge=8000, le=48000, description="采样率")
    channels: int = Field(default=1, ge=1, le=2, description="声道数")
    language: Optional[str] = Field(default=None, description="默认语言提示")

    model_config = ConfigDict(extra="allow")


class TTSModuleConfig(BaseModel):
    """TTS 模块通用配置"""
    sample_rate: int = Field(default=24000, ge=8000, le=48000, description="采样率")
    voice: str = Field(default="en-US-AriaNeural", description="语音名称")

    model_config = ConfigDict(extra="allow")


class VADModuleConfig(BaseModel):
    """VAD 模块通用配置"""
    threshold: float = Field(default=DEFAULT_VAD_THRESHOLD, ge=0.0, le=1.0, description="语音检测阈值")
    sample_rate: int = Field(default=AUDIO_SAMPLE_RATE, ge=8000, le=48000, description="采样率")
    min_speech_duration_ms: int = Field(default=DEFAULT_MIN_SPEECH_DURATION_MS, ge=0)
    min_silence_duration_ms: int = Field(default=DEFAULT_MIN_SILENCE_DURATION_MS, ge=0)

    model_config = ConfigDict(extra="allow")


class LLMModuleConfig(BaseModel):
    """LLM 模块通用配置"""
    model_name: str = Field(default="gpt-4o-mini", description="模型名称")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="温度参数")
    max_tokens: int = Field(default=2000, ge=1, description="最大生成令牌数")

    model_config = ConfigDict(extra="allow")


class PipelineConfig(BaseModel):
    """对话管道默认配置

    ConversationOptions 中未设置的字段回退到这里。
    """
    default_system_prompt: Optional[str] = Field(default=None, description="默认系统提示词")
    default_language: Optional[str] = Field(default=DEFAULT_LANGUAGE, description="默认语言")
    default_voice_id: Optional[str] = Field(default=None, description="默认音色")
    max_consecutive_errors: int = Field(
        default=DEFAULT_MAX_CONSECUTIVE_ERRORS,
        ge=1,
        description="流式对话中允许的连续失败语音段数，超过则终止整个流"
    )

    model_config = ConfigDict(extra="ignore")


# ==================== 适配器配置包装 ====================

class ModuleConfig(BaseModel):
    """单个模块的适配器配置"""
    adapter_type: str = Field(..., description="适配器类型")
    enabled: bool = Field(default=True, description="是否启用")
    config: Dict[str, Any] = Field(default_factory=dict, description="适配器特定配置")

    model_config = ConfigDict(extra="ignore")


class ModulesConfig(BaseModel):
    """模块集合配置"""
    vad: Optional[ModuleConfig] = None
    asr: Optional[ModuleConfig] = None
    llm: Optional[ModuleConfig] = None
    tts: Optional[ModuleConfig] = None

    model_config = ConfigDict(extra="ignore")


class AppConfig(BaseModel):
    """应用全局配置"""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    modules: ModulesConfig = Field(default_factory=ModulesConfig)
