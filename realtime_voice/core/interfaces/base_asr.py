from abc import abstractmethod
from typing import Any, AsyncGenerator, Dict, Optional

from realtime_voice.core.constants import AUDIO_SAMPLE_RATE
from realtime_voice.core.interfaces.base_module import BaseModule
from realtime_voice.core.models import TextData
from realtime_voice.utils.logging_setup import logger


class BaseASR(BaseModule):
    """语音识别模块基类

    子类需要实现:
    - transcribe: 对一段完整音频做批量识别

    transcribe_stream 默认只产出一个最终片段，支持增量识别的子类可覆盖。
    """

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        self.sample_rate = self.config.get("sample_rate", AUDIO_SAMPLE_RATE)
        self.channels = self.config.get("channels", 1)
        self.language: Optional[str] = self.config.get("language")

        logger.debug(f"ASR [{self.module_id}] 配置加载:")
        logger.debug(f"  - sample_rate: {self.sample_rate}")
        logger.debug(f"  - language: {self.language}")

    @abstractmethod
    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> str:
        """识别一段 16-bit 单声道 PCM 音频，返回文本（无内容时返回空串）"""
        raise NotImplementedError("ASR 子类必须实现 transcribe 方法")

    async def transcribe_stream(
        self,
        audio: bytes,
        language: Optional[str] = None,
    ) -> AsyncGenerator[TextData, None]:
        """流式识别，产出中间片段和一个 is_final=True 的最终片段"""
        text = await self.transcribe(audio, language)
        yield TextData(text=text, is_final=True, metadata={"source_module_id": self.module_id})
