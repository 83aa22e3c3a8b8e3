from abc import abstractmethod
from typing import Any, AsyncGenerator, Dict, List, Optional

from realtime_voice.core.interfaces.base_module import BaseModule
from realtime_voice.core.models import AudioData, AudioFormat, TextToSpeechOptions
from realtime_voice.utils.logging_setup import logger


class BaseTTS(BaseModule):
    """文本转语音模块基类

    子类需要实现:
    - synthesize_stream: 流式合成语音
    """

    output_format: AudioFormat = AudioFormat.PCM

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        self.voice = self.config.get("voice", "en-US-AriaNeural")
        self.sample_rate = self.config.get("sample_rate", 24000)
        self.channels = self.config.get("channels", 1)

        logger.debug(f"TTS [{self.module_id}] 配置加载:")
        logger.debug(f"  - voice: {self.voice}")
        logger.debug(f"  - sample_rate: {self.sample_rate}")

    @property
    def media_type(self) -> str:
        """合成音频的 MIME 类型"""
        return self.output_format.media_type

    def resolve_voice(self, options: Optional[TextToSpeechOptions]) -> str:
        if options is not None and options.voice_id:
            return options.voice_id
        return self.voice

    @abstractmethod
    async def synthesize_stream(
        self,
        text: str,
        options: Optional[TextToSpeechOptions] = None,
    ) -> AsyncGenerator[AudioData, None]:
        """流式合成语音，返回音频块流"""
        raise NotImplementedError("TTS 子类必须实现 synthesize_stream 方法")
        yield  # pragma: no cover

    async def synthesize(
        self,
        text: str,
        options: Optional[TextToSpeechOptions] = None,
    ) -> AudioData:
        """整段合成，默认拼接流式结果"""
        parts: List[bytes] = []
        async for chunk in self.synthesize_stream(text, options):
            if chunk.data:
                parts.append(chunk.data)
        return AudioData(
            data=b"".join(parts),
            format=self.output_format,
            sample_rate=self.sample_rate,
            channels=self.channels,
            is_final=True,
            metadata={"source_module_id": self.module_id},
        )
