import asyncio
from typing import Any, AsyncGenerator, Dict, Optional, Type

from realtime_voice.core.interfaces.base_tts import BaseTTS
from realtime_voice.core.models import AudioData, AudioFormat, TextToSpeechOptions
from realtime_voice.core.models.exceptions import ModuleInitializationError, ModuleProcessingError
from realtime_voice.utils.logging_setup import logger

# 动态导入 edge-tts
try:
    import edge_tts
    EDGE_TTS_AVAILABLE = True
except ImportError:  # pragma: no cover
    logger.warning("edge-tts 库未安装，EdgeTTSAdapter 将无法使用。请运行 'pip install edge-tts'")
    edge_tts = None  # type: ignore
    EDGE_TTS_AVAILABLE = False


class EdgeTTSAdapter(BaseTTS):
    """Edge TTS 语音合成适配器

    输出 MP3 音频块。TextToSpeechOptions 中的 voice_id 覆盖配置的默认音色，
    speed 换算为 Edge TTS 的 rate 百分比。
    """

    output_format = AudioFormat.MP3

    DEFAULT_RATE = "+0%"
    DEFAULT_VOLUME = "+0%"
    DEFAULT_PITCH = "+0Hz"
    DEFAULT_MAX_RETRIES = 3
    DEFAULT_RETRY_DELAY = 1.0

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(module_id, config)

        if not EDGE_TTS_AVAILABLE:
            raise ModuleInitializationError("edge-tts 库未安装", module_id=module_id, adapter_type="edge_tts")

        self.rate: str = self.config.get("rate", self.DEFAULT_RATE)
        self.volume: str = self.config.get("volume", self.DEFAULT_VOLUME)
        self.pitch: str = self.config.get("pitch", self.DEFAULT_PITCH)
        self.max_retries: int = self.config.get("max_retries", self.DEFAULT_MAX_RETRIES)
        self.retry_delay: float = self.config.get("retry_delay", self.DEFAULT_RETRY_DELAY)

        logger.info(f"TTS/EdgeTTS [{self.module_id}] 配置加载完成:")
        logger.info(f"  - voice: {self.voice}")
        logger.info(f"  - rate: {self.rate}")

    async def _setup_impl(self) -> None:
        # Edge TTS 是在线服务，连接在首次合成时建立
        logger.info(f"TTS/EdgeTTS [{self.module_id}] 初始化成功")

    def _resolve_rate(self, options: Optional[TextToSpeechOptions]) -> str:
        if options is not None and options.speed is not None:
            percent = round((options.speed - 1.0) * 100)
            return f"{percent:+d}%"
        return self.rate

    async def synthesize_stream(
        self,
        text: str,
        options: Optional[TextToSpeechOptions] = None,
    ) -> AsyncGenerator[AudioData, None]:
        """流式合成（未产出音频前的失败会重试）"""
        self._ensure_open()
        if not text or not text.strip():
            logger.debug(f"TTS/EdgeTTS [{self.module_id}] 文本为空")
            return

        voice = self.resolve_voice(options)
        rate = self._resolve_rate(options)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            produced = False
            try:
                async for chunk in self._do_synthesize(text, voice, rate):
                    produced = True
                    yield chunk
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if produced:
                    break
                if attempt < self.max_retries:
                    logger.warning(
                        f"TTS/EdgeTTS [{self.module_id}] 合成失败，{self.retry_delay}秒后重试 "
                        f"({attempt}/{self.max_retries}): {e}"
                    )
                    await asyncio.sleep(self.retry_delay)

        logger.error(f"TTS/EdgeTTS [{self.module_id}] 合成失败: {last_error}")
        raise ModuleProcessingError(f"合成失败: {last_error}") from last_error

    async def _do_synthesize(self, text: str, voice: str, rate: str) -> AsyncGenerator[AudioData, None]:
        communicate = edge_tts.Communicate(
            text,
            voice,
            rate=rate,
            volume=self.volume,
            pitch=self.pitch,
        )

        chunk_index = 0
        async for chunk in communicate.stream():
            if chunk["type"] != "audio" or not chunk["data"]:
                continue
            yield AudioData(
                data=chunk["data"],
                format=self.output_format,
                sample_rate=self.sample_rate,
                is_final=False,
                metadata={"chunk_index": chunk_index, "voice": voice},
            )
            chunk_index += 1

        logger.debug(f"TTS/EdgeTTS [{self.module_id}] 合成结束，共 {chunk_index} 个音频块")


def load() -> Type[BaseTTS]:
    """加载 EdgeTTS 适配器类"""
    return EdgeTTSAdapter
