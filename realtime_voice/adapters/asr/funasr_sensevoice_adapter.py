import asyncio
from functools import partial
from typing import Any, Dict, Optional, Type

import numpy as np

from realtime_voice.core.interfaces.base_asr import BaseASR
from realtime_voice.core.models.exceptions import ModuleInitializationError, ModuleProcessingError
from realtime_voice.utils.audio_converter import pcm16_to_float32, resample_audio
from realtime_voice.utils.logging_setup import logger
from realtime_voice.utils.paths import resolve_model_path

# 动态导入 FunASR
try:
    from funasr import AutoModel
    from funasr.utils.postprocess_utils import rich_transcription_postprocess

    FUNASR_AVAILABLE = True
except ImportError:  # pragma: no cover
    logger.warning("funasr 库未安装，FunASRSenseVoiceAdapter 将无法使用。请运行 'pip install funasr'")
    AutoModel = None  # type: ignore
    rich_transcription_postprocess = None  # type: ignore
    FUNASR_AVAILABLE = False


# SenseVoice 支持的语言代码
_SENSEVOICE_LANGUAGES = {"zh", "en", "yue", "ja", "ko"}


class FunASRSenseVoiceAdapter(BaseASR):
    """FunASR SenseVoice 语音识别适配器

    输入为管道采样率下的 16-bit PCM，必要时重采样到模型的 16kHz。
    """

    DEFAULT_MODEL_DIR = "asr/SenseVoiceSmall"
    DEFAULT_CACHE_DIR = "models"
    DEFAULT_DEVICE = "cpu"
    MODEL_SAMPLE_RATE = 16000

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        if not FUNASR_AVAILABLE:
            raise ModuleInitializationError(
                "funasr 库未安装", module_id=module_id, adapter_type="funasr_sensevoice"
            )

        self.cache_dir = self.config.get("cache_dir", self.DEFAULT_CACHE_DIR)
        # 越出缓存目录时抛出 ConfigurationError
        self.model_dir = resolve_model_path(self.config.get("model_dir", self.DEFAULT_MODEL_DIR), self.cache_dir)
        self.device = self.config.get("device", self.DEFAULT_DEVICE)
        self.use_itn = self.config.get("use_itn", True)

        self.model: Optional[Any] = None

        logger.info(f"ASR/FunASR [{self.module_id}] 配置加载完成:")
        logger.info(f"  - 模型目录: {self.model_dir}")
        logger.info(f"  - 设备: {self.device}")

    async def _setup_impl(self) -> None:
        logger.info(f"ASR/FunASR [{self.module_id}] 正在初始化模型...")

        if not self.model_dir.exists():
            raise ModuleInitializationError(
                f"模型目录不存在: {self.model_dir}",
                module_id=self.module_id,
                adapter_type="funasr_sensevoice",
            )

        try:
            self.model = await asyncio.to_thread(
                AutoModel,
                model=str(self.model_dir),
                device=self.device,
                disable_pbar=True,
                disable_update=True,
            )
        except Exception as e:
            logger.error(f"ASR/FunASR [{self.module_id}] 初始化失败: {e}", exc_info=True)
            raise ModuleInitializationError(
                f"FunASR 初始化失败: {e}",
                module_id=self.module_id,
                adapter_type="funasr_sensevoice",
            ) from e

        logger.info(f"ASR/FunASR [{self.module_id}] 模型初始化成功")

    @staticmethod
    def _to_sensevoice_language(language: Optional[str]) -> str:
        """'en-US' -> 'en'，不支持的语言交给模型自动识别"""
        if not language:
            return "auto"
        code = language.split("-")[0].lower()
        return code if code in _SENSEVOICE_LANGUAGES else "auto"

    def _preprocess(self, audio: bytes) -> np.ndarray:
        audio_np = pcm16_to_float32(audio)
        return resample_audio(audio_np, self.sample_rate, self.MODEL_SAMPLE_RATE)

    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> str:
        self._ensure_open()
        if self.model is None:
            raise ModuleProcessingError("模型未初始化")

        audio_np = self._preprocess(audio)
        if audio_np.size == 0:
            logger.debug(f"ASR/FunASR [{self.module_id}] 音频为空")
            return ""

        try:
            result = await asyncio.to_thread(
                partial(
                    self.model.generate,
                    input=audio_np,
                    fs=self.MODEL_SAMPLE_RATE,
                    language=self._to_sensevoice_language(language or self.language),
                    use_itn=self.use_itn,
                )
            )
        except Exception as e:
            logger.error(f"ASR/FunASR [{self.module_id}] 推理失败: {e}", exc_info=True)
            raise ModuleProcessingError(f"推理失败: {e}") from e

        text = self._extract_text(result)
        if text:
            logger.debug(f"ASR/FunASR [{self.module_id}] 识别结果: '{text}'")
        return text

    @staticmethod
    def _extract_text(result: Any) -> str:
        """从模型输出中提取文本并去掉情感/事件标签"""
        if not result or not isinstance(result, list):
            return ""

        segments = [
            rich_transcription_postprocess(item["text"]).strip()
            for item in result
            if isinstance(item, dict) and item.get("text")
        ]
        return " ".join(s for s in segments if s).strip()

    async def _close_impl(self) -> None:
        logger.info(f"ASR/FunASR [{self.module_id}] 正在关闭...")
        self.model = None
        logger.info(f"ASR/FunASR [{self.module_id}] 资源已释放")


def load() -> Type["FunASRSenseVoiceAdapter"]:
    """加载 FunASRSenseVoice 适配器类"""
    return FunASRSenseVoiceAdapter
