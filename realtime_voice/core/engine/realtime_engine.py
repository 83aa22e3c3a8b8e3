"""实时语音引擎

RealtimeEngine 是应用的组装点，负责：
- 按配置通过适配器加载器创建 VAD / ASR / LLM / TTS 模块
- 组装 SpeechSegmenter、会话存储与 ConversationPipeline
- 管理整个生命周期
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union, TYPE_CHECKING

from realtime_voice.core.audio.speech_segmenter import SpeechSegmenter
from realtime_voice.core.config_models import AppConfig, ModuleConfig, VADModuleConfig
from realtime_voice.core.conversation.pipeline import ConversationPipeline
from realtime_voice.core.interfaces import BaseASR, BaseLLM, BaseModule, BaseSpeechProbabilityModel, BaseTTS
from realtime_voice.core.models import VadOptions
from realtime_voice.core.models.exceptions import ComponentClosedError, ConfigurationError
from realtime_voice.core.session.session_store import (
    ConversationSessionStore,
    InMemoryConversationSessionStore,
)
from realtime_voice.utils.logging_setup import logger, setup_logging

if TYPE_CHECKING:
    from realtime_voice.core.adapter_loader import AdapterLoader


class RealtimeEngine:
    """实时语音引擎

    asr 与 llm 模块必需；vad 缺省时管道把整段输入当作一个语音段，
    tts 缺省时只输出文本。
    """

    REQUIRED_MODULES = ("asr", "llm")
    MODULE_ORDER = ("vad", "asr", "llm", "tts")

    def __init__(
        self,
        config: Union[AppConfig, Dict[str, Any]],
        adapter_loader: Optional["AdapterLoader"] = None,
        session_store: Optional[ConversationSessionStore] = None,
    ):
        self.config = config if isinstance(config, AppConfig) else AppConfig.model_validate(config)

        if adapter_loader is None:
            from realtime_voice.core.adapter_loader import create_default_loader
            adapter_loader = create_default_loader()
        self.adapter_loader = adapter_loader

        self.session_store = session_store or InMemoryConversationSessionStore()
        self.modules: Dict[str, BaseModule] = {}
        self.segmenter: Optional[SpeechSegmenter] = None
        self._pipeline: Optional[ConversationPipeline] = None
        self._closed = False

        logger.info("RealtimeEngine 初始化完成")

    @classmethod
    async def from_config_file(
        cls,
        config_path: Union[str, Path],
        adapter_loader: Optional["AdapterLoader"] = None,
    ) -> "RealtimeEngine":
        """读取 YAML 配置、初始化日志并创建引擎（尚未 initialize）"""
        from realtime_voice.utils.config_loader import ConfigLoader

        config = await ConfigLoader.load_config(config_path)
        setup_logging(config.logging)
        return cls(config, adapter_loader=adapter_loader)

    @property
    def pipeline(self) -> ConversationPipeline:
        if self._closed:
            raise ComponentClosedError("RealtimeEngine")
        if self._pipeline is None:
            raise ConfigurationError("RealtimeEngine 尚未初始化，请先调用 initialize()")
        return self._pipeline

    def get_module(self, module_type: str) -> Optional[BaseModule]:
        return self.modules.get(module_type)

    def _module_config(self, module_type: str) -> Optional[ModuleConfig]:
        module_config: Optional[ModuleConfig] = getattr(self.config.modules, module_type)
        if module_config is None or not module_config.enabled:
            return None
        return module_config

    async def initialize(self) -> None:
        """创建并初始化所有模块，组装管道

        Raises:
            ConfigurationError: 缺少必需模块配置
            ModuleInitializationError: 模块创建或初始化失败
        """
        if self._closed:
            raise ComponentClosedError("RealtimeEngine")
        if self._pipeline is not None:
            return

        logger.info("RealtimeEngine 正在初始化模块...")

        for module_type in self.REQUIRED_MODULES:
            if self._module_config(module_type) is None:
                raise ConfigurationError(
                    f"缺少必需的模块配置: modules.{module_type}",
                    config_key=f"modules.{module_type}",
                )

        try:
            for module_type in self.MODULE_ORDER:
                module_config = self._module_config(module_type)
                if module_config is None:
                    logger.info(f"RealtimeEngine 模块 {module_type} 未启用")
                    continue

                module = self.adapter_loader.create(
                    module_type,
                    module_config.adapter_type,
                    module_type,
                    module_config.config,
                )
                self.modules[module_type] = module
                await module.setup()
                logger.info(f"RealtimeEngine 模块 {module_type} ({module_config.adapter_type}) 已就绪")

            self._pipeline = self._build_pipeline()
        except Exception as e:
            logger.critical(f"RealtimeEngine 模块加载失败: {e}", exc_info=True)
            await self._close_modules()
            self.segmenter = None
            raise

        logger.info("RealtimeEngine 模块初始化完成")

    def _build_pipeline(self) -> ConversationPipeline:
        vad = self.modules.get("vad")
        if isinstance(vad, BaseSpeechProbabilityModel):
            vad_config = vad.validate_config(VADModuleConfig)
            self.segmenter = SpeechSegmenter(
                vad,
                VadOptions(
                    speech_threshold=vad_config.threshold,
                    min_speech_duration_ms=vad_config.min_speech_duration_ms,
                    min_silence_duration_ms=vad_config.min_silence_duration_ms,
                    sample_rate=vad_config.sample_rate,
                ),
            )

        transcriber = self.modules["asr"]
        generator = self.modules["llm"]
        synthesizer = self.modules.get("tts")
        if not isinstance(transcriber, BaseASR) or not isinstance(generator, BaseLLM):
            raise ConfigurationError("asr / llm 模块类型不正确")
        if synthesizer is not None and not isinstance(synthesizer, BaseTTS):
            raise ConfigurationError("tts 模块类型不正确")

        return ConversationPipeline(
            transcriber=transcriber,
            generator=generator,
            session_store=self.session_store,
            synthesizer=synthesizer,
            segmenter=self.segmenter,
            config=self.config.pipeline,
        )

    async def _close_modules(self) -> None:
        for module_type, module in list(self.modules.items()):
            try:
                await module.close()
                logger.debug(f"模块 {module_type} 已关闭")
            except Exception as e:
                logger.error(f"关闭模块 {module_type} 失败: {e}", exc_info=True)
        self.modules.clear()

    async def shutdown(self) -> None:
        """关闭引擎，单个组件关闭失败只记录日志"""
        if self._closed:
            return
        logger.info("RealtimeEngine 正在关闭...")
        self._closed = True

        for name, component in (("pipeline", self._pipeline), ("segmenter", self.segmenter)):
            if component is None:
                continue
            try:
                await component.close()
            except Exception as e:
                logger.error(f"关闭 {name} 失败: {e}", exc_info=True)

        await self._close_modules()

        try:
            await self.session_store.close()
        except Exception as e:
            logger.error(f"关闭会话存储失败: {e}", exc_info=True)

        self._pipeline = None
        self.segmenter = None
        logger.info("RealtimeEngine 已关闭")

    async def health_check(self) -> Dict[str, Any]:
        """各模块健康状态"""
        result: Dict[str, Any] = {
            "engine": "closed" if self._closed else ("healthy" if self._pipeline else "not_initialized"),
            "modules": {},
        }
        for module_type, module in self.modules.items():
            try:
                result["modules"][module_type] = await module.health_check()
            except Exception as e:
                result["modules"][module_type] = {"status": "error", "error": str(e)}
        return result

    async def __aenter__(self) -> "RealtimeEngine":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()
