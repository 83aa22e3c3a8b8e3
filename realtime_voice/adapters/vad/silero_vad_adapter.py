import asyncio
from typing import Any, Dict, Optional, Tuple, Type

import numpy as np
import torch

from realtime_voice.core.interfaces.base_vad import BaseSpeechProbabilityModel
from realtime_voice.core.models.exceptions import ModuleInitializationError, ModuleProcessingError
from realtime_voice.utils.error_handling import handle_module_errors, require_model
from realtime_voice.utils.logging_setup import logger
from realtime_voice.utils.paths import resolve_model_path


# torch 版 Silero 保存在模型实例上的流状态
_MODEL_STATE_ATTRS = ("_state", "_context", "_last_sr", "_last_batch_size")


class _SileroStreamState:
    """一条音频流的 Silero 循环状态快照

    torch 版 Silero 把循环状态保存在模型内部。切换到另一条流之前，
    当前流的内部状态被复制到它自己的快照里，切回来时再写回模型。
    """

    __slots__ = ("snapshot",)

    def __init__(self):
        self.snapshot: Optional[Dict[str, Any]] = None


def _copy_value(value: Any) -> Any:
    return value.clone() if isinstance(value, torch.Tensor) else value


class SileroVADAdapter(BaseSpeechProbabilityModel):
    """Silero VAD 语音概率模型适配器

    通过 torch.hub 加载 Silero VAD。模型内部保存循环状态，传入的状态对象换了
    （即换了一条音频流）时，先保存上一条流的内部状态，再恢复或重置这条流的状态，
    因此多条流可以在同一个模型上交替推理。
    """

    DEFAULT_MODEL_REPO = "snakers4/silero-vad"
    DEFAULT_MODEL_NAME = "silero_vad"
    DEFAULT_DEVICE = "cpu"
    DEFAULT_CACHE_DIR = "models"

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        self.model_repo_path = self.config.get("model_repo_path", self.DEFAULT_MODEL_REPO)
        self.model_name = self.config.get("model_name", self.DEFAULT_MODEL_NAME)
        self.source = self.config.get("source", "github")
        self.cache_dir = self.config.get("cache_dir", self.DEFAULT_CACHE_DIR)
        self.device = self.config.get("device", self.DEFAULT_DEVICE)
        self.force_reload = self.config.get("force_reload_model", False)

        if self.source not in ("github", "local"):
            raise ModuleInitializationError(
                f"不支持的模型来源: {self.source}",
                module_id=module_id,
                adapter_type="silero",
            )
        if self.source == "local":
            # 越出缓存目录时抛出 ConfigurationError
            self.model_repo_path = str(resolve_model_path(self.model_repo_path, self.cache_dir))

        self.consecutive_failures = 0
        self.max_consecutive_failures = self.config.get("max_consecutive_failures", 10)

        self.model: Optional[torch.nn.Module] = None
        self._active_state: Optional[_SileroStreamState] = None

        logger.info(f"VAD/Silero [{self.module_id}] 配置加载完成:")
        logger.info(f"  - model_repo: {self.model_repo_path} ({self.source})")
        logger.info(f"  - sample_rate: {self.sample_rate}")
        logger.info(f"  - device: {self.device}")

    async def _setup_impl(self) -> None:
        logger.info(f"VAD/Silero [{self.module_id}] 正在初始化模型...")

        try:
            loaded_entity = await asyncio.to_thread(
                torch.hub.load,
                repo_or_dir=self.model_repo_path,
                model=self.model_name,
                source=self.source,
                force_reload=self.force_reload,
                trust_repo=True if self.source == "local" else None,
            )

            # torch.hub 可能返回 (model, utils)
            if isinstance(loaded_entity, tuple) and len(loaded_entity) >= 1:
                self.model = loaded_entity[0]
            else:
                self.model = loaded_entity

            if self.model is None:
                raise ModuleInitializationError("torch.hub.load 返回 None")

            self.model.to(self.device)
            self.model.eval()
            logger.info(f"VAD/Silero [{self.module_id}] 模型初始化成功")

        except ModuleInitializationError:
            raise
        except Exception as e:
            logger.error(f"VAD/Silero [{self.module_id}] 初始化失败: {e}", exc_info=True)
            raise ModuleInitializationError(
                f"Silero VAD 初始化失败: {e}",
                module_id=self.module_id,
                adapter_type="silero",
            ) from e

    def initial_state(self) -> Any:
        return _SileroStreamState()

    @property
    def supports_interleaved_streams(self) -> bool:
        # 找不到可保存的内部状态时只能整条流独占模型
        if self.model is None:
            return True
        return any(hasattr(self.model, name) for name in _MODEL_STATE_ATTRS)

    def _capture_model_state(self) -> Dict[str, Any]:
        return {
            name: _copy_value(getattr(self.model, name))
            for name in _MODEL_STATE_ATTRS
            if hasattr(self.model, name)
        }

    def _switch_stream(self, state: _SileroStreamState) -> None:
        if self.model is not None:
            if self._active_state is not None:
                self._active_state.snapshot = self._capture_model_state()
            if state.snapshot is None:
                if hasattr(self.model, "reset_states"):
                    self.model.reset_states()
            else:
                for name, value in state.snapshot.items():
                    setattr(self.model, name, _copy_value(value))
        self._active_state = state

    @require_model()
    @handle_module_errors(operation_name="Silero VAD inference")
    def _run_model(self, window: np.ndarray, sample_rate: int) -> float:
        audio_tensor = torch.from_numpy(np.ascontiguousarray(window, dtype=np.float32)).to(self.device)
        with torch.no_grad():
            return float(self.model(audio_tensor, sample_rate).item())

    def infer(self, window: np.ndarray, sample_rate: int, state: Any) -> Tuple[float, Any]:
        """单窗口推理

        偶发失败按静音处理（概率 0.0），连续失败达到上限后抛出 ModuleProcessingError。
        """
        self._ensure_open()

        if state is not self._active_state:
            self._switch_stream(state)

        try:
            probability = self._run_model(window, sample_rate)
        except ModuleProcessingError as e:
            if self.model is None:
                raise
            self.consecutive_failures += 1
            logger.error(
                f"VAD/Silero [{self.module_id}] 推理失败 "
                f"({self.consecutive_failures}/{self.max_consecutive_failures}): {e}"
            )
            if self.consecutive_failures >= self.max_consecutive_failures:
                logger.critical(f"VAD/Silero [{self.module_id}] 连续失败次数过多，抛出异常")
                raise ModuleProcessingError(
                    f"Silero VAD 连续失败 {self.consecutive_failures} 次: {e}"
                ) from e
            return 0.0, state

        self.consecutive_failures = 0
        return probability, state

    async def _close_impl(self) -> None:
        logger.info(f"VAD/Silero [{self.module_id}] 正在关闭...")

        if self.model is not None:
            del self.model
            self.model = None
        self._active_state = None

        if self.device == "cuda" and torch.cuda.is_available():
            torch.cuda.empty_cache()

        logger.info(f"VAD/Silero [{self.module_id}] 已关闭")


def load() -> Type["SileroVADAdapter"]:
    """加载 SileroVAD 适配器类"""
    return SileroVADAdapter
