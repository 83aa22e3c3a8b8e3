from abc import abstractmethod
from typing import Any, Dict, Optional, Tuple

import numpy as np

from realtime_voice.core.constants import (
    AUDIO_SAMPLE_RATE,
    VAD_STATE_SHAPE,
    VAD_WINDOW_SIZE_16K,
    VAD_WINDOW_SIZE_8K,
)
from realtime_voice.core.interfaces.base_module import BaseModule
from realtime_voice.utils.logging_setup import logger


class BaseSpeechProbabilityModel(BaseModule):
    """语音概率模型基类

    对固定大小的音频窗口给出语音概率。模型本身是无状态的，
    循环状态由调用方（SpeechSegmenter）持有并在每次推理时传入、传出。

    子类需要实现:
    - infer: 单窗口推理（同步方法，由调用方放到工作线程执行）
    """

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        self.sample_rate = int(self.config.get("sample_rate", AUDIO_SAMPLE_RATE))
        self.window_size_samples: Optional[int] = self.config.get("window_size_samples")

        logger.debug(f"VAD [{self.module_id}] 配置加载: sample_rate={self.sample_rate}")

    def window_size_for(self, sample_rate: int) -> int:
        """给定采样率下每次推理的窗口样本数"""
        if self.window_size_samples:
            return int(self.window_size_samples)
        return VAD_WINDOW_SIZE_16K if sample_rate >= 16000 else VAD_WINDOW_SIZE_8K

    @property
    def supports_interleaved_streams(self) -> bool:
        """多条流的推理能否交替进行

        循环状态完全由 state 参数携带时为 True。模型把状态藏在内部且无法按流
        保存、恢复时应返回 False，SpeechSegmenter 会让每条流独占模型直到结束。
        """
        return True

    def initial_state(self) -> Any:
        """新建一份循环状态（每次检测调用开始时使用）"""
        return np.zeros(VAD_STATE_SHAPE, dtype=np.float32)

    @abstractmethod
    def infer(self, window: np.ndarray, sample_rate: int, state: Any) -> Tuple[float, Any]:
        """对单个窗口推理

        Args:
            window: float32 单声道样本，取值 [-1, 1)
            sample_rate: 采样率
            state: 上一次推理返回的循环状态

        Returns:
            (语音概率, 更新后的循环状态)
        """
        raise NotImplementedError("VAD 子类必须实现 infer 方法")
