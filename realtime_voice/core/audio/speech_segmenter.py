"""语音分段器

把连续的 16-bit 单声道 PCM 字节流切成离散的语音段。

算法（滞回状态机）:
    SILENCE --(概率 >= 阈值)--> SPEECH
    SPEECH 状态下所有窗口都进入缓冲，包括尾部的低概率窗口；
    连续低概率样本数达到 min_silence 时关闭语音段：
    其中高概率窗口的样本数达到 min_speech 则发出 SpeechSegment，否则当作噪声丢弃。
    输入结束时若仍处于 SPEECH，且缓冲足够长，发出最后一个语音段。
"""

import asyncio
import contextlib
from typing import AsyncGenerator, AsyncIterable, List, Optional

import numpy as np

from realtime_voice.core.constants import AUDIO_SAMPLE_WIDTH
from realtime_voice.core.interfaces.base_vad import BaseSpeechProbabilityModel
from realtime_voice.core.models import SpeechSegment, VadOptions
from realtime_voice.core.models.exceptions import ComponentClosedError
from realtime_voice.utils.audio_converter import pcm16_to_float32
from realtime_voice.utils.logging_setup import logger


class _SegmentTracker:
    """单次 detect_speech 调用内的分段状态"""

    def __init__(self, options: VadOptions, window_size: int):
        self.threshold = options.speech_threshold
        self.sample_rate = options.sample_rate
        self.min_speech_samples = options.min_speech_samples()
        self.min_silence_samples = options.min_silence_samples()
        self.window_size = window_size

        self.in_speech = False
        self.speech_start_sample = 0
        self.total_samples = 0
        self.silence_samples = 0
        self.buffer: List[bytes] = []
        self.speech_probs: List[float] = []

    @property
    def buffered_samples(self) -> int:
        return len(self.buffer) * self.window_size

    @property
    def speech_samples(self) -> int:
        return len(self.speech_probs) * self.window_size

    def push(self, window_pcm: bytes, probability: float) -> Optional[SpeechSegment]:
        segment = None

        if probability >= self.threshold:
            if not self.in_speech:
                self.in_speech = True
                self.speech_start_sample = self.total_samples
                self.buffer = []
                self.speech_probs = []
            self.buffer.append(window_pcm)
            self.speech_probs.append(probability)
            self.silence_samples = 0
        elif self.in_speech:
            # 尾部静音也计入语音段
            self.buffer.append(window_pcm)
            self.silence_samples += self.window_size
            if self.silence_samples >= self.min_silence_samples:
                segment = self._close()

        self.total_samples += self.window_size
        return segment

    def finish(self) -> Optional[SpeechSegment]:
        """输入结束"""
        if not self.in_speech:
            return None
        return self._close()

    def _close(self) -> Optional[SpeechSegment]:
        segment = None
        if self.speech_samples >= self.min_speech_samples:
            segment = self._build_segment()
        else:
            logger.debug(
                f"SpeechSegmenter 丢弃过短的语音段: "
                f"{self.speech_samples} < {self.min_speech_samples} samples"
            )

        self.in_speech = False
        self.silence_samples = 0
        self.buffer = []
        self.speech_probs = []
        return segment

    def _build_segment(self) -> SpeechSegment:
        end_sample = self.speech_start_sample + self.buffered_samples
        confidence = float(np.mean(self.speech_probs)) if self.speech_probs else 1.0
        return SpeechSegment(
            audio_data=b"".join(self.buffer),
            start_time=self.speech_start_sample / self.sample_rate,
            end_time=end_sample / self.sample_rate,
            confidence=min(max(confidence, 0.0), 1.0),
            sample_rate=self.sample_rate,
        )


class SpeechSegmenter:
    """基于语音概率模型的流式语音分段器

    每次 detect_speech 调用都从全新的循环状态开始，状态只在本次调用内使用。
    同一个分段器上的模型推理由 asyncio.Lock 串行化，推理本身在工作线程中执行。
    模型不支持多流交替推理时，并发调用按整条流排队。
    模型未就绪时在首次使用时初始化。
    """

    def __init__(
        self,
        model: BaseSpeechProbabilityModel,
        default_options: Optional[VadOptions] = None,
    ):
        self._model = model
        self._default_options = default_options or VadOptions()
        self._inference_lock = asyncio.Lock()
        self._init_lock = asyncio.Lock()
        self._stream_lock = asyncio.Lock()
        self._closed = False

    @property
    def model(self) -> BaseSpeechProbabilityModel:
        return self._model

    @property
    def default_options(self) -> VadOptions:
        return self._default_options

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise ComponentClosedError("SpeechSegmenter")

    async def _ensure_model_ready(self) -> None:
        if self._model.is_ready:
            return

        async with self._init_lock:
            if self._model.is_ready:
                return
            logger.info(f"SpeechSegmenter 延迟初始化语音概率模型: {self._model.module_id}")
            await self._model.setup()

    async def _infer(self, window_pcm: bytes, sample_rate: int, state):
        window = pcm16_to_float32(window_pcm)
        async with self._inference_lock:
            self._ensure_open()
            return await asyncio.to_thread(self._model.infer, window, sample_rate, state)

    async def detect_speech(
        self,
        audio_chunks: AsyncIterable[bytes],
        options: Optional[VadOptions] = None,
    ) -> AsyncGenerator[SpeechSegment, None]:
        """从 PCM 字节流中检测语音段

        Args:
            audio_chunks: 16-bit 小端单声道 PCM 字节块（大小任意）
            options: 分段参数，缺省使用构造时的默认值

        Yields:
            SpeechSegment: 按时间顺序发出的语音段

        Raises:
            ComponentClosedError: 分段器已关闭
        """
        self._ensure_open()
        await self._ensure_model_ready()

        opts = options or self._default_options
        if self._model.supports_interleaved_streams:
            stream_guard = contextlib.nullcontext()
        else:
            # 模型内部状态无法按流切换，整条流独占模型
            stream_guard = self._stream_lock

        async with stream_guard:
            async with contextlib.aclosing(self._segments(audio_chunks, opts)) as segments:
                async for segment in segments:
                    yield segment

    async def _segments(
        self,
        audio_chunks: AsyncIterable[bytes],
        opts: VadOptions,
    ) -> AsyncGenerator[SpeechSegment, None]:
        window_size = self._model.window_size_for(opts.sample_rate)
        window_bytes = window_size * AUDIO_SAMPLE_WIDTH

        tracker = _SegmentTracker(opts, window_size)
        state = self._model.initial_state()
        # 不足一个窗口的数据（包括奇数个字节）留到下一块
        pending = bytearray()
        segment_count = 0

        async for chunk in audio_chunks:
            self._ensure_open()
            if not chunk:
                continue
            pending.extend(chunk)

            while len(pending) >= window_bytes:
                window_pcm = bytes(pending[:window_bytes])
                del pending[:window_bytes]

                probability, state = await self._infer(window_pcm, opts.sample_rate, state)
                segment = tracker.push(window_pcm, probability)
                if segment is not None:
                    segment_count += 1
                    logger.debug(f"SpeechSegmenter 检测到语音段: {segment}")
                    yield segment

        segment = tracker.finish()
        if segment is not None:
            segment_count += 1
            logger.debug(f"SpeechSegmenter 输入结束，发出最后语音段: {segment}")
            yield segment

        logger.debug(
            f"SpeechSegmenter 处理结束: samples={tracker.total_samples}, segments={segment_count}"
        )

    async def close(self) -> None:
        """关闭分段器；不负责关闭模型（模型由创建者管理）"""
        if self._closed:
            return
        async with self._inference_lock:
            self._closed = True
        logger.info("SpeechSegmenter 已关闭")
