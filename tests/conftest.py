from typing import AsyncGenerator, Callable, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pytest

from realtime_voice.core.interfaces import BaseASR, BaseLLM, BaseSpeechProbabilityModel, BaseTTS
from realtime_voice.core.models import AudioData, AudioFormat, ConversationMessage, TextToSpeechOptions

WINDOW = 512
SPEECH_LEVEL = 16384  # 0.5 满量程


def make_pcm(pattern: Iterable[Tuple[str, int]], window: int = WINDOW) -> bytes:
    """按 [("low", 5), ("high", 10)] 这样的窗口模式生成 16-bit PCM"""
    parts = []
    for kind, count in pattern:
        value = SPEECH_LEVEL if kind == "high" else 0
        parts.append(np.full(window * count, value, dtype="<i2").tobytes())
    return b"".join(parts)


async def iter_chunks(data: bytes, chunk_size: int = 1000) -> AsyncGenerator[bytes, None]:
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


class FakeSpeechModel(BaseSpeechProbabilityModel):
    """振幅大于 0.1 的窗口判为语音；状态是推理次数计数"""

    def __init__(self, module_id: str = "fake_vad", config=None, high: float = 0.9, low: float = 0.05):
        super().__init__(module_id, config)
        self.high = high
        self.low = low
        self.setup_calls = 0
        self.windows: List[int] = []
        self.states_seen: List[int] = []

    async def _setup_impl(self) -> None:
        self.setup_calls += 1

    def initial_state(self):
        return 0

    def infer(self, window, sample_rate, state):
        self.windows.append(len(window))
        self.states_seen.append(state)
        probability = self.high if float(np.abs(window).mean()) > 0.1 else self.low
        return probability, state + 1


class FakeASR(BaseASR):
    """按顺序返回预设文本；元素为异常时抛出"""

    def __init__(self, texts: Sequence = ("hello",), module_id: str = "fake_asr", config=None):
        super().__init__(module_id, config)
        self.texts = list(texts)
        self.calls: List[Tuple[bytes, Optional[str]]] = []

    async def _setup_impl(self) -> None:
        pass

    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> str:
        self.calls.append((audio, language))
        index = min(len(self.calls) - 1, len(self.texts) - 1)
        result = self.texts[index]
        if isinstance(result, BaseException):
            raise result
        return result


class FakeLLM(BaseLLM):
    """每次生成按顺序取一个回复，切成若干片段流式返回"""

    def __init__(
        self,
        replies: Sequence = ("Hi there",),
        module_id: str = "fake_llm",
        config=None,
        chunk_size: int = 3,
    ):
        super().__init__(module_id, config or {"model_name": "fake-model"})
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.received: List[List[ConversationMessage]] = []

    async def _setup_impl(self) -> None:
        pass

    async def generate_stream(self, messages: List[ConversationMessage]) -> AsyncGenerator[str, None]:
        self.received.append(list(messages))
        index = min(len(self.received) - 1, len(self.replies) - 1)
        reply = self.replies[index]
        if isinstance(reply, BaseException):
            raise reply
        for start in range(0, len(reply), self.chunk_size):
            yield reply[start:start + self.chunk_size]


class FakeTTS(BaseTTS):
    """每段文本产出固定的几个音频块"""

    output_format = AudioFormat.MP3

    def __init__(self, chunks: Sequence[bytes] = (b"aa", b"", b"bb"), module_id: str = "fake_tts", config=None,
                 error: Optional[Exception] = None):
        super().__init__(module_id, config)
        self.chunks = list(chunks)
        self.error = error
        self.requests: List[Tuple[str, Optional[TextToSpeechOptions]]] = []

    async def _setup_impl(self) -> None:
        pass

    async def synthesize_stream(self, text, options=None) -> AsyncGenerator[AudioData, None]:
        self.requests.append((text, options))
        if self.error is not None:
            raise self.error
        for data in self.chunks:
            yield AudioData(data=data, format=self.output_format)


@pytest.fixture
def pcm_factory() -> Callable[..., bytes]:
    return make_pcm


@pytest.fixture
def chunk_stream() -> Callable[..., AsyncGenerator[bytes, None]]:
    return iter_chunks


@pytest.fixture
def fake_model() -> FakeSpeechModel:
    return FakeSpeechModel()


@pytest.fixture
def fake_asr() -> FakeASR:
    return FakeASR()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_tts() -> FakeTTS:
    return FakeTTS()
