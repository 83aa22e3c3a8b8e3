from unittest.mock import patch

import pytest

pytest.importorskip("edge_tts")

from realtime_voice.adapters.tts.edge_tts_adapter import EdgeTTSAdapter  # noqa: E402
from realtime_voice.core.models import AudioFormat, TextToSpeechOptions  # noqa: E402
from realtime_voice.core.models.exceptions import ComponentClosedError, ModuleProcessingError  # noqa: E402

COMMUNICATE = "realtime_voice.adapters.tts.edge_tts_adapter.edge_tts.Communicate"


class FakeCommunicate:
    """模拟 edge_tts.Communicate 的流式输出"""

    def __init__(self, chunks, fail_after=None):
        self.chunks = chunks
        self.fail_after = fail_after

    async def stream(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise ConnectionError("websocket closed")
            yield chunk


AUDIO_CHUNKS = [
    {"type": "audio", "data": b"mp3-1"},
    {"type": "WordBoundary", "offset": 0, "duration": 10, "text": "hi"},
    {"type": "audio", "data": b""},
    {"type": "audio", "data": b"mp3-2"},
]


@pytest.fixture
def adapter():
    return EdgeTTSAdapter("tts", {"voice": "en-US-AriaNeural", "retry_delay": 0})


async def collect(adapter, text, options=None):
    return [chunk async for chunk in adapter.synthesize_stream(text, options)]


class TestEdgeTTSAdapter:

    @pytest.mark.asyncio
    async def test_streams_audio_chunks_only(self, adapter):
        with patch(COMMUNICATE, return_value=FakeCommunicate(AUDIO_CHUNKS)) as mock_communicate:
            chunks = await collect(adapter, "hello")

        assert [c.data for c in chunks] == [b"mp3-1", b"mp3-2"]
        assert all(c.format == AudioFormat.MP3 for c in chunks)
        assert mock_communicate.call_args.args == ("hello", "en-US-AriaNeural")
        assert mock_communicate.call_args.kwargs["rate"] == "+0%"

    @pytest.mark.asyncio
    async def test_options_override_voice_and_rate(self, adapter):
        options = TextToSpeechOptions(voice_id="en-GB-RyanNeural", speed=1.25)

        with patch(COMMUNICATE, return_value=FakeCommunicate(AUDIO_CHUNKS)) as mock_communicate:
            await collect(adapter, "hello", options)

        assert mock_communicate.call_args.args[1] == "en-GB-RyanNeural"
        assert mock_communicate.call_args.kwargs["rate"] == "+25%"

    @pytest.mark.asyncio
    async def test_slower_speed(self, adapter):
        assert adapter._resolve_rate(TextToSpeechOptions(speed=0.8)) == "-20%"
        assert adapter._resolve_rate(None) == "+0%"

    @pytest.mark.asyncio
    async def test_blank_text(self, adapter):
        with patch(COMMUNICATE) as mock_communicate:
            assert await collect(adapter, "   ") == []
        mock_communicate.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_before_first_chunk(self, adapter):
        attempts = [FakeCommunicate(AUDIO_CHUNKS, fail_after=0), FakeCommunicate(AUDIO_CHUNKS)]

        with patch(COMMUNICATE, side_effect=attempts):
            chunks = await collect(adapter, "hello")

        assert [c.data for c in chunks] == [b"mp3-1", b"mp3-2"]

    @pytest.mark.asyncio
    async def test_no_retry_after_audio_was_produced(self, adapter):
        received = []

        with patch(COMMUNICATE, return_value=FakeCommunicate(AUDIO_CHUNKS, fail_after=1)) as mock_communicate:
            with pytest.raises(ModuleProcessingError, match="websocket closed"):
                async for chunk in adapter.synthesize_stream("hello"):
                    received.append(chunk)

        assert [c.data for c in received] == [b"mp3-1"]
        assert mock_communicate.call_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        adapter = EdgeTTSAdapter("tts", {"max_retries": 2, "retry_delay": 0})

        with patch(COMMUNICATE, return_value=FakeCommunicate(AUDIO_CHUNKS, fail_after=0)) as mock_communicate:
            with pytest.raises(ModuleProcessingError):
                await collect(adapter, "hello")

        assert mock_communicate.call_count == 2

    @pytest.mark.asyncio
    async def test_synthesize_concatenates(self, adapter):
        with patch(COMMUNICATE, return_value=FakeCommunicate(AUDIO_CHUNKS)):
            audio = await adapter.synthesize("hello")

        assert audio.data == b"mp3-1mp3-2"
        assert audio.is_final
        assert adapter.media_type == "audio/mpeg"

    @pytest.mark.asyncio
    async def test_closed_adapter(self, adapter):
        await adapter.setup()
        await adapter.close()

        with pytest.raises(ComponentClosedError):
            await collect(adapter, "hello")
