import asyncio

import numpy as np
import pytest

from conftest import FakeASR, FakeSpeechModel
from realtime_voice.core.config_models import VADModuleConfig
from realtime_voice.core.models.exceptions import ComponentClosedError, ConfigurationError


class TestBaseModuleLifecycle:

    @pytest.mark.asyncio
    async def test_setup_is_idempotent(self):
        model = FakeSpeechModel()

        await model.setup()
        await model.setup()

        assert model.is_ready
        assert model.setup_calls == 1

    @pytest.mark.asyncio
    async def test_concurrent_setup_runs_once(self):
        model = FakeSpeechModel()

        await asyncio.gather(model.setup(), model.setup(), model.setup())

        assert model.setup_calls == 1

    @pytest.mark.asyncio
    async def test_config_error_details(self):
        broken = FakeSpeechModel(config={"threshold": 3})

        with pytest.raises(ConfigurationError) as exc_info:
            broken.validate_config(VADModuleConfig)

        assert exc_info.value.details["errors"][0]["loc"] == ("threshold",)

    @pytest.mark.asyncio
    async def test_close_then_setup_fails(self):
        model = FakeSpeechModel()
        await model.setup()

        await model.close()
        await model.close()

        assert model.is_closed
        assert not model.is_ready
        with pytest.raises(ComponentClosedError):
            await model.setup()

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with FakeASR() as asr:
            assert asr.is_ready
        assert asr.is_closed

    @pytest.mark.asyncio
    async def test_health_check_states(self):
        asr = FakeASR()
        assert (await asr.health_check())["status"] == "not_ready"
        await asr.setup()
        assert (await asr.health_check())["status"] == "healthy"
        await asr.close()
        assert (await asr.health_check())["status"] == "closed"

    def test_validate_config(self):
        model = FakeSpeechModel(config={"threshold": 0.7})
        assert model.validate_config(VADModuleConfig).threshold == 0.7

        broken = FakeSpeechModel(config={"threshold": 3})
        with pytest.raises(ConfigurationError):
            broken.validate_config(VADModuleConfig)


class TestPortDefaults:

    def test_vad_window_size(self):
        model = FakeSpeechModel()
        assert model.window_size_for(16000) == 512
        assert model.window_size_for(8000) == 256
        assert FakeSpeechModel(config={"window_size_samples": 1024}).window_size_for(16000) == 1024

    def test_vad_initial_state_shape(self):
        state = super(FakeSpeechModel, FakeSpeechModel()).initial_state()
        assert state.shape == (2, 1, 128)
        assert not np.any(state)

    @pytest.mark.asyncio
    async def test_asr_stream_yields_single_final_fragment(self):
        fragments = [f async for f in FakeASR(texts=("hello",)).transcribe_stream(b"")]

        assert len(fragments) == 1
        assert fragments[0].text == "hello"
        assert fragments[0].is_final
