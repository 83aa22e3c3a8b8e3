import pytest

from conftest import FakeASR, FakeLLM
from realtime_voice.core.adapter_loader import AdapterLoader, create_default_loader
from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces import BaseASR, BaseLLM
from realtime_voice.core.models.exceptions import ModuleInitializationError


class ExplodingASR(FakeASR):
    def __init__(self, module_id, config=None):
        raise RuntimeError("constructor exploded")


@pytest.fixture
def registry():
    return AdapterRegistry("ASR", BaseASR).register_class("fake", FakeASR)


class TestAdapterRegistry:

    def test_create_registered_class(self, registry):
        asr = registry.create("fake", module_id="asr", config={"language": "en-US"})

        assert isinstance(asr, FakeASR)
        assert asr.module_id == "asr"
        assert asr.language == "en-US"

    def test_register_by_import_path(self):
        registry = AdapterRegistry("ASR", BaseASR).register("fake", "conftest:FakeASR")

        assert registry.is_registered("fake")
        assert isinstance(registry.create("fake", "asr", {}), FakeASR)

    def test_unknown_type(self, registry):
        with pytest.raises(ModuleInitializationError) as exc_info:
            registry.create("missing", "asr", {})
        assert exc_info.value.details["adapter_type"] == "missing"
        assert "fake" in str(exc_info.value)

    def test_import_failure(self):
        registry = AdapterRegistry("ASR", BaseASR).register("broken", "realtime_voice.adapters.asr.no_such_module")

        with pytest.raises(ModuleInitializationError):
            registry.create("broken", "asr", {})

    def test_wrong_base_class(self):
        registry = AdapterRegistry("ASR", BaseASR).register_class("llm", FakeLLM)

        with pytest.raises(ModuleInitializationError, match="BaseASR"):
            registry.create("llm", "asr", {})

    def test_constructor_failure_is_wrapped(self):
        registry = AdapterRegistry("ASR", BaseASR).register_class("exploding", ExplodingASR)

        with pytest.raises(ModuleInitializationError) as exc_info:
            registry.create("exploding", "asr", {})
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_available_types(self, registry):
        registry.register_class("other", FakeASR)
        assert registry.available_types == ["fake", "other"]


class TestAdapterLoader:

    def test_dispatches_by_module_type(self):
        loader = (
            AdapterLoader()
            .register("asr", AdapterRegistry("ASR", BaseASR).register_class("fake", FakeASR))
            .register("llm", AdapterRegistry("LLM", BaseLLM).register_class("fake", FakeLLM))
        )

        assert isinstance(loader.create("llm", "fake", "llm", {}), FakeLLM)
        assert loader.registered_types == ["asr", "llm"]

    def test_unknown_module_type(self):
        with pytest.raises(ModuleInitializationError, match="tts"):
            AdapterLoader().create("tts", "edge_tts", "tts", {})

    def test_default_loader_registers_builtin_adapters(self):
        loader = create_default_loader()

        for module_type in ("vad", "asr", "llm", "tts"):
            assert loader.has_registry(module_type)
        assert loader._registries["vad"].is_registered("silero")
        assert loader._registries["asr"].is_registered("funasr_sensevoice")
        assert loader._registries["llm"].is_registered("langchain")
        assert loader._registries["tts"].is_registered("edge_tts")
