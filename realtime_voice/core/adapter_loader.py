"""适配器加载器

按模块类型（vad / asr / llm / tts）把创建请求转发给对应的注册器，
RealtimeEngine 只依赖这一层。
"""

from typing import Any, Dict, List

from realtime_voice.core.adapter_registry import AdapterRegistry
from realtime_voice.core.interfaces.base_module import BaseModule
from realtime_voice.core.models.exceptions import ModuleInitializationError
from realtime_voice.utils.logging_setup import logger


class AdapterLoader:
    """模块类型 -> 适配器注册器"""

    def __init__(self) -> None:
        self._registries: Dict[str, AdapterRegistry] = {}

    def register(self, module_type: str, registry: AdapterRegistry) -> "AdapterLoader":
        self._registries[module_type] = registry
        logger.debug(f"AdapterLoader: 注册 {module_type} 注册器")
        return self

    def has_registry(self, module_type: str) -> bool:
        return module_type in self._registries

    @property
    def registered_types(self) -> List[str]:
        return list(self._registries.keys())

    def create(
        self,
        module_type: str,
        adapter_type: str,
        module_id: str,
        config: Dict[str, Any],
        **kwargs: Any,
    ) -> BaseModule:
        """创建适配器实例

        Raises:
            ModuleInitializationError: 模块类型未注册或适配器创建失败
        """
        registry = self._registries.get(module_type)
        if registry is None:
            raise ModuleInitializationError(
                f"未注册的模块类型: {module_type}，可用类型: {self.registered_types}",
                module_id=module_id,
                adapter_type=adapter_type,
            )
        return registry.create(adapter_type, module_id, config, **kwargs)


def create_default_loader() -> AdapterLoader:
    """创建注册了全部内置适配器的加载器"""
    from realtime_voice.adapters.asr.asr_factory import asr_registry
    from realtime_voice.adapters.llm.llm_factory import llm_registry
    from realtime_voice.adapters.tts.tts_factory import tts_registry
    from realtime_voice.adapters.vad.vad_factory import vad_registry

    return (
        AdapterLoader()
        .register("vad", vad_registry)
        .register("asr", asr_registry)
        .register("llm", llm_registry)
        .register("tts", tts_registry)
    )
