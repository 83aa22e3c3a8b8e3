"""适配器注册器

每类能力端口（VAD / ASR / LLM / TTS）一个注册器，按适配器类型名延迟导入实现类，
使核心层不依赖 torch、funasr、langchain、edge-tts 等第三方库。

    vad_registry = AdapterRegistry("VAD", BaseSpeechProbabilityModel)
    vad_registry.register("silero", "realtime_voice.adapters.vad.silero_vad_adapter")
    model = vad_registry.create("silero", module_id="vad", config={})
"""

from importlib import import_module
from typing import Any, Callable, Dict, Generic, List, Type, TypeVar

from realtime_voice.core.models.exceptions import ModuleInitializationError
from realtime_voice.utils.logging_setup import logger

T = TypeVar("T")


def _import_adapter_class(loader_path: str) -> Type[Any]:
    """解析 "module.path:ClassName" 或 "module.path"（调用模块的 load() 函数）"""
    if ":" in loader_path:
        module_path, class_name = loader_path.rsplit(":", 1)
        return getattr(import_module(module_path), class_name)
    return import_module(loader_path).load()


class AdapterRegistry(Generic[T]):
    """适配器注册器

    Attributes:
        name: 注册器名称，用于日志和错误消息
        base_class: 适配器必须继承的端口基类
    """

    def __init__(self, name: str, base_class: Type[T]):
        self.name = name
        self.base_class = base_class
        self._loaders: Dict[str, Callable[[], Type[T]]] = {}

    @property
    def available_types(self) -> List[str]:
        return list(self._loaders.keys())

    def is_registered(self, adapter_type: str) -> bool:
        return adapter_type in self._loaders

    def register(self, adapter_type: str, loader_path: str) -> "AdapterRegistry[T]":
        """按导入路径注册（首次 create 时才导入）"""
        self._loaders[adapter_type] = lambda: _import_adapter_class(loader_path)
        return self

    def register_class(self, adapter_type: str, adapter_class: Type[T]) -> "AdapterRegistry[T]":
        """直接注册已导入的类"""
        self._loaders[adapter_type] = lambda: adapter_class
        return self

    def create(self, adapter_type: str, module_id: str, config: Dict[str, Any], **kwargs: Any) -> T:
        """创建适配器实例

        Raises:
            ModuleInitializationError: 类型未注册、导入失败、类型不符或构造失败
        """
        loader = self._loaders.get(adapter_type)
        if loader is None:
            raise ModuleInitializationError(
                f"不支持的 {self.name} 适配器类型: '{adapter_type}'，可用类型: {self.available_types}",
                module_id=module_id,
                adapter_type=adapter_type,
            )

        try:
            adapter_class = loader()
        except ImportError as e:
            raise ModuleInitializationError(
                f"导入 {self.name} 适配器 '{adapter_type}' 失败: {e}",
                module_id=module_id,
                adapter_type=adapter_type,
            ) from e

        if not (isinstance(adapter_class, type) and issubclass(adapter_class, self.base_class)):
            raise ModuleInitializationError(
                f"适配器 '{adapter_type}' 的类 {adapter_class!r} 不是 {self.base_class.__name__} 的子类",
                module_id=module_id,
                adapter_type=adapter_type,
            )

        logger.info(f"{self.name} 注册器: 创建 '{adapter_type}' 适配器 ({adapter_class.__name__})，模块ID: {module_id}")
        try:
            return adapter_class(module_id=module_id, config=config, **kwargs)
        except ModuleInitializationError:
            raise
        except Exception as e:
            raise ModuleInitializationError(
                f"创建 {self.name} 适配器 '{adapter_type}' 失败: {e}",
                module_id=module_id,
                adapter_type=adapter_type,
            ) from e
