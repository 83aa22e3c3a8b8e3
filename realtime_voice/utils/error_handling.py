"""适配器方法的异常转换装饰器

同步和异步方法都适用。框架异常原样抛出，其余异常转换为 ModuleProcessingError，
并在 details 中带上出错的模块 ID 和操作名，便于管道按语音段上报。
"""

import functools
import inspect
from typing import Callable, Type

from realtime_voice.core.models.exceptions import FrameworkException, ModuleProcessingError
from realtime_voice.utils.logging_setup import logger


def _owner_name(instance) -> str:
    return getattr(instance, "module_id", None) or type(instance).__name__


def _convert(instance, error_class: Type[FrameworkException], operation_name: str, exc: Exception):
    owner = _owner_name(instance)
    logger.error(f"[{owner}] {operation_name} 失败: {exc}", exc_info=True)
    return error_class(
        f"Failed to perform {operation_name}: {exc}",
        details={"module": owner, "operation": operation_name},
    )


def handle_module_errors(
    error_class: Type[FrameworkException] = ModuleProcessingError,
    operation_name: str = "operation",
):
    """把方法内的意外异常转换为 error_class，原始异常保留在 __cause__ 上"""

    def decorator(func: Callable):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                try:
                    return await func(self, *args, **kwargs)
                except FrameworkException:
                    raise
                except Exception as e:
                    raise _convert(self, error_class, operation_name, e) from e
            return async_wrapper

        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except FrameworkException:
                raise
            except Exception as e:
                raise _convert(self, error_class, operation_name, e) from e
        return wrapper

    return decorator


def require_model(model_attr: str = "model"):
    """模型属性为 None 时拒绝调用（适配器尚未 setup 或已 close）"""

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            if getattr(self, model_attr, None) is None:
                raise ModuleProcessingError(
                    f"{_owner_name(self)}: '{model_attr}' is not loaded",
                    details={"module": _owner_name(self), "attribute": model_attr},
                )
            return func(self, *args, **kwargs)
        return wrapper

    return decorator
