"""能力模块基类

VAD 概率模型、ASR、LLM、TTS 适配器共享同一套生命周期：

    created --setup()--> ready --close()--> closed

setup() 幂等且并发安全；close() 可重复调用；closed 是终态，之后的 setup()
和任何处理方法都抛出 ComponentClosedError。
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from realtime_voice.core.models.exceptions import ComponentClosedError, ConfigurationError
from realtime_voice.utils.logging_setup import logger

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class BaseModule(ABC):

    def __init__(self, module_id: str, config: Optional[Dict[str, Any]] = None):
        self.module_id = module_id
        self.config: Dict[str, Any] = config or {}
        self._is_ready = False
        self._is_closed = False
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    @property
    def is_closed(self) -> bool:
        return self._is_closed

    @property
    def display_name(self) -> str:
        return f"{type(self).__name__}[{self.module_id}]"

    def validate_config(self, config_model: Type[ConfigT]) -> ConfigT:
        """按 config_model 校验 self.config，失败时抛出 ConfigurationError"""
        try:
            return config_model.model_validate(self.config)
        except ValidationError as e:
            raise ConfigurationError(
                f"模块 {self.module_id} 配置无效: {e.error_count()} 处错误",
                details={"module_id": self.module_id, "errors": e.errors(include_url=False)},
            ) from e

    def _ensure_open(self) -> None:
        if self._is_closed:
            raise ComponentClosedError(self.display_name)

    async def setup(self) -> None:
        self._ensure_open()
        if self._is_ready:
            return

        async with self._lifecycle_lock:
            # 等锁期间可能已被其他协程初始化或关闭
            self._ensure_open()
            if self._is_ready:
                return
            started = time.perf_counter()
            await self._setup_impl()
            self._is_ready = True

        logger.info(f"{self.display_name} 就绪，耗时 {time.perf_counter() - started:.2f}s")

    @abstractmethod
    async def _setup_impl(self) -> None:
        """加载模型或建立客户端"""

    async def close(self) -> None:
        async with self._lifecycle_lock:
            if self._is_closed:
                return
            self._is_closed = True
            was_ready, self._is_ready = self._is_ready, False
            if was_ready:
                await self._close_impl()
        logger.info(f"{self.display_name} 已关闭")

    async def _close_impl(self) -> None:
        """释放 _setup_impl 获取的资源，默认无操作"""

    async def health_check(self) -> Dict[str, Any]:
        if self._is_closed:
            status = "closed"
        elif self._is_ready:
            status = "healthy"
        else:
            status = "not_ready"
        return {"module_id": self.module_id, "is_ready": self._is_ready, "status": status}

    async def __aenter__(self):
        await self.setup()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
