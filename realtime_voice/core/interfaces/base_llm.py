from abc import abstractmethod
from typing import Any, AsyncGenerator, Dict, List, Optional

from realtime_voice.core.interfaces.base_module import BaseModule
from realtime_voice.core.models import ConversationMessage
from realtime_voice.utils.logging_setup import logger


class BaseLLM(BaseModule):
    """大语言模型模块基类

    职责:
    - 定义基于完整会话历史的流式生成接口

    子类需要实现:
    - generate_stream: 流式生成回复文本片段
    """

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(module_id, config)

        self.model_name = self.config.get("model_name", "unknown")
        self.temperature = self.config.get("temperature", 0.7)
        self.max_tokens = self.config.get("max_tokens", 2000)

        logger.debug(f"LLM [{self.module_id}] 配置加载:")
        logger.debug(f"  - model_name: {self.model_name}")
        logger.debug(f"  - temperature: {self.temperature}")

    @property
    def model_id(self) -> Optional[str]:
        """生成所用的模型标识"""
        return self.model_name

    @abstractmethod
    async def generate_stream(
        self,
        messages: List[ConversationMessage],
    ) -> AsyncGenerator[str, None]:
        """基于会话历史（含系统提示）流式生成回复片段"""
        raise NotImplementedError("LLM 子类必须实现 generate_stream 方法")
        yield  # pragma: no cover

    async def generate(self, messages: List[ConversationMessage]) -> str:
        """批量生成，默认拼接流式结果"""
        parts: List[str] = []
        async for chunk in self.generate_stream(messages):
            parts.append(chunk)
        return "".join(parts)
