"""LangChain LLM 适配器

通过 model_name、api_key、base_url 三个参数配置任意 LangChain 聊天模型。
会话历史由管道维护，每次生成都传入完整历史，适配器本身不保存状态。
"""

import asyncio
import os
from typing import Any, AsyncGenerator, Dict, List, Optional, Type

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from realtime_voice.core.interfaces.base_llm import BaseLLM
from realtime_voice.core.models import ConversationMessage, MessageRole
from realtime_voice.core.models.exceptions import ModuleInitializationError, ModuleProcessingError
from realtime_voice.utils.logging_setup import logger


class LangChainLLMAdapter(BaseLLM):
    """LangChain LLM 适配器

    配置示例:
        # OpenAI 兼容端点（OpenRouter 等）
        model_name: "anthropic/claude-3-opus"
        api_key_env_var: "OPENROUTER_API_KEY"
        base_url: "https://openrouter.ai/api/v1"

        # 由 init_chat_model 按模型名选择客户端
        model_name: "gpt-4o-mini"
        api_key_env_var: "OPENAI_API_KEY"

    也可以直接传入 chat_model（任意 BaseChatModel 实例），此时不需要 API Key。
    """

    MAX_RETRIES = 3
    RETRY_DELAY = 1.0

    def __init__(
        self,
        module_id: str,
        config: Optional[Dict[str, Any]] = None,
        chat_model: Optional[BaseChatModel] = None,
    ):
        super().__init__(module_id, config)

        self.llm: Optional[BaseChatModel] = chat_model
        self.api_key = None if chat_model is not None else self._resolve_api_key()
        self.base_url = self._resolve_base_url()
        self.max_retries = self.config.get("max_retries", self.MAX_RETRIES)
        self.retry_delay = self.config.get("retry_delay", self.RETRY_DELAY)

        logger.info(f"LLM [{self.module_id}] 配置:")
        logger.info(f"  - model: {self.model_name}")
        logger.info(f"  - base_url: {self.base_url or 'default'}")
        logger.info(f"  - temperature: {self.temperature}")

    def _resolve_api_key(self) -> str:
        """解析 API Key（环境变量优先）"""
        if api_key_env := self.config.get("api_key_env_var"):
            if env_value := os.getenv(api_key_env):
                logger.debug(f"LLM [{self.module_id}] 从环境变量 '{api_key_env}' 读取 API Key")
                return env_value
            logger.warning(f"LLM [{self.module_id}] 环境变量 '{api_key_env}' 未设置")

        if config_key := self.config.get("api_key"):
            return config_key

        raise ModuleInitializationError(
            "缺少 API Key，请设置环境变量或在配置中提供 'api_key'",
            module_id=self.module_id,
            adapter_type="langchain",
        )

    def _resolve_base_url(self) -> Optional[str]:
        if base_url_env := self.config.get("base_url_env_var"):
            if env_value := os.getenv(base_url_env):
                return env_value
        return self.config.get("base_url")

    def _init_model(self) -> BaseChatModel:
        kwargs: Dict[str, Any] = {"temperature": self.temperature}
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens

        # 有 base_url 时走 OpenAI 兼容模式
        if self.base_url:
            from langchain_openai import ChatOpenAI

            return ChatOpenAI(
                model=self.model_name,
                api_key=self.api_key,
                base_url=self.base_url,
                **kwargs,
            )

        from langchain.chat_models import init_chat_model

        return init_chat_model(model=self.model_name, api_key=self.api_key, **kwargs)

    async def _setup_impl(self) -> None:
        if self.llm is not None:
            logger.info(f"LLM [{self.module_id}] 使用注入的聊天模型: {type(self.llm).__name__}")
            return

        logger.info(f"LLM [{self.module_id}] 正在初始化...")
        try:
            self.llm = self._init_model()
        except Exception as e:
            logger.error(f"LLM [{self.module_id}] 初始化失败: {e}", exc_info=True)
            raise ModuleInitializationError(
                f"LLM 初始化失败: {e}",
                module_id=self.module_id,
                adapter_type="langchain",
            ) from e
        logger.info(f"LLM [{self.module_id}] 初始化成功")

    @staticmethod
    def _to_langchain_messages(messages: List[ConversationMessage]) -> List[BaseMessage]:
        converted: List[BaseMessage] = []
        for message in messages:
            if message.role == MessageRole.SYSTEM:
                converted.append(SystemMessage(content=message.content))
            elif message.role == MessageRole.USER:
                converted.append(HumanMessage(content=message.content))
            else:
                converted.append(AIMessage(content=message.content))
        return converted

    @staticmethod
    def _chunk_text(chunk: Any) -> str:
        content = getattr(chunk, "content", "")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return ""

    async def generate_stream(
        self,
        messages: List[ConversationMessage],
    ) -> AsyncGenerator[str, None]:
        """流式生成

        尚未产出任何片段时的失败会重试；已经产出片段后失败直接抛出，避免重复输出。
        """
        self._ensure_open()
        if self.llm is None:
            raise ModuleProcessingError("LLM 未初始化")

        lc_messages = self._to_langchain_messages(messages)

        for attempt in range(self.max_retries + 1):
            produced = False
            try:
                async for chunk in self.llm.astream(lc_messages):
                    text = self._chunk_text(chunk)
                    if text:
                        produced = True
                        yield text
                return
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if produced or attempt >= self.max_retries:
                    logger.error(f"LLM [{self.module_id}] 生成失败: {e}", exc_info=True)
                    raise ModuleProcessingError(f"生成失败: {e}") from e
                logger.warning(f"LLM [{self.module_id}] 重试 {attempt + 1}/{self.max_retries}: {e}")
                await asyncio.sleep(self.retry_delay * (attempt + 1))

    async def _close_impl(self) -> None:
        self.llm = None


def load() -> Type[LangChainLLMAdapter]:
    """加载适配器类"""
    return LangChainLLMAdapter
