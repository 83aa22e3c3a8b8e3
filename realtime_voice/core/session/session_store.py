"""会话存储

会话 ID 映射到一份有序、可变的消息历史。同一会话 ID 每次取到的都是
同一个列表对象，管道直接在该列表上读写。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List

from realtime_voice.core.models import ConversationMessage, validate_session_id
from realtime_voice.core.models.exceptions import ComponentClosedError
from realtime_voice.utils.logging_setup import logger


class ConversationSession:
    """单个会话：消息历史与串行化同一会话各轮对话的锁"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.messages: List[ConversationMessage] = []
        self.lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"ConversationSession(id={self.session_id!r}, messages={len(self.messages)})"


class ConversationSessionStore(ABC):
    """会话存储接口"""

    @abstractmethod
    async def get_or_create(self, session_id: str) -> List[ConversationMessage]:
        """获取会话历史，不存在则创建空历史

        Raises:
            InvalidSessionIdError: 会话 ID 非法
            ComponentClosedError: 存储已关闭
        """

    @abstractmethod
    async def remove(self, session_id: str) -> None:
        """删除会话（不存在时什么也不做）"""

    @abstractmethod
    async def lock_for(self, session_id: str) -> asyncio.Lock:
        """获取会话锁，不存在则创建会话"""

    @abstractmethod
    async def session_ids(self) -> List[str]:
        """当前存在的会话 ID"""

    async def close(self) -> None:
        """关闭存储，之后的任何操作都抛出 ComponentClosedError"""


class InMemoryConversationSessionStore(ConversationSessionStore):
    """进程内会话存储

    用 asyncio.Lock 保护的字典实现，进程退出即丢失。
    不做过期淘汰，会话只能通过 remove() 删除。
    """

    def __init__(self):
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise ComponentClosedError(self.__class__.__name__)

    async def _get_or_create_session(self, session_id: str) -> ConversationSession:
        validate_session_id(session_id)
        self._ensure_open()

        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = ConversationSession(session_id)
                self._sessions[session_id] = session
                logger.debug(f"SessionStore 创建会话: {session_id}")
            return session

    async def get_or_create(self, session_id: str) -> List[ConversationMessage]:
        session = await self._get_or_create_session(session_id)
        return session.messages

    async def lock_for(self, session_id: str) -> asyncio.Lock:
        session = await self._get_or_create_session(session_id)
        return session.lock

    async def remove(self, session_id: str) -> None:
        validate_session_id(session_id)
        self._ensure_open()

        async with self._lock:
            removed = self._sessions.pop(session_id, None)

        if removed is not None:
            logger.debug(f"SessionStore 删除会话: {session_id}")

    async def session_ids(self) -> List[str]:
        self._ensure_open()
        async with self._lock:
            return list(self._sessions.keys())

    async def close(self) -> None:
        if self._closed:
            return

        async with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
            self._closed = True

        logger.info(f"SessionStore 已关闭，清理 {count} 个会话")
