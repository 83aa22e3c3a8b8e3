import asyncio
from typing import Optional

from realtime_voice.utils.logging_setup import session_logger


class InterruptManager:
    """一次对话的打断信号（barge-in）

    调用方在检测到用户重新开口时调用 set_interrupt()；管道在每个 await 之后、
    每次产出事件之前检查 is_interrupted。也可以 await wait() 等待打断发生。

    is_interrupted 是当前信号，reset() 后清除；was_interrupted 记录自上次
    reset_history() 以来是否发生过打断，interrupt_count 统计打断次数。
    """

    def __init__(self, session_id: str = ""):
        self.session_id = session_id
        self._event = asyncio.Event()
        self._seen = False
        self.interrupt_count = 0
        self._log = session_logger(session_id or "-")

    @property
    def is_interrupted(self) -> bool:
        return self._event.is_set()

    @property
    def was_interrupted(self) -> bool:
        return self._seen

    def set_interrupt(self) -> None:
        # 重复打断只计一次
        if self._event.is_set():
            return
        self._event.set()
        self._seen = True
        self.interrupt_count += 1
        self._log.debug(f"收到打断信号 (#{self.interrupt_count})")

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """等待打断信号，超时返回 False"""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def reset(self) -> None:
        """清除当前信号，供下一次调用复用"""
        self._event.clear()

    def reset_history(self) -> None:
        self._seen = False
