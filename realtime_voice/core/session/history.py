from typing import List

from realtime_voice.core.models import ConversationMessage


def trim_history(messages: List[ConversationMessage], max_messages: int) -> None:
    """原地裁剪会话历史

    保留最前面的一条系统消息（如果有）以及最近 max_messages 条
    非系统消息，保持原有相对顺序。按消息条数计，而不是按轮次。
    """
    if max_messages < 0:
        raise ValueError(f"max_messages 不能为负数: {max_messages}")

    system_message = next((m for m in messages if m.is_system), None)
    others = [m for m in messages if not m.is_system]

    if max_messages == 0:
        others = []
    elif len(others) > max_messages:
        others = others[-max_messages:]

    trimmed = ([system_message] if system_message is not None else []) + others
    if len(trimmed) != len(messages):
        messages[:] = trimmed
