import pytest

from realtime_voice.core.models import ConversationMessage
from realtime_voice.core.session import trim_history


def conversation(turns, system="be brief"):
    messages = [ConversationMessage.system(system)] if system else []
    for i in range(1, turns + 1):
        messages.append(ConversationMessage.user(f"u{i}"))
        messages.append(ConversationMessage.assistant(f"a{i}"))
    return messages


class TestTrimHistory:

    def test_keeps_system_and_most_recent(self):
        messages = conversation(3)

        trim_history(messages, 2)

        assert [m.content for m in messages] == ["be brief", "u3", "a3"]

    def test_under_limit_is_untouched(self):
        messages = conversation(2)
        before = list(messages)

        trim_history(messages, 10)

        assert messages == before

    def test_trims_in_place(self):
        messages = conversation(5)
        same = messages

        trim_history(messages, 4)

        assert same is messages
        assert len(messages) == 5
        assert messages[0].is_system

    def test_without_system_message(self):
        messages = conversation(3, system=None)

        trim_history(messages, 3)

        assert [m.content for m in messages] == ["a2", "u3", "a3"]

    def test_zero_keeps_only_system(self):
        messages = conversation(2)

        trim_history(messages, 0)

        assert [m.content for m in messages] == ["be brief"]

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            trim_history(conversation(1), -1)
