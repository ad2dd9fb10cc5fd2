import pytest

from agentbuddy.history import ConversationHistory


def test_history_starts_with_system_message():
    history = ConversationHistory("You are a planner.")
    assert len(history) == 1
    assert history[0].role == "system"
    assert history.system_prompt == "You are a planner."


def test_messages_keep_append_order():
    history = ConversationHistory("sys")
    history.append_user("make a file")
    history.append_assistant('{"phase": "analyze", "summary": "x"}')
    history.append_assistant('{"phase": "convert", "phases": []}')

    assert [m.role for m in history] == ["system", "user", "assistant", "assistant"]
    assert history.last.content == '{"phase": "convert", "phases": []}'


def test_second_system_message_is_rejected():
    history = ConversationHistory("sys")
    with pytest.raises(ValueError):
        history.append("system", "new rules")
    assert len(history) == 1


def test_as_messages_returns_plain_dicts():
    history = ConversationHistory("sys")
    history.append_user("hi")
    assert history.as_messages() == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


def test_messages_are_immutable():
    history = ConversationHistory("sys")
    with pytest.raises(Exception):
        history[0].content = "changed"
    assert history.system_prompt == "sys"
