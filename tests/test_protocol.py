import json

import pytest

from agentbuddy.protocol import (
    ActionReply,
    AnalyzeReply,
    ConvertReply,
    ExitReply,
    OutputReply,
    ProtocolViolation,
    parse_reply,
    serialize_reply,
)
from agentbuddy.tasks import TaskOutcome


def _parse(obj) -> object:
    return parse_reply(json.dumps(obj))


# ---------------------------------------------------------------------------
# Valid replies
# ---------------------------------------------------------------------------

def test_analyze_reply():
    reply = _parse({"phase": "analyze", "summary": "User wants a notes file"})
    assert isinstance(reply, AnalyzeReply)
    assert reply.summary == "User wants a notes file"


def test_legacy_step_and_content_keys():
    reply = _parse({"step": "analyze", "content": "User wants a Vite app"})
    assert isinstance(reply, AnalyzeReply)
    assert reply.summary == "User wants a Vite app"


def test_convert_reply_keeps_step_order():
    reply = _parse({"phase": "convert", "phases": ["b", "a", "c"]})
    assert isinstance(reply, ConvertReply)
    assert reply.phases == ["b", "a", "c"]


def test_convert_reply_legacy_key():
    reply = _parse({"step": "convert", "PHASES": ["one"]})
    assert reply.phases == ["one"]


def test_action_reply():
    reply = _parse({
        "phase": "action",
        "taskType": "write",
        "taskInput": "notes.txt",
        "taskContent": "hi",
    })
    assert isinstance(reply, ActionReply)
    assert (reply.task_type, reply.task_input, reply.task_content) == ("write", "notes.txt", "hi")
    assert reply.has_task


def test_action_reply_legacy_keys():
    reply = _parse({
        "step": "action",
        "function": "executeTask",
        "fType": "Shell",
        "fInput": "npm install",
        "fContent": "",
    })
    assert reply.task_type == "shell"
    assert reply.task_input == "npm install"


def test_action_reply_without_task_fields_still_parses():
    reply = _parse({"phase": "action"})
    assert isinstance(reply, ActionReply)
    assert not reply.has_task


def test_action_reply_accepts_path_list_for_clean():
    reply = _parse({"phase": "action", "taskType": "clean", "taskInput": ["a", "b"]})
    assert reply.task_input == ["a", "b"]


def test_action_reply_stringifies_object_content():
    reply = _parse({
        "phase": "action",
        "taskType": "write",
        "taskInput": "package.json",
        "taskContent": {"name": "app"},
    })
    assert json.loads(reply.task_content) == {"name": "app"}


def test_output_reply():
    reply = _parse({
        "phase": "output",
        "content": "done",
        "packagesInstalled": ["vite", "tailwindcss"],
    })
    assert isinstance(reply, OutputReply)
    assert reply.content == "done"
    assert reply.packages_installed == ["vite", "tailwindcss"]


def test_output_reply_legacy_packages_key():
    reply = _parse({"step": "output", "PackagesInstalled": ["react"], "componentName": "App"})
    assert reply.packages_installed == ["react"]
    assert reply.component_name == "App"


def test_exit_reply():
    assert isinstance(_parse({"phase": "exit"}), ExitReply)


def test_phase_is_normalized():
    assert isinstance(_parse({"phase": " Output "}), OutputReply)


# ---------------------------------------------------------------------------
# Violations
# ---------------------------------------------------------------------------

def test_plain_text_is_a_violation():
    with pytest.raises(ProtocolViolation) as excinfo:
        parse_reply("Sure! First I will create the file.")
    assert excinfo.value.raw == "Sure! First I will create the file."


def test_non_object_json_is_a_violation():
    with pytest.raises(ProtocolViolation):
        parse_reply('["analyze"]')


def test_missing_phase_is_a_violation():
    with pytest.raises(ProtocolViolation):
        _parse({"summary": "no phase here"})


def test_unknown_phase_is_a_violation():
    with pytest.raises(ProtocolViolation):
        _parse({"phase": "celebrate"})


def test_convert_without_phases_is_a_violation():
    with pytest.raises(ProtocolViolation):
        _parse({"phase": "convert"})


def test_unknown_task_type_is_a_violation():
    with pytest.raises(ProtocolViolation):
        _parse({"phase": "action", "taskType": "format_disk", "taskInput": "/"})


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def test_serialize_uses_camel_case_and_drops_unset_fields():
    reply = _parse({"fType": "read", "fInput": "a.txt", "step": "action"})
    data = json.loads(serialize_reply(reply))
    assert data == {"phase": "action", "taskType": "read", "taskInput": "a.txt"}


def test_serialize_includes_task_outcome():
    reply = _parse({"phase": "action", "taskType": "shell", "taskInput": "false"})
    reply = reply.model_copy(update={
        "task_outcome": TaskOutcome(status="failed", error="", exit_code=1),
    })
    data = json.loads(serialize_reply(reply))
    assert data["taskOutcome"]["status"] == "failed"
    assert data["taskOutcome"]["exit_code"] == 1


def test_serialized_reply_parses_back():
    reply = _parse({"phase": "output", "content": "ok", "packagesInstalled": ["x"]})
    assert parse_reply(serialize_reply(reply)) == reply


def test_serialize_keeps_null_task_result():
    reply = _parse({"phase": "action", "taskType": "read", "taskInput": "missing.txt"})
    reply = reply.model_copy(update={"task_outcome": TaskOutcome(status="ok")})
    data = json.loads(serialize_reply(reply))
    assert data["taskOutcome"] == {"status": "ok", "result": None}
    assert "taskContent" not in data
