import pytest

from agentbuddy.tasks import (
    TASK_KINDS,
    CleanTask,
    ContainsTask,
    ShellTask,
    TaskSpecError,
    WriteTask,
    build_task,
)


def test_task_kinds_cover_full_vocabulary():
    assert set(TASK_KINDS) == {
        "shell", "write", "read", "edit", "cd",
        "clean", "contains", "log", "errors", "suggestions",
    }


def test_build_shell_task():
    task = build_task("shell", "npm install")
    assert isinstance(task, ShellTask)
    assert task.input == "npm install"


def test_build_write_task_keeps_content():
    task = build_task("write", "src/App.jsx", "export default 1")
    assert isinstance(task, WriteTask)
    assert task.content == "export default 1"


def test_clean_accepts_single_path_string():
    task = build_task("clean", "dist")
    assert isinstance(task, CleanTask)
    assert task.input == ["dist"]


def test_clean_accepts_path_list():
    task = build_task("clean", ["a.txt", "build"])
    assert task.input == ["a.txt", "build"]


def test_contains_stringifies_non_text_content():
    task = build_task("contains", "notes.txt", 42)
    assert isinstance(task, ContainsTask)
    assert task.content == "42"


def test_unknown_kind_is_rejected():
    with pytest.raises(TaskSpecError):
        build_task("format_disk", "/")


def test_list_input_for_write_is_rejected():
    with pytest.raises(TaskSpecError):
        build_task("write", ["a.txt", "b.txt"], "x")


def test_empty_path_is_rejected():
    with pytest.raises(TaskSpecError):
        build_task("read", "")
