"""
Tests for the operation tracker.
"""
import json

import pytest

from retrace.errors import ErrorKind
from retrace.models import CascadePolicy, OperationKind, OperationStatus
from retrace.operations.interfaces import OperationResult
from retrace.operations.registry import StrategyRegistry
from retrace.operations.strategies import BashCommandStrategy
from retrace.tracker import OperationTracker, compute_workspace_id


def _registry_with(kind, strategy):
    defaults = StrategyRegistry()
    table = {k: defaults.get_strategy(k) for k in OperationKind}
    table[kind] = strategy
    return StrategyRegistry(table)


@pytest.fixture
def created_then_edited(tracker, workspace):
    """A file created and then edited, as an agent would leave it."""
    path = workspace / "main.py"
    path.write_text("print('hi')\n")
    create = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(path), "content": "print('hi')\n"})
    path.write_text("print('hello')\n")
    edit = tracker.record(OperationKind.FILE_EDIT, {
        "file_path": str(path), "old_string": "hi", "new_string": "hello",
    })
    return path, create, edit


# --- Recording ---

def test_record_appends_in_order_with_indexes(tracker):
    tracker.set_current_session("session-1")
    first = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"}, message_id="m1")
    second = tracker.record(OperationKind.BASH_COMMAND, {"command": "pwd"}, message_id="m1")
    third = tracker.record(OperationKind.BASH_COMMAND, {"command": "make"}, message_id="m2",
                           status=OperationStatus.FAILED, error="exit 2")

    assert tracker.operations == [first, second, third]
    assert first.session_id == "session-1"
    assert tracker.get_operations_by_message("m1") == [first, second]
    assert third.status == OperationStatus.FAILED and third.error == "exit 2"
    assert tracker.get_session_operations("session-1") == [first, second, third]


def test_record_uses_explicit_id_and_rejects_duplicates(tracker):
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"}, operation_id="toolu_01")

    assert op.id == "toolu_01"
    with pytest.raises(ValueError):
        tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"}, operation_id="toolu_01")


def test_current_session_includes_operations_without_session(tracker):
    early = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})
    tracker.set_current_session("s1")
    later = tracker.record(OperationKind.BASH_COMMAND, {"command": "pwd"})
    tracker.set_current_session("s2")
    other = tracker.record(OperationKind.BASH_COMMAND, {"command": "env"})

    assert tracker.get_session_operations() == [early, other]
    tracker.set_current_session("s1")
    assert tracker.get_session_operations() == [early, later]


def test_active_and_undone_queries(tracker):
    active = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})
    undone = tracker.record(OperationKind.BASH_COMMAND, {"command": "pwd"}, status=OperationStatus.UNDONE)
    tracker.record(OperationKind.BASH_COMMAND, {"command": "false"}, status=OperationStatus.FAILED)

    assert tracker.get_active_operations() == [active]
    assert tracker.get_undone_operations() == [undone]


def test_record_delete_captures_content_of_existing_file(tracker, workspace):
    path = workspace / "about_to_go.txt"
    path.write_text("last words")

    op = tracker.record(OperationKind.FILE_DELETE, {"file_path": str(path)})

    assert op.payload.content == "last words"


def test_trim_drops_oldest_and_their_edges(temp_dir, backup_store, workspace):
    tracker = OperationTracker(backup_store, max_operations=3)
    path = str(workspace / "f.txt")
    ops = [tracker.record(OperationKind.FILE_EDIT, {"file_path": path, "old_string": "a", "new_string": "b"})
           for _ in range(5)]

    assert tracker.operations == ops[2:]
    assert tracker.get_operation(ops[0].id) is None
    for op in tracker.operations:
        assert ops[0].id not in op.depends_on and ops[1].id not in op.depends_on
    assert ops[2].id in ops[4].depends_on


# --- Dependencies ---

def test_same_file_operations_depend_on_earlier_ones(created_then_edited):
    _, create, edit = created_then_edited

    assert edit.depends_on == [create.id]
    assert create.dependents == [edit.id]
    assert create.depends_on == []


def test_unrelated_paths_have_no_dependency(tracker, workspace):
    a = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "a.txt"), "content": ""})
    b = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "b.txt"), "content": ""})
    cmd = tracker.record(OperationKind.BASH_COMMAND, {"command": "cat a.txt"})

    assert a.dependents == [] and b.depends_on == [] and cmd.depends_on == []


def test_file_inside_created_directory_depends_on_it(tracker, workspace):
    directory = tracker.record(OperationKind.DIRECTORY_CREATE, {"dir_path": str(workspace / "pkg")})
    inner = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "pkg" / "m.py"), "content": ""})
    sibling = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "pkg2.py"), "content": ""})

    assert inner.depends_on == [directory.id]
    assert sibling.depends_on == []


def test_directory_delete_depends_on_files_inside(tracker, workspace):
    inner = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "pkg" / "m.py"), "content": ""})
    deletion = tracker.record(OperationKind.DIRECTORY_DELETE, {"dir_path": str(workspace / "pkg")})

    assert deletion.depends_on == [inner.id]


def test_rename_target_links_later_operations(tracker, workspace):
    rename = tracker.record(OperationKind.FILE_RENAME, {
        "old_path": str(workspace / "a.txt"), "new_path": str(workspace / "b.txt"),
    })
    edit = tracker.record(OperationKind.FILE_EDIT, {
        "file_path": str(workspace / "b.txt"), "old_string": "x", "new_string": "y",
    })

    assert edit.depends_on == [rename.id]


def test_undone_and_other_session_operations_are_not_linked(tracker, workspace):
    path = str(workspace / "a.txt")
    tracker.set_current_session("s1")
    undone = tracker.record(OperationKind.FILE_CREATE, {"file_path": path, "content": ""},
                            status=OperationStatus.UNDONE)
    tracker.set_current_session("s2")
    other_session = tracker.record(OperationKind.FILE_CREATE, {"file_path": path, "content": ""})
    tracker.set_current_session("s1")
    latest = tracker.record(OperationKind.FILE_EDIT, {"file_path": path, "old_string": "", "new_string": "x"})

    assert latest.depends_on == []
    assert undone.dependents == [] and other_session.dependents == []


def test_cascading_operations_order(tracker, workspace):
    path = str(workspace / "a.txt")
    ops = [tracker.record(OperationKind.FILE_EDIT, {"file_path": path, "old_string": "a", "new_string": "b"})
           for _ in range(3)]

    assert tracker.get_cascading_operations(ops[0].id, "undo") == [ops[2], ops[1]]

    for op in ops:
        op.status = OperationStatus.UNDONE
    assert tracker.get_cascading_operations(ops[2].id, "redo") == [ops[0], ops[1]]
    assert tracker.get_cascading_operations("missing", "undo") == []


# --- Undo / redo ---

@pytest.mark.asyncio
async def test_undo_then_redo_flips_status(tracker, workspace):
    path = workspace / "new.txt"
    path.write_text("content")
    op = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(path), "content": "content"})

    undone = await tracker.undo(op.id)
    assert undone.success
    assert undone.affected_operations == [op]
    assert op.status == OperationStatus.UNDONE
    assert not path.exists()

    redone = await tracker.redo(op.id)
    assert redone.success
    assert op.status == OperationStatus.ACTIVE
    assert path.read_text() == "content"


@pytest.mark.asyncio
async def test_undo_of_unknown_operation(tracker):
    result = await tracker.undo("op_does_not_exist")

    assert not result.success
    assert result.error_kind == ErrorKind.OPERATION_NOT_FOUND


@pytest.mark.asyncio
async def test_undo_twice_is_rejected(tracker, workspace):
    path = workspace / "new.txt"
    path.write_text("x")
    op = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(path), "content": "x"})

    assert (await tracker.undo(op.id)).success
    again = await tracker.undo(op.id)

    assert not again.success
    assert again.error_kind == ErrorKind.INVALID_STATE
    assert op.status == OperationStatus.UNDONE


@pytest.mark.asyncio
async def test_block_policy_refuses_undo_with_active_dependents(tracker, created_then_edited):
    path, create, edit = created_then_edited

    result = await tracker.undo(create.id)

    assert not result.success
    assert result.error_kind == ErrorKind.DEPENDENCY_BLOCKED
    assert result.affected_operations == [edit]
    assert create.status == OperationStatus.ACTIVE
    assert path.read_text() == "print('hello')\n"


@pytest.mark.asyncio
async def test_cascade_policy_undoes_dependents_first(tracker, created_then_edited):
    path, create, edit = created_then_edited

    undone = await tracker.undo(create.id, cascade=CascadePolicy.CASCADE)

    assert undone.success
    assert undone.affected_operations == [edit, create]
    assert edit.status == OperationStatus.UNDONE
    assert create.status == OperationStatus.UNDONE
    assert not path.exists()

    redone = await tracker.redo(edit.id, cascade="cascade")

    assert redone.success
    assert redone.affected_operations == [create, edit]
    assert path.read_text() == "print('hello')\n"
    assert create.status == OperationStatus.ACTIVE and edit.status == OperationStatus.ACTIVE


@pytest.mark.asyncio
async def test_cascade_stops_at_first_failure(tracker, created_then_edited):
    path, create, edit = created_then_edited
    path.unlink()

    result = await tracker.undo(create.id, cascade=CascadePolicy.CASCADE)

    assert not result.success
    assert result.error_kind == ErrorKind.TARGET_NOT_FOUND
    assert edit.id in result.message
    assert edit.status == OperationStatus.ACTIVE and edit.error
    assert create.status == OperationStatus.ACTIVE and create.error is None


@pytest.mark.asyncio
async def test_advisory_policy_proceeds_with_warning(backup_store, workspace):
    tracker = OperationTracker(backup_store, cascade_policy=CascadePolicy.ADVISORY)
    path = workspace / "main.py"
    path.write_text("v2")
    create = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(path), "content": "v1"})
    edit = tracker.record(OperationKind.FILE_EDIT, {"file_path": str(path), "old_string": "v1", "new_string": "v2"})

    result = await tracker.undo(create.id)

    assert result.success
    assert result.warnings
    assert create.status == OperationStatus.UNDONE
    assert edit.status == OperationStatus.ACTIVE


@pytest.mark.asyncio
async def test_invalid_cascade_override(tracker):
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    result = await tracker.undo(op.id, cascade="sometimes")

    assert result.error_kind == ErrorKind.VALIDATION_ERROR


@pytest.mark.asyncio
async def test_recoverable_failure_keeps_status(tracker, workspace):
    op = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "gone.txt"), "content": "x"})

    result = await tracker.undo(op.id)

    assert not result.success
    assert result.error_kind == ErrorKind.TARGET_NOT_FOUND
    assert op.status == OperationStatus.ACTIVE
    assert op.error == result.message


@pytest.mark.asyncio
async def test_bash_failure_keeps_status(tracker):
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "npm install"})

    result = await tracker.undo(op.id)

    assert not result.success
    assert result.error_kind == ErrorKind.UNSUPPORTED_REVERSAL
    assert op.status == OperationStatus.ACTIVE


@pytest.mark.asyncio
async def test_missing_content_marks_operation_failed(tracker, workspace):
    op = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(workspace / "a.txt")},
                        status=OperationStatus.UNDONE)

    result = await tracker.redo(op.id)

    assert not result.success
    assert result.error_kind == ErrorKind.CONTENT_UNAVAILABLE
    assert op.status == OperationStatus.FAILED
    assert op.error == result.message


@pytest.mark.asyncio
async def test_success_clears_previous_error(tracker, workspace):
    path = workspace / "late.txt"
    op = tracker.record(OperationKind.FILE_CREATE, {"file_path": str(path), "content": "x"})
    assert not (await tracker.undo(op.id)).success

    path.write_text("x")
    assert (await tracker.undo(op.id)).success
    assert op.error is None


@pytest.mark.asyncio
async def test_reentrant_undo_is_refused(backup_store):
    class ReentrantStrategy(BashCommandStrategy):
        inner = None

        async def undo(self, operation, context):
            ReentrantStrategy.inner = await context.tracker.undo(operation.id)
            return self.success("undone")

    tracker = OperationTracker(backup_store, registry=_registry_with(OperationKind.BASH_COMMAND, ReentrantStrategy()))
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    outer = await tracker.undo(op.id)

    assert outer.success
    assert ReentrantStrategy.inner.error_kind == ErrorKind.IN_PROGRESS
    assert op.status == OperationStatus.UNDONE


@pytest.mark.asyncio
async def test_strategy_exception_becomes_failed_result(backup_store):
    class BrokenStrategy(BashCommandStrategy):
        async def undo(self, operation, context):
            raise RuntimeError("disk on fire")

    tracker = OperationTracker(backup_store, registry=_registry_with(OperationKind.BASH_COMMAND, BrokenStrategy()))
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    result = await tracker.undo(op.id)

    assert not result.success
    assert result.error_kind == ErrorKind.IO_FAILURE
    assert "disk on fire" in result.message
    assert op.status == OperationStatus.ACTIVE


def test_apply_result_is_the_only_status_transition(tracker):
    op = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    tracker.apply_result(op.id, OperationResult(success=True, message="ok"), "undo")
    assert op.status == OperationStatus.UNDONE

    tracker.apply_result(op.id, OperationResult(success=False, message="nope",
                                                error_kind=ErrorKind.IO_FAILURE), "redo")
    assert op.status == OperationStatus.UNDONE
    assert op.error == "nope"

    tracker.apply_result(op.id, OperationResult(success=False, message="unknown",
                                                error_kind=ErrorKind.UNKNOWN_OPERATION_KIND), "redo")
    assert op.status == OperationStatus.FAILED


# --- Previews ---

@pytest.mark.asyncio
async def test_preview_undo_lists_cascading_operations(tracker, created_then_edited, snapshot, workspace):
    _, create, edit = created_then_edited
    before = snapshot(workspace)

    preview = await tracker.preview_undo(create.id)

    assert preview.changes.startswith("Will delete file")
    assert preview.cascading_operations == [edit]
    assert any("must be undone first" in w for w in preview.warnings)
    assert create.status == OperationStatus.ACTIVE
    assert snapshot(workspace) == before


@pytest.mark.asyncio
async def test_preview_returns_none_when_not_applicable(tracker, created_then_edited):
    _, create, _ = created_then_edited

    assert await tracker.preview_undo("op_missing") is None
    assert await tracker.preview_redo(create.id) is None


# --- Persistence ---

def test_save_and_load_round_trip(tracker, backup_store, temp_dir, created_then_edited):
    _, create, edit = created_then_edited
    tracker.set_current_session("s9")
    assert tracker.save()

    data = json.loads(tracker.storage_file.read_text())
    assert data["workspaceId"] == "test-workspace"
    assert data["currentSessionId"] == "s9"
    assert [entry["id"] for entry in data["operations"]] == [create.id, edit.id]

    restored = OperationTracker(backup_store, storage_dir=temp_dir / "data", workspace_id="test-workspace")
    assert restored.load()
    assert restored.operations == [create, edit]
    assert restored.current_session_id == "s9"
    assert restored.get_cascading_operations(create.id, "undo") == [edit]


def test_autosave_on_record(tracker):
    tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})

    assert tracker.storage_file.is_file()


def test_load_skips_malformed_entries(tracker, backup_store, temp_dir):
    good = tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})
    data = json.loads(tracker.storage_file.read_text())
    data["operations"].append({"id": "broken", "kind": "teleport", "timestamp": "2024-01-01T00:00:00"})
    data["operations"].append({"kind": "file_create"})
    data["operations"].extend(["garbage", 42, None, ["file_create"]])
    tracker.storage_file.write_text(json.dumps(data))

    restored = OperationTracker(backup_store, storage_dir=temp_dir / "data", workspace_id="test-workspace")

    assert restored.load()
    assert [op.id for op in restored.operations] == [good.id]


def test_load_ignores_other_workspace(tracker, backup_store, temp_dir):
    tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"})
    data = json.loads(tracker.storage_file.read_text())
    data["workspaceId"] = "someone-else"
    tracker.storage_file.write_text(json.dumps(data))

    restored = OperationTracker(backup_store, storage_dir=temp_dir / "data", workspace_id="test-workspace")

    assert not restored.load()
    assert restored.operations == []


def test_persistence_disabled_without_storage(backup_store):
    tracker = OperationTracker(backup_store)

    assert tracker.storage_file is None
    assert not tracker.save()
    assert not tracker.load()


def test_clear(tracker):
    tracker.record(OperationKind.BASH_COMMAND, {"command": "ls"}, message_id="m")

    tracker.clear()

    assert tracker.operations == []
    assert tracker.get_operations_by_message("m") == []
    assert json.loads(tracker.storage_file.read_text())["operations"] == []


def test_workspace_id_is_stable(temp_dir):
    first = compute_workspace_id(temp_dir)

    assert first == compute_workspace_id(str(temp_dir))
    assert len(first) == 12
    assert first != compute_workspace_id(temp_dir / "other")


@pytest.mark.asyncio
async def test_partially_applied_multi_edit_is_marked_partial(tracker, workspace):
    path = workspace / "partial.txt"
    path.write_text("one two")
    op = tracker.record(OperationKind.MULTI_EDIT, {
        "file_path": str(path),
        "edits": [{"old_string": "1", "new_string": "one"}, {"old_string": "3", "new_string": "three"}],
    })

    result = await tracker.undo(op.id)

    assert result.success and result.partial
    assert op.status == OperationStatus.PARTIAL
    assert path.read_text() == "1 two"

    # Still partly in effect, so it can be undone again
    assert op.can_undo
    assert (await tracker.undo(op.id)).success
    assert op.status == OperationStatus.UNDONE
