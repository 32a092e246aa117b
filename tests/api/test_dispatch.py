"""Tests for the tool dispatcher."""

import asyncio
import os
from unittest.mock import patch

import pytest

from code_backup.api.dispatch import TOOL_ALIASES, TOOLS, ToolDispatcher
from code_backup.backup import BackupNotFoundError, BackupValidationError, copier


@pytest.fixture
def dispatcher(manager, tracker):
    return ToolDispatcher(manager, tracker)


def test_list_tools_has_schemas(dispatcher):
    tools = {tool.name: tool for tool in dispatcher.list_tools()}

    assert set(tools) == set(TOOLS)
    schema = tools["restore-file-backup"].input_schema
    assert set(schema["required"]) == {"file_path", "timestamp"}
    assert "create_emergency_backup" in schema["properties"]
    assert "operationId" in tools["cancel"].input_schema["properties"]


def test_aliases_resolve_to_known_tools():
    for alias, name in TOOL_ALIASES.items():
        assert ToolDispatcher.resolve(alias).name == name


@pytest.mark.asyncio
async def test_create_list_restore_via_dispatch(dispatcher, work_dir):
    target = work_dir / "a.txt"
    target.write_text("v1")

    created = await dispatcher.call("create-file-backup", {"file_path": str(target), "agent_context": "why"})
    target.write_text("v2")
    listed = await dispatcher.call("list-file-backups", {"file_path": str(target)})
    restored = await dispatcher.call("restore-file-backup", {
        "file_path": str(target),
        "timestamp": created["timestamp"],
    })

    assert created["versions_kept"] == 1
    assert created["agent_context"] == "why"
    assert created["operation_id"]
    assert [b["timestamp"] for b in listed] == [created["timestamp"]]
    assert restored["restored_path"] == str(target)
    assert restored["emergency_backup_path"]
    assert target.read_text() == "v1"


@pytest.mark.asyncio
async def test_original_tool_names_accepted(dispatcher, work_dir):
    folder = work_dir / "proj"
    (folder / "sub").mkdir(parents=True)
    (folder / "sub" / "x.py").write_text("x")

    created = await dispatcher.call("backup_folder_create", {"folder_path": str(folder)})
    listed = await dispatcher.call("backup_folder_list", {"folder_path": str(folder)})

    assert created["original_foldername"] == "proj"
    assert len(listed) == 1


@pytest.mark.asyncio
async def test_missing_parameter_is_validation_error(dispatcher):
    result = await dispatcher.call("create-file-backup", {})

    assert result["error_type"] == "validation"
    assert result["error"] == "Invalid params: file_path is required"


@pytest.mark.asyncio
async def test_empty_parameter_is_validation_error(dispatcher):
    result = await dispatcher.call("create-folder-backup", {"folder_path": ""})
    assert result["error"] == "Invalid params: folder_path is required"


@pytest.mark.asyncio
async def test_bad_timestamp_is_validation_error(dispatcher, work_dir):
    result = await dispatcher.call("restore-file-backup", {"file_path": str(work_dir / "a"), "timestamp": "yesterday"})

    assert result["error_type"] == "validation"
    assert result["error"].startswith("Invalid params: timestamp")


@pytest.mark.asyncio
async def test_unknown_tool(dispatcher):
    with pytest.raises(BackupValidationError, match="Unknown tool"):
        await dispatcher.dispatch("format-disk", {})


@pytest.mark.asyncio
async def test_not_found_carries_operation_id(dispatcher, work_dir):
    result = await dispatcher.call("create-file-backup", {"file_path": str(work_dir / "missing.txt")})

    assert result["error_type"] == "not_found"
    assert result["operation_id"]
    assert dispatcher.tracker.get(result["operation_id"]) is None


@pytest.mark.asyncio
async def test_cancel_unknown_operation(dispatcher):
    with pytest.raises(BackupNotFoundError, match="not found or already completed"):
        await dispatcher.dispatch("cancel", {"operation_id": "nope"})

    result = await dispatcher.call("mcp_cancel", {"operationId": "nope"})
    assert result["error_type"] == "not_found"
    assert result["success"] is False
    assert result["status"] == "not_found"


@pytest.mark.asyncio
async def test_status_of_unknown_operation(dispatcher):
    result = await dispatcher.call("get-operation-status", {"operation_id": "nope"})
    assert result["status"] == "not_found"


@pytest.mark.asyncio
async def test_cancel_running_operation(dispatcher, work_dir):
    """A cancel call arriving while a folder copy is in flight stops it at the next file."""
    folder = work_dir / "proj"
    folder.mkdir()
    for i in range(5):
        (folder / f"f{i}.txt").write_text(str(i))

    started = asyncio.Event()
    release = asyncio.Event()
    loop = asyncio.get_running_loop()
    real_copy_file = copier.copy_file

    def slow_copy_file(src, dst, **kwargs):
        real_copy_file(src, dst, **kwargs)
        loop.call_soon_threadsafe(started.set)
        asyncio.run_coroutine_threadsafe(release.wait(), loop).result()

    with patch("code_backup.backup.copier.copy_file", side_effect=slow_copy_file):
        task = asyncio.create_task(dispatcher.call("create-folder-backup", {"folder_path": str(folder)}))
        await started.wait()

        operations = await dispatcher.call("list-operations")
        assert len(operations) == 1
        op_id = operations[0]["id"]
        status = await dispatcher.call("get-operation-status", {"operation_id": op_id})
        assert status["status"] == "running"

        cancelled = await dispatcher.call("cancel", {"operation_id": op_id})
        release.set()
        result = await task

    assert cancelled == {"success": True, "operation_id": op_id, "status": "cancelled"}
    assert result["error_type"] == "cancelled"
    assert result["operation_id"] == op_id
    assert os.listdir(dispatcher.manager.config.backup_dir) == []
    assert await dispatcher.call("list-operations") == []


@pytest.mark.asyncio
async def test_cancelled_task_does_not_leak_operation(dispatcher, work_dir):
    """Cancelling the task driving a call finishes its operation and removes partial output."""
    folder = work_dir / "proj"
    folder.mkdir()
    for i in range(3):
        (folder / f"f{i}.txt").write_text(str(i))

    started = asyncio.Event()
    release = asyncio.Event()
    loop = asyncio.get_running_loop()
    real_copy_file = copier.copy_file

    def slow_copy_file(src, dst, **kwargs):
        real_copy_file(src, dst, **kwargs)
        loop.call_soon_threadsafe(started.set)
        asyncio.run_coroutine_threadsafe(release.wait(), loop).result()

    with patch("code_backup.backup.copier.copy_file", side_effect=slow_copy_file):
        task = asyncio.create_task(dispatcher.call("create-folder-backup", {"folder_path": str(folder)}))
        await started.wait()
        assert len(await dispatcher.call("list-operations")) == 1

        task.cancel()
        await asyncio.sleep(0)
        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert await dispatcher.call("list-operations") == []
    assert os.listdir(dispatcher.manager.config.backup_dir) == []


@pytest.mark.asyncio
async def test_list_all_backups_shape(dispatcher, work_dir):
    target = work_dir / "a.txt"
    target.write_text("a")
    await dispatcher.call("create-file-backup", {"file_path": str(target)})

    result = await dispatcher.call("list-all-backups", {"include_emergency": False})

    assert set(result) == {"main", "emergency"}
    assert result["emergency"] == []
    assert {"path", "type", "size", "created_at", "original_path"} <= set(result["main"][0])


@pytest.mark.asyncio
async def test_unexpected_error_is_reported(dispatcher, work_dir):
    target = work_dir / "a.txt"
    target.write_text("a")

    with patch.object(dispatcher.manager, "create_file_backup", side_effect=RuntimeError("boom")):
        result = await dispatcher.call("create-file-backup", {"file_path": str(target)})

    assert result == {"error": "boom", "error_type": "internal", "operation_id": None}
