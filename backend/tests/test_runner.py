"""Tests for run-level glue: prepare, execute, abort and purge."""
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from masters.imports import runner
from masters.imports.errors import InvalidTransitionError
from masters.imports.specs import FABRIC_SPEC


# ─── Helpers ──────────────────────────────────────────────────────────────────

class FakeRun:
    """Minimal ImportRun stub."""

    def __init__(self, status: str = "importing", file_key: str | None = "imports/r/fabrics.csv"):
        self.id = uuid.UUID("7d1f6f4c-2a44-4f0e-8b51-2f0f9d0c3b11")
        self.entity = "fabric"
        self.status = status
        self.file_key = file_key
        self.file_name = "fabrics.csv"
        self.created_by = "user-1"


def make_mock_session(run=None, stale=(), rowcount=1):
    result = MagicMock()
    result.rowcount = rowcount
    result.scalar_one.return_value = run
    result.scalars.return_value.all.return_value = list(stale)

    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)
    session.add = MagicMock()
    return session


def _audit_actions(session) -> list[str]:
    return [c.args[0].action for c in session.add.call_args_list]


async def fake_run_import(groups, spec, writer, progress, **kwargs):
    progress.groups_total = len(groups)
    for group in groups:
        progress.record_parent(created=True)
        progress.record_children(len(group.rows))
        progress.advance()
    return progress


# ─── prepare ──────────────────────────────────────────────────────────────────

def test_prepare_parses_validates_and_groups(fabric_csv):
    prepared = runner.prepare(FABRIC_SPEC, fabric_csv.encode(), "fabrics.csv")
    assert len(prepared.rows) == 2
    assert prepared.valid_count == 2
    assert prepared.invalid_rows == []
    assert [g.key for g in prepared.groups] == ["COTTON"]


# ─── execute_run ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_execute_run_completes_and_discards_file(fabric_csv):
    run = FakeRun()
    db = make_mock_session(run)

    with patch("masters.imports.runner.storage.download_file", return_value=fabric_csv.encode()), \
         patch("masters.imports.runner.storage.delete_object") as mock_delete, \
         patch("masters.imports.runner.run_import", side_effect=fake_run_import):
        result = await runner.execute_run(db, run.id)

    assert result.parents_created == 1
    assert result.children_created == 2
    assert result.summary == "Created 1 fabrics and 2 variants from 2 rows; 0 groups failed"
    mock_delete.assert_called_once_with("imports/r/fabrics.csv")
    db.commit.assert_awaited()
    assert _audit_actions(db) == ["import.completed"]


@pytest.mark.asyncio
async def test_execute_run_without_source_file_completes_with_error():
    run = FakeRun(file_key=None)
    db = make_mock_session(run)

    with patch("masters.imports.runner.run_import") as mock_run_import:
        result = await runner.execute_run(db, run.id)

    mock_run_import.assert_not_called()
    assert result.error == "Source file is no longer available"
    assert result.summary.startswith("Import aborted")
    db.commit.assert_awaited()


@pytest.mark.asyncio
async def test_execute_run_completes_when_database_drops_mid_run(fabric_csv):
    run = FakeRun()
    db = make_mock_session(run)
    lost = OperationalError("UPDATE import_runs", {}, Exception("server closed the connection"))

    with patch("masters.imports.runner.storage.download_file", return_value=fabric_csv.encode()), \
         patch("masters.imports.runner.storage.delete_object"), \
         patch("masters.imports.runner.run_import", AsyncMock(side_effect=lost)):
        result = await runner.execute_run(db, run.id)

    assert result.error.startswith("Import interrupted")
    db.rollback.assert_awaited()
    assert _audit_actions(db) == ["import.completed"]


@pytest.mark.asyncio
async def test_execute_run_refuses_run_not_importing():
    db = make_mock_session(FakeRun(status="previewing"))
    with pytest.raises(InvalidTransitionError):
        await runner.execute_run(db, uuid.uuid4())


# ─── start / abort / purge ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_start_run_requires_previewing():
    db = make_mock_session()
    await runner.start_run(db, FakeRun(status="previewing"), actor_id="user-1")
    assert _audit_actions(db) == ["import.started"]

    with pytest.raises(InvalidTransitionError):
        await runner.start_run(db, FakeRun(status="completed"))


@pytest.mark.asyncio
async def test_start_run_loses_to_a_concurrent_commit():
    db = make_mock_session(rowcount=0)
    with pytest.raises(InvalidTransitionError):
        await runner.start_run(db, FakeRun(status="previewing"), actor_id="user-1")
    assert _audit_actions(db) == []


@pytest.mark.asyncio
async def test_abort_run_deletes_file():
    db = make_mock_session()
    with patch("masters.imports.runner.storage.delete_object") as mock_delete:
        await runner.abort_run(db, FakeRun(status="previewing"), actor_id="user-1")
    mock_delete.assert_called_once_with("imports/r/fabrics.csv")
    assert _audit_actions(db) == ["import.aborted"]


@pytest.mark.asyncio
async def test_purge_aborts_stale_previews():
    stale = [FakeRun(status="previewing"), FakeRun(status="parsed", file_key=None)]
    db = make_mock_session(stale=stale)

    with patch("masters.imports.runner.storage.delete_object") as mock_delete:
        purged = await runner.purge_stale_runs(db, datetime.now(timezone.utc))

    assert len(purged) == 2
    assert mock_delete.call_count == 1
    db.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_purge_completes_runs_stuck_importing():
    stuck = FakeRun(status="importing")
    db = make_mock_session(stale=[stuck])

    with patch("masters.imports.runner.storage.delete_object") as mock_delete:
        purged = await runner.purge_stale_runs(db, datetime.now(timezone.utc))

    assert purged == [stuck.id]
    assert _audit_actions(db) == ["import.completed"]
    completed = db.add.call_args.args[0]
    assert completed.notes == "Import aborted: Import did not finish"
    mock_delete.assert_called_once_with("imports/r/fabrics.csv")


@pytest.mark.asyncio
async def test_purge_skips_runs_that_moved_on():
    db = make_mock_session(stale=[FakeRun(status="previewing")], rowcount=0)

    with patch("masters.imports.runner.storage.delete_object") as mock_delete:
        purged = await runner.purge_stale_runs(db, datetime.now(timezone.utc))

    assert purged == []
    mock_delete.assert_not_called()
