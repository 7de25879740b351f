"""Tests for progress accounting and the frozen ImportResult."""
import pytest
from pydantic import ValidationError

from masters.imports.reporter import ImportProgress, failure_messages
from masters.imports.specs import CUSTOMER_SPEC, FABRIC_SPEC
from masters.imports.types import ValidatedRow


def _progress(**kwargs) -> ImportProgress:
    return ImportProgress(entity="fabric", parent_label="fabrics", child_label="variants", **kwargs)


def test_for_rows_counts_valid_and_invalid():
    rows = [ValidatedRow(2, {}), ValidatedRow(3, {}, ("gsm required",)), ValidatedRow(4, {})]
    progress = ImportProgress.for_rows(FABRIC_SPEC, rows)
    assert (progress.parsed, progress.valid, progress.invalid) == (3, 2, 1)


def test_percent_tracks_processed_groups():
    progress = _progress(groups_total=4)
    assert progress.percent == 0
    progress.advance()
    assert progress.percent == 25.0


def test_summary_for_grouped_import():
    progress = _progress(valid=2)
    progress.record_parent(created=True)
    progress.record_children(2)
    assert progress.to_result().summary == "Created 1 fabrics and 2 variants from 2 rows; 0 groups failed"


def test_summary_mentions_reused_parents_and_cancellation():
    progress = _progress(valid=5, groups_total=3, groups_processed=1, cancelled=True)
    progress.record_parent(created=False)
    progress.record_children(1)
    summary = progress.to_result().summary
    assert "(1 existing fabrics reused)" in summary
    assert summary.endswith("Import cancelled after 1 of 3 groups")


def test_summary_for_flat_import():
    progress = ImportProgress(entity="customer", child_label=CUSTOMER_SPEC.child_label, valid=3)
    progress.record_children(3)
    assert progress.to_result().summary == "Created 3 customers from 3 rows; 0 groups failed"


def test_run_level_error_replaces_summary():
    result = _progress(error="Could not reach the database").to_result()
    assert result.summary == "Import aborted: Could not reach the database"


def test_failure_messages():
    progress = _progress()
    progress.record_failure("COTTON", "duplicate key")
    assert list(failure_messages(progress.to_result())) == ["Error processing fabric COTTON: duplicate key"]


def test_result_is_immutable():
    result = _progress().to_result()
    with pytest.raises(ValidationError):
        result.parents_created = 5
