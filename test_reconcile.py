"""Tests for local overlap reconciliation."""

from datetime import datetime, timedelta

import pytest

from conftest import at, make_entry
from models import Interval
from reconcile import count_overlaps, find_next_available_start, is_adjustable, reconcile_day, run
from storage import StorageError, WorklogStore


def epm(id, start, end, **kwargs):
    kwargs.setdefault("source_file", "EPMExportRZ202603.xlsx")
    return make_entry(id, start, end, mapper="epm", **kwargs)


def by_id(updates):
    return {u.id: u for u in updates}


# ---------------------------------------------------------------------------
# Source classification
# ---------------------------------------------------------------------------

class TestIsAdjustable:
    @pytest.mark.parametrize(
        "mapper, source_file, expected",
        [
            ("epm", "x.xlsx", True),
            (" EPM ", "x.xlsx", True),
            ("generic", "EPMExportSZ202601.xlsx", True),
            ("generic", "export.csv", False),
            ("atwork", "timesheet.csv", False),
        ],
    )
    def test_provenance(self, mapper, source_file, expected):
        entry = make_entry(1, "09:00", "10:00", mapper=mapper, source_file=source_file)
        assert is_adjustable(entry) is expected


# ---------------------------------------------------------------------------
# Slot search
# ---------------------------------------------------------------------------

class TestFindNextAvailableStart:
    def test_fits_before_first_busy(self):
        busy = [Interval(at("10:00"), at("11:00"))]
        assert find_next_available_start(busy, at("08:00"), timedelta(hours=2)) == at("08:00")

    def test_skips_past_blocking_intervals(self):
        busy = [Interval(at("09:00"), at("10:00")), Interval(at("10:30"), at("12:00"))]
        assert find_next_available_start(busy, at("09:00"), timedelta(hours=1)) == at("12:00")

    def test_uses_gap_that_is_large_enough(self):
        busy = [Interval(at("09:00"), at("10:00")), Interval(at("11:00"), at("12:00"))]
        assert find_next_available_start(busy, at("09:00"), timedelta(hours=1)) == at("10:00")


# ---------------------------------------------------------------------------
# Day reconciliation
# ---------------------------------------------------------------------------

class TestReconcileDay:
    """reconcile_day() shifts EPM entries around fixed ones, greedily."""

    def test_two_entries_pushed_after_fixed_block(self):
        entries = [
            make_entry(1, "09:00", "11:00"),
            epm(2, "09:00", "11:00"),
            epm(3, "09:00", "11:00"),
        ]
        updates, adjusted = reconcile_day(entries)

        assert adjusted == 2
        moved = by_id(updates)
        assert (moved[2].start, moved[2].end) == (at("11:00"), at("13:00"))
        assert (moved[3].start, moved[3].end) == (at("13:00"), at("15:00"))

    def test_shifts_after_fixed_intervals(self):
        entries = [
            make_entry(1, "09:00", "11:00"),
            epm(2, "08:00", "10:00"),
            epm(3, "10:00", "12:00"),
        ]
        updates, adjusted = reconcile_day(entries)

        assert adjusted == 2
        moved = by_id(updates)
        assert (moved[2].start, moved[2].end) == (at("11:00"), at("13:00"))
        assert (moved[3].start, moved[3].end) == (at("13:00"), at("15:00"))

    def test_entry_already_in_free_slot_is_not_reported(self):
        entries = [make_entry(1, "09:00", "10:00"), epm(2, "10:00", "11:00")]
        assert reconcile_day(entries) == ([], 0)

    def test_ties_processed_by_id(self):
        entries = [
            make_entry(1, "09:00", "10:00"),
            epm(7, "09:00", "10:00"),
            epm(4, "09:00", "10:00"),
        ]
        moved = by_id(reconcile_day(entries)[0])
        assert moved[4].start == at("10:00")
        assert moved[7].start == at("11:00")

    def test_entry_that_would_leave_the_day_stays_fixed(self):
        entries = [
            make_entry(1, "08:00", "23:00"),
            epm(2, "09:00", "11:00"),
            epm(3, "23:00", "23:30"),
        ]
        updates, adjusted = reconcile_day(entries)

        # Entry 2 cannot move within the day; it becomes an obstacle and
        # entry 3 keeps its own free slot.
        assert adjusted == 0
        assert updates == []

    def test_unmovable_entry_blocks_later_ones(self):
        entries = [
            make_entry(1, "10:00", "23:00"),
            epm(2, "08:00", "11:00"),
            epm(3, "08:30", "09:00"),
        ]
        updates, adjusted = reconcile_day(entries)

        # Entry 2 stays at 08:00-11:00, so entry 3 no longer fits at 08:30.
        assert adjusted == 1
        moved = by_id(updates)
        assert 2 not in moved
        assert (moved[3].start, moved[3].end) == (at("23:00"), at("23:30"))

    def test_zero_length_entry_uses_billable_minutes(self):
        entries = [
            make_entry(1, "09:00", "10:00"),
            epm(2, "09:00", "09:00", billable=30),
        ]
        moved = by_id(reconcile_day(entries)[0])
        assert (moved[2].start, moved[2].end) == (at("10:00"), at("10:30"))

    def test_entry_without_duration_is_skipped(self):
        entries = [make_entry(1, "09:00", "10:00"), epm(2, "09:00", "09:00", billable=0)]
        assert reconcile_day(entries) == ([], 0)

    def test_single_entry_day_is_untouched(self):
        assert reconcile_day([epm(1, "09:00", "10:00")]) == ([], 0)

    def test_other_fields_are_preserved(self):
        entries = [make_entry(1, "09:00", "10:00"), epm(2, "09:00", "10:00", description="EPM task")]
        moved = reconcile_day(entries)[0][0]
        assert moved.description == "EPM task"
        assert moved.project == "Project A"
        assert moved.billable == 60

    def test_repeated_runs_are_stable(self):
        entries = [
            make_entry(1, "09:00", "11:00"),
            epm(2, "09:00", "10:00"),
            epm(3, "10:00", "12:00"),
        ]
        updates, _ = reconcile_day(entries)
        moved = by_id(updates)
        second = [moved.get(e.id, e) for e in entries]
        assert reconcile_day(second) == ([], 0)
        assert count_overlaps(second) == 0


# ---------------------------------------------------------------------------
# Conflict counting
# ---------------------------------------------------------------------------

class TestCountOverlaps:
    def test_no_conflicts(self):
        entries = [make_entry(1, "09:00", "10:00"), make_entry(2, "10:00", "11:00")]
        assert count_overlaps(entries) == 0

    def test_counts_each_overlapping_pair(self):
        entries = [
            make_entry(1, "09:00", "11:00"),
            make_entry(2, "10:00", "12:00"),
            make_entry(3, "10:30", "11:30"),
        ]
        assert count_overlaps(entries) == 3

    def test_nested_entries(self):
        entries = [
            make_entry(1, "08:00", "12:00"),
            make_entry(2, "09:00", "10:00"),
            make_entry(3, "11:00", "11:30"),
        ]
        assert count_overlaps(entries) == 2

    def test_empty_and_single(self):
        assert count_overlaps([]) == 0
        assert count_overlaps([make_entry(1, "09:00", "10:00")]) == 0


# ---------------------------------------------------------------------------
# Full run against SQLite
# ---------------------------------------------------------------------------

class TestRun:
    def test_persists_adjusted_rows(self, tmp_path):
        with WorklogStore(str(tmp_path / "reconcile.db")) as store:
            store.insert_worklogs(
                [
                    make_entry(None, "09:00", "10:00", description="Generic fixed"),
                    epm(None, "08:30", "09:30", description="EPM simulated"),
                ]
            )
            result = run(store)

            assert result.days_processed == 1
            assert result.overlaps_before == 1
            assert result.overlaps_after == 0
            assert result.entries_adjusted == 1
            assert result.rows_updated == 1

            rows = {e.description: e for e in store.list_worklogs()}
            assert rows["EPM simulated"].start == at("10:00")
            assert rows["EPM simulated"].end == at("11:00")
            assert rows["Generic fixed"].start == at("09:00")

    def test_days_are_reconciled_independently(self, tmp_path):
        other_day = datetime(2026, 3, 11)
        with WorklogStore(str(tmp_path / "reconcile.db")) as store:
            store.insert_worklogs(
                [
                    make_entry(None, "09:00", "10:00"),
                    epm(None, "09:00", "10:00", day=other_day),
                ]
            )
            result = run(store)

        assert result.days_processed == 2
        assert result.entries_adjusted == 0
        assert result.rows_updated == 0

    def test_rejected_update_rolls_back(self, tmp_path):
        with WorklogStore(str(tmp_path / "reconcile.db")) as store:
            store.insert_worklogs(
                [
                    make_entry(None, "08:00", "09:00", description="fixed"),
                    epm(None, "08:00", "09:00", description="same"),
                    epm(None, "09:00", "10:00", description="same"),
                ]
            )

            # The first move lands on the sibling's current slot, which the
            # UNIQUE content constraint rejects.
            with pytest.raises(StorageError, match="persist reconciled worklog id=") as exc:
                run(store)

            assert exc.value.worklog_id is not None
            starts = sorted(e.start for e in store.list_worklogs() if e.description == "same")
            assert starts == [at("08:00"), at("09:00")]

    def test_empty_ledger(self, tmp_path):
        with WorklogStore(str(tmp_path / "empty.db")) as store:
            assert run(store).days_processed == 0
