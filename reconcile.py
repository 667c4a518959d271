"""Local overlap reconciliation for imported worklogs.

EPM exports only carry daily totals, so the importer simulates per-task
times inside a working window. Mixing those rows with entries from other
sources produces overlaps. Reconciliation treats every non-EPM entry as a
fixed obstacle and shifts EPM entries, in start order, into the earliest
free slot of the same day.

The placement is greedy first-fit. It is deterministic, not optimal.
"""

from collections import defaultdict
from dataclasses import replace
from datetime import timedelta

from intervals import merge
from models import Interval, ReconcileResult, WorklogEntry
from utils import same_day, to_local

EPM_MAPPER = "epm"
EPM_FILE_MARKER = "epmexport"


def is_adjustable(entry: WorklogEntry) -> bool:
    """EPM-derived entries may be moved; everything else is fixed."""
    if entry.source_mapper.strip().lower() == EPM_MAPPER:
        return True
    return EPM_FILE_MARKER in entry.source_file.lower()


def group_by_day(entries: list[WorklogEntry]) -> dict[str, list[WorklogEntry]]:
    """Group entries by the local calendar day of their start."""
    by_day: dict[str, list[WorklogEntry]] = defaultdict(list)
    for entry in entries:
        by_day[to_local(entry.start).strftime("%Y-%m-%d")].append(entry)
    return dict(by_day)


def find_next_available_start(busy: list[Interval], desired_start, duration: timedelta):
    """First start >= desired_start where `duration` fits between busy intervals."""
    candidate = desired_start
    for slot in busy:
        if candidate + duration <= slot.start:
            return candidate
        if candidate >= slot.end:
            continue
        candidate = slot.end
    return candidate


def _entry_duration(entry: WorklogEntry) -> timedelta:
    duration = entry.end - entry.start
    if duration <= timedelta(0):
        duration = timedelta(minutes=entry.billable)
    return duration


def reconcile_day(entries: list[WorklogEntry]) -> tuple[list[WorklogEntry], int]:
    """Reschedule adjustable entries of one day around the fixed ones.

    Returns:
        - updates: copies of the moved entries carrying their new start/end
        - adjusted: number of moved entries
    """
    if len(entries) < 2:
        return [], 0

    ordered = sorted(entries, key=lambda e: (e.start, e.id or 0))

    busy: list[Interval] = []
    adjustable: list[WorklogEntry] = []
    for entry in ordered:
        if is_adjustable(entry):
            adjustable.append(entry)
        else:
            busy = merge(busy, Interval(entry.start, entry.end))

    updates: list[WorklogEntry] = []
    for entry in adjustable:
        duration = _entry_duration(entry)
        if duration <= timedelta(0):
            continue

        new_start = find_next_available_start(busy, entry.start, duration)
        new_end = new_start + duration

        original_day = to_local(entry.start)
        if not same_day(original_day, to_local(new_start)) or not same_day(original_day, to_local(new_end)):
            # Cannot move within its own day: keep it where it is.
            busy = merge(busy, Interval(entry.start, entry.end))
            continue

        if new_start != entry.start or new_end != entry.end:
            updates.append(replace(entry, start=new_start, end=new_end))

        busy = merge(busy, Interval(new_start, new_end))

    return updates, len(updates)


def count_overlaps(entries: list[WorklogEntry]) -> int:
    """Count overlapping pairs within a day, for reporting.

    Entries are sorted by (start, end); the inner scan stops at the first
    later entry that starts at or after the current one's end.
    """
    if len(entries) < 2:
        return 0

    ordered = sorted(entries, key=lambda e: (e.start, e.end))
    conflicts = 0
    for i, current in enumerate(ordered):
        for later in ordered[i + 1:]:
            if later.start >= current.end:
                break
            conflicts += 1
    return conflicts


def apply_updates(entries: list[WorklogEntry], updates: list[WorklogEntry]) -> list[WorklogEntry]:
    if not updates:
        return entries
    by_id = {u.id: u for u in updates}
    return [by_id.get(e.id, e) for e in entries]


def run(store) -> ReconcileResult:
    """Reconcile every day in the ledger and persist changed times."""
    entries = store.list_worklogs()
    result = ReconcileResult()
    if not entries:
        return result

    by_day = group_by_day(entries)
    result.days_processed = len(by_day)

    updates: list[WorklogEntry] = []
    for day in sorted(by_day):
        day_entries = by_day[day]
        result.overlaps_before += count_overlaps(day_entries)

        day_updates, adjusted = reconcile_day(day_entries)
        result.entries_adjusted += adjusted
        updates.extend(day_updates)

        result.overlaps_after += count_overlaps(apply_updates(day_entries, day_updates))

    result.rows_updated = store.update_worklog_times(updates)
    return result
