"""Submit local worklogs to OnePoint, one day at a time.

For each day batch, in chronological order:

    fetch remote day -> locked check -> classify -> resolve overlaps -> persist

A day with any locked remote item is skipped as a whole. OnePoint replaces
the unlocked items of a day on persist, so the payload is always the
existing unlocked items plus the accepted local ones.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from classify import classify
from lookup import ResolveOptions
from models import DayBatch, OverlapPair, RemoteLineItem, SubmitSummary, WorklogEntry
from submitter import (
    build_day_batches,
    count_locked,
    resolve_ids_for_entries,
    unlocked_payload,
    validate_entries,
)
from utils import format_day, format_minutes


class SubmitAborted(Exception):
    """The user chose to abort during overlap resolution."""

    def __init__(self, summary: SubmitSummary):
        super().__init__("submit aborted by user")
        self.summary = summary


class OverlapChoice(Enum):
    WRITE = "w"
    SKIP = "s"
    WRITE_ALL = "W"
    SKIP_ALL = "S"
    ABORT = "a"


def parse_choice(text: str) -> OverlapChoice | None:
    """Map user input to a choice; None for anything unrecognized."""
    try:
        return OverlapChoice(text.strip())
    except ValueError:
        return None


def format_range(item: RemoteLineItem) -> str:
    return f"{format_minutes(item.start_time)}-{format_minutes(item.finish_time)}"


class TerminalPrompter:
    """Ask on the terminal how to handle a day's overlaps."""

    def __init__(self, input_func: Callable[[str], str] = input):
        self.input_func = input_func

    def choose(self, day_label: str, overlaps: list[OverlapPair]) -> OverlapChoice:
        print(f"[!] {len(overlaps)} local entries overlap with existing OnePoint entries for {day_label}:")
        for i, pair in enumerate(overlaps, start=1):
            print(
                f"    [{i}] {format_range(pair.local)} '{pair.local.comment.strip()}' "
                f"overlaps with existing {format_range(pair.existing)} '{pair.existing.comment.strip()}'"
            )

        while True:
            print("  How to handle overlapping entries?")
            print("    (w) Write overlapping entries anyway")
            print("    (s) Skip overlapping entries")
            print("    (W) Write ALL overlapping entries for all remaining days")
            print("    (S) Skip ALL overlapping entries for all remaining days")
            print("    (a) Abort submit")
            try:
                raw = self.input_func("  Enter choice: ")
            except EOFError:
                return OverlapChoice.ABORT
            choice = parse_choice(raw)
            if choice is not None:
                return choice
            print("  [!] Invalid choice. Please enter one of: w, s, W, S, a")


@dataclass
class SubmitContext:
    """Run-scoped overlap policy and counters."""

    skip_all: bool = False
    write_all: bool = False
    summary: SubmitSummary = field(default_factory=SubmitSummary)


def apply_choice(ctx: SubmitContext, choice: OverlapChoice, overlaps: list[OverlapPair]) -> list[RemoteLineItem]:
    """Update the run policy for `choice` and return the accepted locals."""
    if choice is OverlapChoice.ABORT:
        raise SubmitAborted(ctx.summary)
    if choice is OverlapChoice.WRITE_ALL:
        ctx.write_all = True
    elif choice is OverlapChoice.SKIP_ALL:
        ctx.skip_all = True

    if choice in (OverlapChoice.WRITE, OverlapChoice.WRITE_ALL):
        return [pair.local for pair in overlaps]
    return []


def resolve_overlaps(
    ctx: SubmitContext, overlaps: list[OverlapPair], dry_run: bool, prompter
) -> list[RemoteLineItem]:
    """Decide which overlapping locals of one day get written."""
    if not overlaps:
        return []
    if ctx.skip_all:
        return []
    if ctx.write_all:
        return [pair.local for pair in overlaps]

    if dry_run:
        for pair in overlaps:
            print(
                f"[!] Warning: local entry {format_range(pair.local)} (ProjectID={pair.local.project_id}) "
                f"overlaps with existing {format_range(pair.existing)}"
            )
        return []

    day_label = overlaps[0].local.worklog_date.strip() or "unknown day"
    return apply_choice(ctx, prompter.choose(day_label, overlaps), overlaps)


def submit_batches(
    client,
    batches: list[DayBatch],
    dry_run: bool = False,
    prompter=None,
    should_stop: Callable[[], bool] | None = None,
) -> SubmitSummary:
    """Run the per-day protocol over prepared batches.

    Raises:
        SubmitAborted: the user chose to abort
        ApiError: a remote call failed; earlier days stay persisted
    """
    prompter = prompter or TerminalPrompter()
    ctx = SubmitContext(summary=SubmitSummary(days=len(batches), dry_run=dry_run))
    summary = ctx.summary
    summary.local_entries = sum(len(b.worklogs) for b in batches)

    if dry_run:
        print("[DRY-RUN] Validating against existing OnePoint entries without persisting changes.")

    for batch in batches:
        if should_stop is not None and should_stop():
            print("[!] Cancelled, no further days are processed.")
            summary.cancelled = True
            break

        day_label = format_day(batch.day)
        existing = client.get_day_worklogs(batch.day)

        locked = count_locked(existing)
        if locked:
            summary.locked_days.append(day_label)
            print(f"[!] Skipping day {day_label}: {locked} locked entry/entries found - no changes made")
            continue

        existing_payload = unlocked_payload(existing)
        to_add, overlaps, duplicates = classify(batch.worklogs, existing_payload)
        summary.duplicates += duplicates
        summary.overlaps += len(overlaps)

        approved = resolve_overlaps(ctx, overlaps, dry_run, prompter)
        summary.overlaps_written += len(approved)
        to_add = to_add + approved

        if dry_run:
            print(
                f"[DRY-RUN] Day {day_label}: local={len(batch.worklogs)} duplicates={duplicates} "
                f"overlaps={len(overlaps)} ready={len(to_add)}"
            )
            continue

        if not to_add:
            print(f"[*] No new entries for day {day_label}. Skipping persist.")
            continue

        results = client.persist_worklogs(batch.day, existing_payload + to_add)
        summary.persist_calls += 1
        summary.persist_responses += len(results)
        print(
            f"[+] Submitted day {day_label}. Local entries: {len(batch.worklogs)}, "
            f"Added entries: {len(to_add)}, Persist responses: {len(results)}"
        )

    return summary


def submit(
    client,
    entries: list[WorklogEntry],
    rules: list[dict],
    options: ResolveOptions | None = None,
    dry_run: bool = False,
    prompter=None,
    should_stop: Callable[[], bool] | None = None,
) -> SubmitSummary:
    """Resolve ids, build day batches and submit them.

    Time and billable checks run before any remote call, the lookup
    snapshot included. A ValidationError or ResolveError means nothing
    was sent.
    """
    validate_entries(entries)
    ids = resolve_ids_for_entries(client, rules, entries, options)
    batches = build_day_batches(entries, ids)
    return submit_batches(client, batches, dry_run=dry_run, prompter=prompter, should_stop=should_stop)


def print_summary(summary: SubmitSummary) -> None:
    """Print the run summary block."""
    locked = f"  [{', '.join(summary.locked_days)}]" if summary.locked_days else ""
    print()
    print("[DRY-RUN] Summary:" if summary.dry_run else "[*] Submit summary:")
    print(f"    Days to submit:               {summary.days}")
    print(f"    Days skipped (locked):        {len(summary.locked_days)}{locked}")
    print(f"    Local entries prepared:       {summary.local_entries}")
    print(f"    Duplicates (skipped):         {summary.duplicates}")
    print(f"    Overlapping entries (warned): {summary.overlaps}")
    if not summary.dry_run:
        print(f"    Overlapping entries written:  {summary.overlaps_written}")
        print(f"    Persist calls:                {summary.persist_calls}")
        print(f"    Persist responses:            {summary.persist_responses}")
    if summary.cancelled:
        print("    Run was cancelled before all days were processed.")
