"""Shared fixtures: worklog factory and an in-memory OnePoint client."""

from dataclasses import replace
from datetime import datetime

import pytest

from clients import ApiError
from models import LookupSnapshot, PersistResult, RemoteLineItem, WorklogEntry
from utils import format_day

DAY = datetime(2026, 3, 10)


def at(hhmm: str, day: datetime = DAY) -> datetime:
    hour, minute = (int(x) for x in hhmm.split(":"))
    return day.replace(hour=hour, minute=minute)


def make_entry(
    id: int | None,
    start: str,
    end: str,
    mapper: str = "generic",
    project: str = "Project A",
    activity: str = "Delivery",
    skill: str = "Python",
    billable: int | None = None,
    description: str = "work",
    source_file: str = "generic.csv",
    day: datetime = DAY,
) -> WorklogEntry:
    s, e = at(start, day), at(end, day)
    if billable is None:
        billable = int((e - s).total_seconds() // 60)
    return WorklogEntry(
        id=id,
        start=s,
        end=e,
        billable=billable,
        description=description,
        project=project,
        activity=activity,
        skill=skill,
        source_format="csv",
        source_mapper=mapper,
        source_file=source_file,
    )


def remote_item(
    start: int,
    finish: int,
    project_id: int = 1,
    activity_id: int = 2,
    skill_id: int = 3,
    comment: str = "remote",
    billable: int | None = None,
    locked: int = 0,
    record_id: int = 100,
    day: datetime = DAY,
) -> RemoteLineItem:
    return RemoteLineItem(
        time_record_id=record_id,
        worklog_date=format_day(day),
        start_time=start,
        finish_time=finish,
        duration=finish - start,
        billable=finish - start if billable is None else billable,
        project_id=project_id,
        activity_id=activity_id,
        skill_id=skill_id,
        comment=comment,
        work_slip_id=10,
        work_record_id=20,
        locked=locked,
    )


class FakeClient:
    """Keeps remote days in memory and records persist calls."""

    def __init__(self, days: dict[str, list[RemoteLineItem]] | None = None, snapshot=None):
        self.days = days or {}
        self.snapshot = snapshot or LookupSnapshot()
        self.persist_calls: list[tuple[str, list[RemoteLineItem]]] = []
        self.fetched_days: list[str] = []
        self.snapshot_fetches = 0
        self.fail_on_day: str | None = None

    def fetch_lookup_snapshot(self) -> LookupSnapshot:
        self.snapshot_fetches += 1
        return self.snapshot

    def get_day_worklogs(self, day) -> list[RemoteLineItem]:
        label = format_day(day)
        self.fetched_days.append(label)
        if label == self.fail_on_day:
            raise ApiError(f"OnePoint: GET {label} timed out after 1s.")
        return list(self.days.get(label, []))

    def persist_worklogs(self, day, worklogs) -> list[PersistResult]:
        label = format_day(day)
        self.persist_calls.append((label, list(worklogs)))
        # OnePoint assigns real ids to placeholders and keeps the rest.
        stored = []
        for i, item in enumerate(worklogs):
            if item.time_record_id < 0:
                item = replace(item, time_record_id=1000 + i)
            stored.append(item)
        self.days[label] = stored
        return [
            PersistResult("ok", "INFO", item.time_record_id, item.time_record_id, label) for item in worklogs
        ]


class ScriptedPrompter:
    """Answers overlap prompts from a fixed list of choices."""

    def __init__(self, *choices):
        self.choices = list(choices)
        self.asked: list[str] = []

    def choose(self, day_label, overlaps):
        self.asked.append(day_label)
        return self.choices.pop(0)


@pytest.fixture
def fake_client():
    return FakeClient()
