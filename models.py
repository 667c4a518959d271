"""Data models for worklog reconciliation and OnePoint sync."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class WorklogEntry:
    """A worklog entry from the local ledger."""

    id: int | None
    start: datetime
    end: datetime
    billable: int  # minutes
    description: str = ""
    project: str = ""
    activity: str = ""
    skill: str = ""
    source_format: str = ""
    source_mapper: str = ""
    source_file: str = ""


@dataclass(frozen=True)
class Interval:
    """A half-open time range [start, end)."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class NameTuple:
    """Normalized (mapper, project, activity, skill) key."""

    mapper: str
    project: str
    activity: str
    skill: str


@dataclass(frozen=True)
class ResolvedIds:
    """Remote identifiers for one NameTuple."""

    project_id: int
    activity_id: int
    skill_id: int


def _flexible_id(value) -> int | None:
    # The remote API sends numbers, numeric strings, or "" and null for unset.
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    return int(value)


def _int_or(value, default: int) -> int:
    number = _flexible_id(value)
    return default if number is None else number


@dataclass
class RemoteLineItem:
    """A worklog line item as seen by the OnePoint day API."""

    time_record_id: int
    worklog_date: str  # DD-MM-YYYY
    start_time: int | None  # minutes from midnight
    finish_time: int | None
    duration: int
    billable: int
    project_id: int | None
    activity_id: int | None
    skill_id: int | None
    comment: str = ""
    valuable: int = 0
    work_slip_id: int = -1
    work_record_id: int = -1
    locked: int = 0

    @property
    def is_locked(self) -> bool:
        return self.locked != 0

    @classmethod
    def from_dict(cls, data: dict) -> "RemoteLineItem":
        """Build from a getFilteredWorklogs item."""
        return cls(
            time_record_id=_int_or(data.get("timerecordId"), 0),
            worklog_date=data.get("worklogDate") or "",
            start_time=_flexible_id(data.get("startTime")),
            finish_time=_flexible_id(data.get("finishTime")),
            duration=_int_or(data.get("duration"), 0),
            billable=_int_or(data.get("billable"), 0),
            project_id=_flexible_id(data.get("projectId")),
            activity_id=_flexible_id(data.get("activityId")),
            skill_id=_flexible_id(data.get("skillId")),
            comment=data.get("comment") or "",
            valuable=_int_or(data.get("valuable"), 0),
            work_slip_id=_int_or(data.get("workslipId"), -1),
            work_record_id=_int_or(data.get("workrecordId"), -1),
            locked=_int_or(data.get("locked"), 0),
        )

    def to_payload(self) -> dict:
        """Serialize for persistWorklogs (no locked flag on the wire)."""
        return {
            "timerecordId": self.time_record_id,
            "workslipId": self.work_slip_id,
            "workrecordId": self.work_record_id,
            "worklogDate": self.worklog_date,
            "startTime": self.start_time,
            "finishTime": self.finish_time,
            "duration": self.duration,
            "billable": self.billable,
            "valuable": self.valuable,
            "projectId": "" if self.project_id is None else self.project_id,
            "activityId": "" if self.activity_id is None else self.activity_id,
            "skillId": "" if self.skill_id is None else self.skill_id,
            "comment": self.comment,
        }


@dataclass
class PersistResult:
    """One acknowledgment returned by persistWorklogs."""

    message: str
    message_type: str
    new_time_record_id: int
    old_time_record_id: int
    worklog_date: str

    @classmethod
    def from_dict(cls, data: dict) -> "PersistResult":
        return cls(
            message=data.get("message") or "",
            message_type=data.get("messageType") or "",
            new_time_record_id=int(data.get("newTimeRecordId") or 0),
            old_time_record_id=int(data.get("oldTimeRecordId") or 0),
            worklog_date=data.get("worklogDate") or "",
        )


@dataclass
class DayBatch:
    """Local entries prepared for one remote calendar day."""

    day: datetime
    worklogs: list[RemoteLineItem] = field(default_factory=list)


@dataclass
class OverlapPair:
    """A local candidate that intersects an existing remote item."""

    local: RemoteLineItem
    existing: RemoteLineItem


@dataclass
class Project:
    id: int
    name: str
    archived: str = ""

    @property
    def is_archived(self) -> bool:
        return self.archived.strip() == "1"


@dataclass
class Activity:
    id: int
    name: str
    project_node_id: int
    locked: bool = False


@dataclass
class Skill:
    skill_id: int
    name: str
    activity_id: int


@dataclass
class LookupSnapshot:
    """All projects, activities and skills visible to the user."""

    projects: list[Project] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    skills: list[Skill] = field(default_factory=list)


@dataclass
class ReconcileResult:
    """Outcome of a reconcile run over the local ledger."""

    days_processed: int = 0
    overlaps_before: int = 0
    overlaps_after: int = 0
    entries_adjusted: int = 0
    rows_updated: int = 0


@dataclass
class SubmitSummary:
    """Run-level counters for a submit operation."""

    days: int = 0
    local_entries: int = 0
    duplicates: int = 0
    overlaps: int = 0
    overlaps_written: int = 0
    persist_calls: int = 0
    persist_responses: int = 0
    locked_days: list[str] = field(default_factory=list)
    dry_run: bool = False
    cancelled: bool = False
