"""Prepare local worklogs for submission: resolve ids, build day batches."""

from models import DayBatch, NameTuple, RemoteLineItem, ResolvedIds, WorklogEntry
from lookup import ResolveError, ResolveOptions, resolve_ids_from_snapshot
from utils import format_day, minutes_from_midnight, normalize_mapper, normalize_name, same_day, start_of_day


class ValidationError(Exception):
    """A local worklog violates a submission invariant."""

    def __init__(self, message: str, worklog_id: int | None = None):
        super().__init__(message)
        self.worklog_id = worklog_id


def name_tuple(entry: WorklogEntry) -> NameTuple:
    return NameTuple(
        mapper=normalize_mapper(entry.source_mapper),
        project=normalize_name(entry.project),
        activity=normalize_name(entry.activity),
        skill=normalize_name(entry.skill),
    )


def _is_blank(t: NameTuple) -> bool:
    return not (t.project and t.activity and t.skill)


def collect_required_name_tuples(entries: list[WorklogEntry]) -> list[NameTuple]:
    """Unique, sorted name tuples needed to submit `entries`."""
    unique: set[NameTuple] = set()
    for entry in entries:
        t = name_tuple(entry)
        if _is_blank(t):
            raise ValidationError(
                f"worklog id={entry.id} has empty project/activity/skill values and cannot resolve IDs",
                entry.id,
            )
        unique.add(t)
    return sorted(unique, key=lambda t: (t.mapper, t.project, t.activity, t.skill))


def build_rule_id_map(rules: list[dict]) -> dict[NameTuple, ResolvedIds]:
    """Map configured rules to ids; incomplete rules are ignored, first rule wins."""
    out: dict[NameTuple, ResolvedIds] = {}
    for rule in rules:
        t = NameTuple(
            mapper=normalize_mapper(rule.get("mapper", "epm")),
            project=normalize_name(rule.get("project", "")),
            activity=normalize_name(rule.get("activity", "")),
            skill=normalize_name(rule.get("skill", "")),
        )
        if _is_blank(t):
            continue
        ids = ResolvedIds(
            project_id=int(rule.get("project_id") or 0),
            activity_id=int(rule.get("activity_id") or 0),
            skill_id=int(rule.get("skill_id") or 0),
        )
        if min(ids.project_id, ids.activity_id, ids.skill_id) <= 0:
            continue
        out.setdefault(t, ids)
    return out


def resolve_ids_for_entries(
    client,
    rules: list[dict],
    entries: list[WorklogEntry],
    options: ResolveOptions | None = None,
) -> dict[NameTuple, ResolvedIds]:
    """Resolve ids via configured rules, falling back to the remote lookup.

    The lookup snapshot is fetched at most once, and only when some tuple
    is not covered by a rule.
    """
    required = collect_required_name_tuples(entries)
    rule_ids = build_rule_id_map(rules)

    resolved: dict[NameTuple, ResolvedIds] = {}
    missing: list[NameTuple] = []
    for t in required:
        if t in rule_ids:
            resolved[t] = rule_ids[t]
        else:
            missing.append(t)

    if not missing:
        return resolved

    snapshot = client.fetch_lookup_snapshot()
    for t in missing:
        try:
            resolved[t] = resolve_ids_from_snapshot(snapshot, t.project, t.activity, t.skill, options)
        except ResolveError as e:
            raise type(e)(
                f"resolve ids for mapper='{t.mapper}' project='{t.project}' "
                f"activity='{t.activity}' skill='{t.skill}': {e}"
            ) from e
    return resolved


def validate_entry_times(entry: WorklogEntry) -> tuple[int, int, int]:
    """Check one entry can be sent as a single-day line item.

    Returns (start, finish, duration) in minutes.
    """
    if not same_day(entry.start, entry.end):
        raise ValidationError(f"worklog id={entry.id} crosses day boundaries and cannot be submitted", entry.id)

    start = minutes_from_midnight(entry.start)
    finish = minutes_from_midnight(entry.end)
    duration = int((entry.end - entry.start).total_seconds() // 60)
    if duration <= 0 or finish <= start:
        raise ValidationError(f"worklog id={entry.id} has invalid time range", entry.id)

    if entry.billable < 0:
        raise ValidationError(f"worklog id={entry.id} has negative billable value ({entry.billable})", entry.id)

    return start, finish, duration


def validate_entries(entries: list[WorklogEntry]) -> None:
    """Run the local checks that need no remote data, in (start, id) order."""
    for entry in sorted(entries, key=lambda e: (e.start, e.id or 0)):
        validate_entry_times(entry)


def build_day_batches(
    entries: list[WorklogEntry], ids_by_tuple: dict[NameTuple, ResolvedIds]
) -> list[DayBatch]:
    """Group entries into per-day batches of new remote line items.

    Placeholder record ids start at -1 and decrease across all days in
    (start, id) order. Any invalid entry fails the whole build.
    """
    ordered = sorted(entries, key=lambda e: (e.start, e.id or 0))

    by_day: dict[str, DayBatch] = {}
    next_temp_id = -1

    for entry in ordered:
        t = name_tuple(entry)
        if _is_blank(t):
            raise ValidationError(f"worklog id={entry.id} has empty project/activity/skill values", entry.id)

        ids = ids_by_tuple.get(t)
        if ids is None:
            raise ValidationError(
                f"no resolved ids for worklog id={entry.id} (mapper='{t.mapper}', project='{t.project}', "
                f"activity='{t.activity}', skill='{t.skill}')",
                entry.id,
            )
        if min(ids.project_id, ids.activity_id, ids.skill_id) <= 0:
            raise ValidationError(
                f"resolved ids must be > 0 for worklog id={entry.id} (project={ids.project_id}, "
                f"activity={ids.activity_id}, skill={ids.skill_id})",
                entry.id,
            )

        start, finish, duration = validate_entry_times(entry)

        day = start_of_day(entry.start)
        key = day.strftime("%Y-%m-%d")
        batch = by_day.get(key)
        if batch is None:
            batch = by_day[key] = DayBatch(day=day)

        batch.worklogs.append(
            RemoteLineItem(
                time_record_id=next_temp_id,
                worklog_date=format_day(day),
                start_time=start,
                finish_time=finish,
                duration=duration,
                billable=entry.billable,
                project_id=ids.project_id,
                activity_id=ids.activity_id,
                skill_id=ids.skill_id,
                comment=entry.description.strip(),
            )
        )
        next_temp_id -= 1

    return [by_day[key] for key in sorted(by_day)]


def count_locked(existing: list[RemoteLineItem]) -> int:
    return sum(1 for item in existing if item.is_locked)


def unlocked_payload(existing: list[RemoteLineItem]) -> list[RemoteLineItem]:
    """Existing items that must be resent with every persist call."""
    return [item for item in existing if not item.is_locked]
