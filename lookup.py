"""Resolve project/activity/skill names to OnePoint ids."""

from dataclasses import dataclass

from models import Activity, LookupSnapshot, Project, ResolvedIds, Skill
from patterns import Patterns


class ResolveError(Exception):
    """A name could not be resolved to exactly one usable id."""


class NameNotFoundError(ResolveError):
    pass


class AmbiguousNameError(ResolveError):
    pass


class ArchivedProjectError(ResolveError):
    pass


class LockedActivityError(ResolveError):
    pass


@dataclass
class ResolveOptions:
    include_archived_projects: bool = False
    include_locked_activities: bool = False


def _normalize(value: str) -> str:
    return Patterns.WHITESPACE.sub(" ", (value or "").strip())


def _same_name(a: str, b: str) -> bool:
    return _normalize(a).lower() == _normalize(b).lower()


def _unique(values: list, key) -> list:
    seen = set()
    out = []
    for value in values:
        k = key(value)
        if k in seen:
            continue
        seen.add(k)
        out.append(value)
    return out


def _ids(values: list[int]) -> str:
    return ", ".join(str(v) for v in sorted(set(values)))


def resolve_ids_from_snapshot(
    snapshot: LookupSnapshot,
    project_name: str,
    activity_name: str,
    skill_name: str,
    options: ResolveOptions | None = None,
) -> ResolvedIds:
    """Resolve one name triple against a lookup snapshot.

    Raises:
        NameNotFoundError: no candidate for one of the names
        AmbiguousNameError: more than one candidate
        ArchivedProjectError: project only matches archived projects
        LockedActivityError: activity only matches locked activities
    """
    options = options or ResolveOptions()
    project_name = _normalize(project_name)
    activity_name = _normalize(activity_name)
    skill_name = _normalize(skill_name)
    if not (project_name and activity_name and skill_name):
        raise NameNotFoundError("project, activity and skill names are required")

    projects: list[Project] = []
    archived: list[Project] = []
    for project in snapshot.projects:
        if not _same_name(project.name, project_name):
            continue
        if project.is_archived:
            archived.append(project)
            if not options.include_archived_projects:
                continue
        projects.append(project)
    projects = _unique(projects, lambda p: p.id)

    if not projects:
        if archived and not options.include_archived_projects:
            raise ArchivedProjectError(
                f"project '{project_name}' only matches archived projects "
                f"(ids: {_ids([p.id for p in archived])}); "
                "use --include-archived-projects if this is intended"
            )
        raise NameNotFoundError(f"project '{project_name}' not found")
    if len(projects) > 1:
        raise AmbiguousNameError(
            f"project '{project_name}' is ambiguous (ids: {_ids([p.id for p in projects])})"
        )
    project = projects[0]

    activities: list[Activity] = []
    locked: list[Activity] = []
    for activity in snapshot.activities:
        if activity.project_node_id != project.id or not _same_name(activity.name, activity_name):
            continue
        if activity.locked:
            locked.append(activity)
            if not options.include_locked_activities:
                continue
        activities.append(activity)
    activities = _unique(activities, lambda a: a.id)

    if not activities:
        if locked and not options.include_locked_activities:
            raise LockedActivityError(
                f"activity '{activity_name}' on project '{project.name}' only matches locked "
                f"activities (ids: {_ids([a.id for a in locked])}); "
                "use --include-locked-activities if this is intended"
            )
        raise NameNotFoundError(f"activity '{activity_name}' not found on project '{project.name}'")
    if len(activities) > 1:
        raise AmbiguousNameError(
            f"activity '{activity_name}' on project '{project.name}' is ambiguous "
            f"(ids: {_ids([a.id for a in activities])})"
        )
    activity = activities[0]

    skills: list[Skill] = _unique(
        [s for s in snapshot.skills if s.activity_id == activity.id and _same_name(s.name, skill_name)],
        lambda s: s.skill_id,
    )
    if not skills:
        raise NameNotFoundError(
            f"skill '{skill_name}' not found for activity '{activity.name}' (id {activity.id})"
        )
    if len(skills) > 1:
        raise AmbiguousNameError(
            f"skill '{skill_name}' for activity '{activity.name}' (id {activity.id}) is ambiguous "
            f"(skill ids: {_ids([s.skill_id for s in skills])})"
        )

    return ResolvedIds(project_id=project.id, activity_id=activity.id, skill_id=skills[0].skill_id)
