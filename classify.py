"""Classify local submit candidates against existing remote line items."""

from models import OverlapPair, RemoteLineItem


def equivalent(a: RemoteLineItem, b: RemoteLineItem) -> bool:
    """Same time range and same project/activity/skill.

    Comment, billable and duration are ignored so that a locally edited
    comment still counts as already submitted.
    """
    return (
        a.start_time == b.start_time
        and a.finish_time == b.finish_time
        and a.project_id == b.project_id
        and a.activity_id == b.activity_id
        and a.skill_id == b.skill_id
    )


def time_overlaps(a: RemoteLineItem, b: RemoteLineItem) -> bool:
    """Non-equivalent items whose [start, finish) ranges intersect."""
    if None in (a.start_time, a.finish_time, b.start_time, b.finish_time):
        return False
    if equivalent(a, b):
        return False
    return a.start_time < b.finish_time and b.start_time < a.finish_time


def classify(
    local: list[RemoteLineItem], existing: list[RemoteLineItem]
) -> tuple[list[RemoteLineItem], list[OverlapPair], int]:
    """Split local candidates into new entries, overlaps and duplicates.

    Returns:
        - to_add: candidates that neither duplicate nor overlap anything
        - overlaps: one pair per overlapping candidate (first match wins)
        - duplicates: number of candidates already present remotely
    """
    to_add: list[RemoteLineItem] = []
    overlaps: list[OverlapPair] = []
    duplicates = 0

    for candidate in local:
        if any(equivalent(item, candidate) for item in existing):
            duplicates += 1
            continue

        hit = next((item for item in existing if time_overlaps(candidate, item)), None)
        if hit is not None:
            overlaps.append(OverlapPair(local=candidate, existing=hit))
            continue

        to_add.append(candidate)

    return to_add, overlaps, duplicates
