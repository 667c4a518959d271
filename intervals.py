"""Sorted, non-overlapping interval sets."""

from models import Interval


def merge(existing: list[Interval], new: Interval) -> list[Interval]:
    """Return a new normalized interval list with `new` merged in.

    Intervals that overlap or touch are coalesced into the widest span.
    Degenerate intervals (end <= start) leave the set unchanged.
    """
    if new.end <= new.start:
        return list(existing)

    ordered = sorted([*existing, new], key=lambda iv: iv.start)

    merged: list[Interval] = []
    current = ordered[0]
    for nxt in ordered[1:]:
        if nxt.start > current.end:
            merged.append(current)
            current = nxt
        elif nxt.end > current.end:
            current = Interval(current.start, nxt.end)
    merged.append(current)
    return merged
