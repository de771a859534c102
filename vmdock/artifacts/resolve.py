"""Disk ordering: turn detected candidates into the final attach sequence."""

import dataclasses

from vmdock.artifacts.types import DiskEntry


def resolve(candidates: list[DiskEntry], order: list[str] | None = None) -> list[DiskEntry]:
    """Return every candidate exactly once, in attach order, with ``slot`` set.

    Without an ordering, candidates are sorted by name. With one, named
    candidates come first in the given order; unknown and repeated names are
    skipped, and leftovers follow in detection order.
    """
    if len(candidates) <= 1:
        ordered = list(candidates)
    elif not order:
        ordered = sorted(candidates, key=lambda d: d.name)
    else:
        remaining = list(candidates)
        ordered = []
        for name in order:
            for i, candidate in enumerate(remaining):
                if candidate.name == name:
                    ordered.append(remaining.pop(i))
                    break
        ordered.extend(remaining)

    return [dataclasses.replace(d, slot=i) for i, d in enumerate(ordered)]
