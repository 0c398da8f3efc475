"""Unique sibling names with "Name (n)" numbering"""

import re
from typing import Iterable, Optional

_NUMBERED = re.compile(r"^(.*?)\s*\((\d+)\)$")


def split_numbered(name: str) -> tuple[str, Optional[int]]:
    """'Promo (3)' -> ('Promo', 3); 'Promo' -> ('Promo', None)"""
    match = _NUMBERED.match(name)
    if match and match.group(1):
        return match.group(1), int(match.group(2))
    return name, None


def resolve_unique_name(candidate: str, sibling_names: Iterable[str]) -> str:
    """Return candidate, or the first free 'base (n)' with n >= 2.

    A sibling named exactly ``base`` holds slot 1. Slots are filled from the
    lowest gap upwards so the result only depends on the set of names.
    """
    taken = set(sibling_names)
    if candidate not in taken:
        return candidate

    base, _ = split_numbered(candidate)
    occupied: set[int] = set()
    for name in taken:
        if name == base:
            occupied.add(1)
            continue
        other_base, number = split_numbered(name)
        if number is not None and other_base == base:
            occupied.add(number)

    slot = 2
    while slot in occupied:
        slot += 1
    return f"{base} ({slot})"


def resolve_batch(candidates: Iterable[str], sibling_names: Iterable[str]) -> list[str]:
    """Resolve several names going into the same sibling group, in order"""
    taken = list(sibling_names)
    result = []
    for candidate in candidates:
        name = resolve_unique_name(candidate, taken)
        taken.append(name)
        result.append(name)
    return result
