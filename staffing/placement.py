"""
Deterministic placement of a fractional day quota onto concrete dates.

The same (employee, work package) pair always gets the same days, so the
calendar view, cost tables and exports agree on which day was worked.
Placement prefers adjacent working pairs and spreads slots evenly over the
available range instead of front-loading them.
"""
import math
from datetime import date
from typing import Sequence

from .allocation import HOURS_PER_DAY
from .schemas import DayPlacement

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2 ** 31

# Fri -> Mon still counts as a pair
MAX_PAIR_GAP_DAYS = 3


def placement_seed(employee_id: str, work_package_id: str) -> int:
    """Fold the ids over their UTF-16 code units, so astral characters count as surrogate pairs."""
    data = (employee_id + work_package_id).encode("utf-16-le")
    acc = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        acc = (acc * 31 + unit) & 0xFFFFFFFF
    if acc >= 2 ** 31:
        acc -= 2 ** 32
    return abs(acc)


class SeededRandom:
    """Linear congruential generator, reproducible from its seed alone."""

    def __init__(self, seed: int):
        self.seed = seed % LCG_MODULUS

    def next(self) -> float:
        self.seed = (self.seed * LCG_MULTIPLIER + LCG_INCREMENT) % LCG_MODULUS
        return self.seed / LCG_MODULUS


def split_quota(total_days: float) -> tuple[int, int]:
    """Split a day quota into full days and remaining hours (0..7)."""
    if total_days <= 0:
        return 0, 0
    full_days = math.floor(total_days)
    remainder_hours = math.floor((total_days - full_days) * HOURS_PER_DAY + 0.5)
    if remainder_hours == HOURS_PER_DAY:
        full_days += 1
        remainder_hours = 0
    return full_days, remainder_hours


def adjacent_pairs(dates: Sequence[date]) -> list[tuple[int, int]]:
    return [
        (i, i + 1) for i in range(len(dates) - 1)
        if (dates[i + 1] - dates[i]).days <= MAX_PAIR_GAP_DAYS
    ]


def _pick_pairs(pairs: list[tuple[int, int]], wanted: int, rng: SeededRandom, picked: set[int]) -> int:
    step = len(pairs) / wanted
    offset = rng.next() * step
    taken = 0
    for k in range(wanted):
        first, second = pairs[min(int(offset + k * step), len(pairs) - 1)]
        if first in picked or second in picked:
            continue
        picked.update((first, second))
        taken += 2
    return taken


def _pick_singles(count: int, wanted: int, rng: SeededRandom, picked: set[int]) -> None:
    unpicked = [i for i in range(count) if i not in picked]
    step = len(unpicked) / wanted
    offset = rng.next() * step
    for k in range(wanted):
        picked.add(unpicked[min(int(offset + k * step), len(unpicked) - 1)])


def place_days(employee_id: str, work_package_id: str, available_dates: Sequence[date],
               total_days: float) -> DayPlacement:
    """
    Choose the dates worked for a quota of ``total_days``.

    ``available_dates`` must be ascending. Every chosen date gets a full day
    except the chronologically last one, which carries the remaining hours
    when the quota is not a whole number of days. When the quota needs at
    least as many slots as there are dates, every date is worked.
    """
    dates = list(available_dates)
    full_days, remainder_hours = split_quota(total_days)
    total_slots = full_days + (1 if remainder_hours > 0 else 0)
    if total_slots == 0 or not dates:
        return DayPlacement()

    if total_slots >= len(dates):
        chosen = list(range(len(dates)))
    else:
        rng = SeededRandom(placement_seed(employee_id, work_package_id))
        picked: set[int] = set()
        remaining = total_slots
        pairs = adjacent_pairs(dates)
        if remaining >= 2 and pairs:
            remaining -= _pick_pairs(pairs, remaining // 2, rng, picked)
        if remaining > 0:
            _pick_singles(len(dates), remaining, rng, picked)
        chosen = sorted(picked)

    hours_by_date = {dates[i]: HOURS_PER_DAY for i in chosen}
    if remainder_hours > 0:
        last = dates[chosen[-1]]
        hours_by_date[last] = remainder_hours
        return DayPlacement(hours_by_date=hours_by_date, partial_date=last, partial_hours=remainder_hours)
    return DayPlacement(hours_by_date=hours_by_date)
