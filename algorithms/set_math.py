import math
import re
import sys
from typing import Iterable, Optional

from models import SetRow, Totals
from .weight_converter import WeightConverter

_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


class SetMath:
    """Parsing and aggregation of raw set rows.

    Weights and reps are carried as text and only parsed here, so a
    partially typed row is never rejected; it simply does not count.
    """

    @staticmethod
    def parse_float(text: object) -> Optional[float]:
        """Return the leading decimal number in ``text`` or ``None``."""
        if not isinstance(text, str):
            return None
        match = _FLOAT_PREFIX.match(text)
        if match is None:
            return None
        value = float(match.group(1))
        return value if math.isfinite(value) else None

    @staticmethod
    def parse_int(text: object) -> Optional[int]:
        """Return the leading integer in ``text`` or ``None``."""
        if not isinstance(text, str):
            return None
        match = _INT_PREFIX.match(text)
        if match is None:
            return None
        try:
            value = int(match.group(1))
            float(value)
        except (OverflowError, ValueError):
            return None
        return value

    @classmethod
    def parse_row(cls, row: SetRow) -> Optional[tuple[float, int]]:
        """Return ``(weight, reps)`` for a valid row, ``None`` otherwise."""
        weight = cls.parse_float(row.weight)
        reps = cls.parse_int(row.reps)
        if weight is None or reps is None or weight <= 0 or reps <= 0:
            return None
        return weight, reps

    @classmethod
    def is_valid_row(cls, row: SetRow) -> bool:
        return cls.parse_row(row) is not None

    @classmethod
    def valid_rows(cls, rows: Iterable[SetRow]) -> list[SetRow]:
        return [r for r in rows if cls.is_valid_row(r)]

    @staticmethod
    def round_load(value: float) -> float:
        """Round half up to one decimal place.

        Infinite loads clamp to the largest finite float. Values too large
        to scale are returned unchanged.
        """
        if math.isinf(value):
            return math.copysign(sys.float_info.max, value)
        scaled = value * 10 + 0.5
        if not math.isfinite(scaled):
            return value
        return math.floor(scaled) / 10

    @classmethod
    def compute_totals(cls, rows: Iterable[SetRow], unit: str) -> Totals:
        """Aggregate valid rows into kilogram load, reps and set count."""
        load = 0.0
        reps_total = 0
        sets = 0
        for row in rows:
            parsed = cls.parse_row(row)
            if parsed is None:
                continue
            weight, reps = parsed
            load += WeightConverter.to_kg(weight, unit) * reps
            reps_total += reps
            sets += 1
        return Totals(load_kg=cls.round_load(load), reps=reps_total, sets=sets)


def compute_totals(rows: Iterable[SetRow], unit: str) -> Totals:
    return SetMath.compute_totals(rows, unit)
