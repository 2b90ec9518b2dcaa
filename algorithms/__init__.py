from .set_math import SetMath, compute_totals
from .weight_converter import WeightConverter

__all__ = ["SetMath", "compute_totals", "WeightConverter"]
