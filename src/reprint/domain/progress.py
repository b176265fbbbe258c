"""
Pure helpers shared by the run tick and the status projections.
"""

import math
from typing import Optional

STAGES = ("Shredding", "Melting", "Extruding", "Spooling")
SPOOL_START = 75.0

HOUR_S = 3600
MINUTE_S = 60


def clamp(value: float, lo: float, hi: float) -> float:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def stage_index(progress: float) -> int:
    if progress < 25:
        return 0
    if progress < 50:
        return 1
    if progress < 75:
        return 2
    return 3


def stage_name(progress: float) -> str:
    return STAGES[stage_index(progress)]


def spool_progress(progress: float) -> float:
    """Remap the last quartile of overall progress onto a 0..100 spool fill."""
    if progress < SPOOL_START:
        return 0.0
    return clamp((progress - SPOOL_START) * 100.0 / (100.0 - SPOOL_START), 0.0, 100.0)


def eta_seconds(progress: float, total_duration_s: float) -> float:
    return max(0.0, (1.0 - progress / 100.0) * total_duration_s)


def format_duration(seconds: Optional[float]) -> str:
    # minutes round up; the hour prefix is dropped when zero
    seconds = max(0.0, float(seconds or 0.0))
    hours = int(seconds // HOUR_S)
    minutes = math.ceil(round(seconds % HOUR_S, 6) / MINUTE_S)
    if hours <= 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"
