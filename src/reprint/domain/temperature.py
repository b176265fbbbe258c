import math
import random
from dataclasses import dataclass
from typing import Optional

from reprint.domain.materials import Material, get_material
from reprint.domain.progress import clamp

JITTER_C = 2.0
SMOOTHING = 0.25


@dataclass
class TemperatureState:
    material: str
    setpoint_c: float
    live_c: float


class TemperatureSimulator:
    """
    Cosmetic heater readout. The live value chases the setpoint with a
    bounded jitter and never strays more than JITTER_C from it.
    """

    def __init__(self, material_id: str = "PLA", rng=None) -> None:
        self.rng = rng if rng is not None else random.Random()
        self._material: Material = get_material(material_id)
        self._setpoint = self._material.setpoint_c
        self._live = self._setpoint

    @property
    def material(self) -> Material:
        return self._material

    @property
    def setpoint(self) -> float:
        return self._setpoint

    @property
    def live(self) -> float:
        return self._live

    def set_material(self, material_id: str) -> Material:
        self._material = get_material(material_id)
        self._setpoint = self._material.setpoint_c
        return self._material

    def set_setpoint(self, value: float) -> float:
        if not math.isfinite(float(value)):
            raise ValueError("setpoint must be a finite number")
        self._setpoint = self._material.clamp(value)
        return self._setpoint

    def nudge(self, delta: float) -> float:
        return self.set_setpoint(self._setpoint + float(delta))

    def reset_setpoint(self) -> float:
        return self.set_setpoint(self._material.setpoint_c)

    def step(self, jitter: Optional[float] = None) -> float:
        if jitter is None:
            jitter = self.rng.uniform(-JITTER_C, JITTER_C)
        target = self._setpoint + jitter
        nxt = self._live + (target - self._live) * SMOOTHING
        self._live = clamp(nxt, self._setpoint - JITTER_C, self._setpoint + JITTER_C)
        return self._live

    def snapshot(self) -> TemperatureState:
        return TemperatureState(material=self._material.id, setpoint_c=self._setpoint, live_c=self._live)
