from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class Material:
    id: str
    setpoint_c: float
    range_c: Tuple[float, float]
    label: str
    density: str

    def clamp(self, value: float) -> float:
        lo, hi = self.range_c
        return min(max(float(value), lo), hi)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "setpoint_c": self.setpoint_c,
            "range_c": list(self.range_c),
            "label": self.label,
            "density": self.density,
        }


MATERIALS: Dict[str, Material] = {
    "PLA": Material("PLA", 205.0, (180.0, 220.0), "PLA (Polylactic Acid)", "1.24 g/cm³"),
    "PETG": Material("PETG", 240.0, (220.0, 260.0), "PETG (Polyethylene Terephthalate Glycol)", "1.27 g/cm³"),
    "ABS": Material("ABS", 245.0, (220.0, 250.0), "ABS (Acrylonitrile Butadiene Styrene)", "1.04 g/cm³"),
}


def get_material(material_id: str) -> Material:
    try:
        return MATERIALS[material_id.upper()]
    except KeyError:
        raise KeyError(f"Unknown material '{material_id}'") from None
