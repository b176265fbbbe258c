from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class NetworkConfig:
    host: str = "0.0.0.0"
    api_port: int = 8010


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class SimulationConfig:
    tick_interval_s: float = 1.1
    temperature_interval_s: float = 0.75
    increment_min: float = 1.0
    increment_max: float = 3.0
    start_progress: float = 18.0
    auto_reset_delay_s: float = 30.0
    total_duration_s: float = 2 * 60 * 60
    seed: Optional[int] = None
    autostart: bool = True


@dataclass
class DeviceEntry:
    id: str
    name: str


def _default_devices() -> List[DeviceEntry]:
    return [
        DeviceEntry(id="r1", name="Re-Print 1"),
        DeviceEntry(id="r2", name="Re-Print 2"),
        DeviceEntry(id="r3", name="Re-Print 3"),
    ]


def _default_faults() -> Dict[str, List[str]]:
    return {
        "r1": [
            "Placeholder error message (sensor drift)",
            "Placeholder error message (jam detected)",
            "Placeholder error message (over-temp)",
        ]
    }


@dataclass
class ReprintConfig:
    network: NetworkConfig = field(default_factory=NetworkConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    devices: List[DeviceEntry] = field(default_factory=_default_devices)
    faults: Dict[str, List[str]] = field(default_factory=_default_faults)
    material: str = "PLA"


def _load_yaml(path: str) -> Dict[str, Any]:
    raw = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(raw) if raw else {}
    return data or {}


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = cls.__dataclass_fields__.keys()
    return {key: value for key, value in (data or {}).items() if key in names}


def load_config(path: Optional[str]) -> ReprintConfig:
    """
    Read YAML config into a typed ReprintConfig with sensible defaults.

    A missing path or file yields the defaults. Unknown keys are ignored.
    """
    if not path or not Path(path).exists():
        return ReprintConfig()

    data = _load_yaml(path)
    defaults = ReprintConfig()

    devices = defaults.devices
    if data.get("devices"):
        devices = [DeviceEntry(id=str(d["id"]), name=str(d.get("name", d["id"]))) for d in data["devices"]]

    faults = defaults.faults
    if "faults" in data:
        faults = {str(dev): [str(m) for m in (msgs or [])] for dev, msgs in (data["faults"] or {}).items()}

    return ReprintConfig(
        network=NetworkConfig(**_known(NetworkConfig, data.get("network", {}))),
        logging=LoggingConfig(**_known(LoggingConfig, data.get("logging", {}))),
        simulation=SimulationConfig(**_known(SimulationConfig, data.get("simulation", {}))),
        devices=devices,
        faults=faults,
        material=str(data.get("material", defaults.material)),
    )
