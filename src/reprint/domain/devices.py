from typing import Iterable, List, Tuple

from reprint.domain.models import Device
from reprint.infra.config import DeviceEntry


class DeviceRegistry:
    """Fixed, ordered set of recyclers known to the panel."""

    def __init__(self, devices: Iterable[Device]) -> None:
        self._devices: Tuple[Device, ...] = tuple(devices)
        ids = [d.id for d in self._devices]
        if len(set(ids)) != len(ids):
            raise ValueError("device ids must be unique")
        self._by_id = {d.id: d for d in self._devices}

    @classmethod
    def from_config(cls, entries: Iterable[DeviceEntry]) -> "DeviceRegistry":
        return cls(Device(id=e.id, display_name=e.name) for e in entries)

    def __iter__(self):
        return iter(self._devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._by_id

    @property
    def ids(self) -> List[str]:
        return [d.id for d in self._devices]

    def get(self, device_id: str) -> Device:
        try:
            return self._by_id[device_id]
        except KeyError:
            raise KeyError(f"Unknown device '{device_id}'") from None
