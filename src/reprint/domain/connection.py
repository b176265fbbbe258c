import logging
from typing import Optional

from reprint.domain.devices import DeviceRegistry

LOGGER = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks the single device the panel is connected to, if any."""

    def __init__(self, registry: DeviceRegistry) -> None:
        self.registry = registry
        self._connected_id: Optional[str] = None

    @property
    def connected_id(self) -> Optional[str]:
        return self._connected_id

    def is_connected(self, device_id: Optional[str] = None) -> bool:
        if device_id is None:
            return self._connected_id is not None
        return self._connected_id == device_id

    def connect(self, device_id: str) -> None:
        self.registry.get(device_id)
        self._connected_id = device_id
        LOGGER.info("Connected to %s", device_id)

    def disconnect(self) -> None:
        if self._connected_id is not None:
            LOGGER.info("Disconnected from %s", self._connected_id)
        self._connected_id = None
