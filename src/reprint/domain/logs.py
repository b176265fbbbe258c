import itertools
import json
import logging
import random
import string
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from reprint.domain.models import LogEntry, LogLevel

LOGGER = logging.getLogger(__name__)

TICKET_ALPHABET = string.ascii_uppercase + string.digits
TICKET_LENGTH = 6
RESOLVED_PREFIX = "Resolved - "
SEED_SPACING_S = 2 * 60


class LogStore:
    """
    Per-device, insertion-ordered log sequences.

    Entries are only ever appended, except that error entries can be
    rewritten in place to resolved by diagnose().
    """

    def __init__(
        self,
        device_ids: Iterable[str],
        rng=None,
        clock: Callable[[], float] = time.time,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self._logs: Dict[str, List[LogEntry]] = {dev_id: [] for dev_id in device_ids}
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.lock = lock or threading.RLock()
        self._counter = itertools.count(1)

    def seed(self, faults: Mapping[str, Iterable[str]]) -> None:
        """
        Populate simulated faults as error entries (ids e1, e2, ...).

        The newest fault is stamped one minute ago and earlier ones are spaced
        two minutes apart going back.
        """
        now = self.clock()
        with self.lock:
            seq = 1
            for device_id, messages in faults.items():
                messages = list(messages)
                for idx, message in enumerate(messages):
                    age_s = 60 + SEED_SPACING_S * (len(messages) - 1 - idx)
                    self.append(device_id, LogLevel.ERROR, message, entry_id=f"e{seq}", timestamp=now - age_s)
                    seq += 1
        LOGGER.info("Seeded %d simulated fault(s)", self.error_count())

    # ---------------------------------------------------
    # WRITES
    # ---------------------------------------------------
    def append(
        self,
        device_id: str,
        level: LogLevel,
        message: str,
        entry_id: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> LogEntry:
        level = LogLevel(level)
        if level == LogLevel.RESOLVED:
            raise ValueError("resolved entries are only produced by diagnose")
        with self.lock:
            entries = self._require(device_id)
            entry = LogEntry(
                id=entry_id or f"{device_id}-{next(self._counter)}",
                timestamp=self.clock() if timestamp is None else float(timestamp),
                level=level,
                message=str(message),
            )
            entries.append(entry)
        if level == LogLevel.ERROR:
            LOGGER.warning("[%s] fault logged: %s", device_id, message)
        return replace(entry)

    def create_ticket(self, device_id: str) -> LogEntry:
        with self.lock:
            taken = {e.id for e in self._require(device_id)}
            code = self._ticket_code()
            while f"t-{code}" in taken:
                code = self._ticket_code()
            entry = self.append(device_id, LogLevel.INFO, f"Help ticket {code} created.", entry_id=f"t-{code}")
        LOGGER.info("[%s] help ticket %s created", device_id, code)
        return entry

    def diagnose(self, device_id: str) -> int:
        """Resolve every error entry of a device in place. Returns how many changed."""
        resolved = 0
        with self.lock:
            for entry in self._require(device_id):
                if entry.level == LogLevel.ERROR:
                    entry.level = LogLevel.RESOLVED
                    entry.message = RESOLVED_PREFIX + entry.message
                    resolved += 1
        if resolved:
            LOGGER.info("[%s] diagnose resolved %d error(s)", device_id, resolved)
        return resolved

    # ---------------------------------------------------
    # QUERIES
    # ---------------------------------------------------
    def entries(self, device_id: str) -> List[LogEntry]:
        with self.lock:
            return [replace(e) for e in self._require(device_id)]

    def has_error(self, device_id: Optional[str]) -> bool:
        if not device_id:
            return False
        return self.error_count(device_id) > 0

    def error_count(self, device_id: Optional[str] = None) -> int:
        with self.lock:
            if device_id is None:
                return sum(self._errors_in(entries) for entries in self._logs.values())
            return self._errors_in(self._require(device_id))

    def error_counts(self) -> Dict[str, int]:
        with self.lock:
            return {dev_id: self._errors_in(entries) for dev_id, entries in self._logs.items()}

    def export(self, device_id: str) -> str:
        payload = [entry_to_dict(e) for e in self.entries(device_id)]
        return json.dumps(payload, indent=2, ensure_ascii=False)

    @staticmethod
    def export_filename(device_id: str) -> str:
        return f"{device_id}-logs.json"

    # ---------------------------------------------------
    # Internals
    # ---------------------------------------------------
    def _ticket_code(self) -> str:
        return "".join(self.rng.choice(TICKET_ALPHABET) for _ in range(TICKET_LENGTH))

    def _require(self, device_id: str) -> List[LogEntry]:
        try:
            return self._logs[device_id]
        except KeyError:
            raise KeyError(f"Unknown device '{device_id}'") from None

    @staticmethod
    def _errors_in(entries: List[LogEntry]) -> int:
        return sum(1 for e in entries if e.level == LogLevel.ERROR)


def entry_to_dict(entry: LogEntry) -> dict:
    return {
        "id": entry.id,
        "timestamp": datetime.fromtimestamp(entry.timestamp, tz=timezone.utc).isoformat(),
        "level": entry.level.value,
        "message": entry.message,
    }
