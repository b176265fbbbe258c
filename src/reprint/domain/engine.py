import logging
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from reprint.domain.devices import DeviceRegistry
from reprint.domain.models import RunRecord, RunStatus, TaskKind
from reprint.domain.progress import clamp, eta_seconds, spool_progress, stage_index
from reprint.infra.config import SimulationConfig
from reprint.infra.scheduler import TimerScheduler

LOGGER = logging.getLogger(__name__)


@dataclass
class _PendingReset:
    completed_at: float
    handle: Optional[Any] = None


class RunEngine:
    """
    Owns one RunRecord per registered device and advances them on tick().

    Randomness, wall clock and delayed calls are injected so the simulation
    can be driven deterministically. All mutations happen under `lock`.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        config: Optional[SimulationConfig] = None,
        rng=None,
        clock: Callable[[], float] = time.time,
        scheduler=None,
        lock: Optional[threading.RLock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.registry = registry
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.clock = clock
        self.scheduler = scheduler or TimerScheduler()
        self.lock = lock or threading.RLock()
        self.on_change = on_change
        self._runs: Dict[str, RunRecord] = {dev.id: RunRecord() for dev in registry}
        self._pending_resets: Dict[str, _PendingReset] = {}

    # ---------------------------------------------------
    # READ QUERIES
    # ---------------------------------------------------
    def record(self, device_id: str) -> RunRecord:
        with self.lock:
            return replace(self._require(device_id))

    def records(self) -> Dict[str, RunRecord]:
        with self.lock:
            return {dev_id: replace(run) for dev_id, run in self._runs.items()}

    def stage(self, device_id: str) -> int:
        return stage_index(self.record(device_id).progress)

    def eta_seconds(self, device_id: str) -> float:
        return eta_seconds(self.record(device_id).progress, self.config.total_duration_s)

    def has_pending_reset(self, device_id: str) -> bool:
        with self.lock:
            return device_id in self._pending_resets

    # ---------------------------------------------------
    # TICK
    # ---------------------------------------------------
    def tick(self) -> List[str]:
        """Advance every busy recycle run. Returns the ids that completed."""
        completed: List[str] = []
        with self.lock:
            for device_id, run in self._runs.items():
                if run.status != RunStatus.BUSY or run.task != TaskKind.RECYCLE:
                    continue
                increment = self.rng.uniform(self.config.increment_min, self.config.increment_max)
                run.progress = clamp(run.progress + increment, 0.0, 100.0)
                run.sub_progress = max(run.sub_progress, spool_progress(run.progress))
                if run.progress >= 100 and run.sub_progress >= 100:
                    run.status = RunStatus.COMPLETED
                    run.completed_at = self.clock()
                    self._schedule_reset(device_id, run.completed_at)
                    completed.append(device_id)
        for device_id in completed:
            LOGGER.info("Run on %s completed; auto-reset in %.0f s", device_id, self.config.auto_reset_delay_s)
        return completed

    # ---------------------------------------------------
    # COMMANDS
    # ---------------------------------------------------
    def start(self, device_id: str) -> RunRecord:
        with self.lock:
            run = self._require(device_id)
            self._cancel_reset(device_id)
            if not (0 < run.progress < 100):
                # fresh cycle: quick initial ramp instead of starting from zero
                run.progress = float(self.config.start_progress)
                run.sub_progress = spool_progress(run.progress)
                run.started_at = None
                run.completed_at = None
            run.status = RunStatus.BUSY
            run.task = TaskKind.RECYCLE
            if run.started_at is None:
                run.started_at = self.clock()
            snapshot = replace(run)
        LOGGER.info("Run on %s started at %.1f%%", device_id, snapshot.progress)
        return snapshot

    def stop(self, device_id: str) -> RunRecord:
        with self.lock:
            self._require(device_id)
            self._cancel_reset(device_id)
            self._runs[device_id] = RunRecord()
            snapshot = replace(self._runs[device_id])
        LOGGER.info("Run on %s stopped", device_id)
        return snapshot

    def pause(self, device_id: str) -> RunRecord:
        with self.lock:
            run = self._require(device_id)
            if run.status == RunStatus.BUSY:
                run.status = RunStatus.PAUSED
                LOGGER.info("Run on %s paused at %.1f%%", device_id, run.progress)
            elif run.status == RunStatus.PAUSED:
                run.status = RunStatus.BUSY
                LOGGER.info("Run on %s resumed at %.1f%%", device_id, run.progress)
            return replace(run)

    def cancel_pending(self) -> None:
        with self.lock:
            for device_id in list(self._pending_resets):
                self._cancel_reset(device_id)

    # ---------------------------------------------------
    # Internals
    # ---------------------------------------------------
    def _require(self, device_id: str) -> RunRecord:
        try:
            return self._runs[device_id]
        except KeyError:
            raise KeyError(f"Unknown device '{device_id}'") from None

    def _schedule_reset(self, device_id: str, completed_at: float) -> None:
        # at most one pending reset per device
        self._cancel_reset(device_id)
        pending = _PendingReset(completed_at=completed_at)
        self._pending_resets[device_id] = pending
        pending.handle = self.scheduler.call_later(
            self.config.auto_reset_delay_s, lambda: self._auto_reset(device_id, pending)
        )

    def _cancel_reset(self, device_id: str) -> None:
        pending = self._pending_resets.pop(device_id, None)
        if pending is not None and pending.handle is not None:
            pending.handle.cancel()

    def _auto_reset(self, device_id: str, pending: "_PendingReset") -> None:
        with self.lock:
            if self._pending_resets.get(device_id) is not pending:
                return
            del self._pending_resets[device_id]
            run = self._runs[device_id]
            if run.status != RunStatus.COMPLETED or run.completed_at != pending.completed_at:
                return
            self._runs[device_id] = RunRecord()
        LOGGER.info("Run on %s auto-reset to Ready", device_id)
        if self.on_change:
            self.on_change()
