import asyncio
import json
import logging
import random
import threading
import time
from typing import Callable, List, Optional, Tuple

from reprint.domain.connection import ConnectionManager
from reprint.domain.devices import DeviceRegistry
from reprint.domain.engine import RunEngine
from reprint.domain.logs import LogStore, entry_to_dict
from reprint.domain.materials import Material
from reprint.domain.models import ActionResult, LogLevel, Redirect, RunRecord, RunStatus
from reprint.domain.progress import STAGES, eta_seconds, format_duration, stage_index
from reprint.domain.temperature import TemperatureSimulator
from reprint.infra.config import ReprintConfig

LOGGER = logging.getLogger(__name__)


class PanelController:
    """
    Application-state aggregate for the recycler panel.

    Owns the device registry, run engine, log store, connection and
    temperature simulator. Every command goes through here and serializes
    on one shared lock; status snapshots are pushed to SSE subscribers
    after each mutation.
    """

    def __init__(
        self,
        config: ReprintConfig,
        rng=None,
        clock: Callable[[], float] = time.time,
        scheduler=None,
    ) -> None:
        self.config = config
        self.rng = rng if rng is not None else random.Random(config.simulation.seed)
        self._state_lock = threading.RLock()

        self.registry = DeviceRegistry.from_config(config.devices)
        self.connection = ConnectionManager(self.registry)
        self.engine = RunEngine(
            self.registry,
            config.simulation,
            rng=self.rng,
            clock=clock,
            scheduler=scheduler,
            lock=self._state_lock,
            on_change=self._broadcast_status,
        )
        self.logs = LogStore(self.registry.ids, rng=self.rng, clock=clock, lock=self._state_lock)
        self.logs.seed({dev: msgs for dev, msgs in config.faults.items() if dev in self.registry})
        self.temperature = TemperatureSimulator(config.material, rng=self.rng)

        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._sse_subscribers: list[asyncio.Queue] = []

    # ---------------------------------------------------
    # STATUS
    # ---------------------------------------------------
    def get_status(self) -> dict:
        with self._state_lock:
            connected_id = self.connection.connected_id
            run = self.engine.record(connected_id) if connected_id else RunRecord()
            temp = self.temperature.snapshot()
            material = self.temperature.material
            has_error = self.logs.has_error(connected_id)
            badge = self.logs.error_count(connected_id) if connected_id else self.logs.error_count()
            snapshot = {
                "connected_id": connected_id,
                "connected_name": self.registry.get(connected_id).display_name if connected_id else None,
                "run": run.as_dict(),
                **self._progress_view(run),
                "operational": (not has_error) if connected_id else None,
                "error_badge": badge,
                "total_errors": self.logs.error_count(),
                "temperature": {
                    "material": temp.material,
                    "setpoint_c": temp.setpoint_c,
                    "live_c": round(temp.live_c, 2),
                    "range_c": list(material.range_c),
                    "preset_c": material.setpoint_c,
                },
                "devices": self.get_devices(),
            }
        return snapshot

    def get_devices(self) -> List[dict]:
        with self._state_lock:
            runs = self.engine.records()
            counts = self.logs.error_counts()
            connected_id = self.connection.connected_id
            summaries = []
            for dev in self.registry:
                run = runs[dev.id]
                summaries.append(
                    {
                        "id": dev.id,
                        "name": dev.display_name,
                        "run": run.as_dict(),
                        **self._progress_view(run),
                        "in_use": run.status in (RunStatus.BUSY, RunStatus.PAUSED),
                        "needs_attention": counts[dev.id] > 0,
                        "error_count": counts[dev.id],
                        "connected": dev.id == connected_id,
                    }
                )
        return summaries

    def get_device(self, device_id: str) -> dict:
        dev = self.registry.get(device_id)
        run = self.engine.record(device_id)
        return {"id": dev.id, "name": dev.display_name, "run": run.as_dict(), **self._progress_view(run)}

    def attach_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # ---------------------------------------------------
    # CONNECTION
    # ---------------------------------------------------
    def connect(self, device_id: str) -> None:
        with self._state_lock:
            self.connection.connect(device_id)
        self._broadcast_status()

    def disconnect(self) -> None:
        with self._state_lock:
            self.connection.disconnect()
        self._broadcast_status()

    # ---------------------------------------------------
    # RUN COMMANDS
    # ---------------------------------------------------
    def start(self, device_id: Optional[str] = None) -> ActionResult:
        with self._state_lock:
            result = self._gate(device_id)
            if not result.ok:
                return result
            if self.logs.has_error(result.device_id):
                LOGGER.info("Start on %s rejected: unresolved faults", result.device_id)
                return ActionResult.rejected(Redirect.LOGS, "Resolve errors in Logs", result.device_id)
            self.engine.start(result.device_id)
        self._broadcast_status()
        return result

    def stop(self, device_id: Optional[str] = None) -> ActionResult:
        with self._state_lock:
            result = self._gate(device_id)
            if result.ok:
                self.engine.stop(result.device_id)
        if result.ok:
            self._broadcast_status()
        return result

    def pause(self, device_id: Optional[str] = None) -> ActionResult:
        with self._state_lock:
            result = self._gate(device_id)
            if result.ok:
                self.engine.pause(result.device_id)
        if result.ok:
            self._broadcast_status()
        return result

    def toggle_run(self) -> ActionResult:
        """Primary button: stop an active run, otherwise start one."""
        with self._state_lock:
            connected_id = self.connection.connected_id
            if connected_id and not self.logs.has_error(connected_id):
                status = self.engine.record(connected_id).status
                if status in (RunStatus.BUSY, RunStatus.PAUSED):
                    return self.stop()
            return self.start()

    # ---------------------------------------------------
    # LOGS
    # ---------------------------------------------------
    def get_logs(self, device_id: str) -> List[dict]:
        return [entry_to_dict(e) for e in self.logs.entries(device_id)]

    def append_log(self, device_id: str, level: LogLevel, message: str) -> dict:
        entry = self.logs.append(device_id, level, message)
        self._broadcast_status()
        return entry_to_dict(entry)

    def create_ticket(self, device_id: str) -> dict:
        entry = self.logs.create_ticket(device_id)
        self._broadcast_status()
        return entry_to_dict(entry)

    def diagnose(self, device_id: str) -> int:
        resolved = self.logs.diagnose(device_id)
        if resolved:
            self._broadcast_status()
        return resolved

    def export_logs(self, device_id: str) -> Tuple[str, str]:
        return self.logs.export_filename(device_id), self.logs.export(device_id)

    # ---------------------------------------------------
    # MATERIAL / TEMPERATURE
    # ---------------------------------------------------
    def set_material(self, material_id: str) -> Material:
        with self._state_lock:
            material = self.temperature.set_material(material_id)
        LOGGER.info("Material set to %s (setpoint %.0f°C)", material.id, material.setpoint_c)
        self._broadcast_status()
        return material

    def set_temperature_setpoint(self, value: float) -> float:
        with self._state_lock:
            setpoint = self.temperature.set_setpoint(value)
        self._broadcast_status()
        return setpoint

    def nudge_temperature(self, delta: float) -> float:
        with self._state_lock:
            setpoint = self.temperature.nudge(delta)
        self._broadcast_status()
        return setpoint

    def reset_temperature(self) -> float:
        with self._state_lock:
            setpoint = self.temperature.reset_setpoint()
        self._broadcast_status()
        return setpoint

    # ---------------------------------------------------
    # BACKGROUND LOOPS
    # ---------------------------------------------------
    def start_background(self) -> None:
        if any(t.is_alive() for t in self._threads):
            return
        self._stop_event.clear()
        sim = self.config.simulation
        self._threads = [
            threading.Thread(
                target=self._periodic_loop,
                args=("run tick", sim.tick_interval_s, self.tick),
                daemon=True,
            ),
            threading.Thread(
                target=self._periodic_loop,
                args=("temperature", sim.temperature_interval_s, self.tick_temperature),
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()
        LOGGER.info("Background simulation started")

    def shutdown(self) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=2.0)
        self._threads = []
        self.engine.cancel_pending()
        LOGGER.info("Background simulation stopped")

    def tick(self) -> None:
        with self._state_lock:
            active = any(r.status == RunStatus.BUSY for r in self.engine.records().values())
            self.engine.tick()
        if active:
            self._broadcast_status()

    def tick_temperature(self) -> None:
        with self._state_lock:
            self.temperature.step()
        self._broadcast_status()

    # ---------------------------------------------------
    # Internals
    # ---------------------------------------------------
    def _periodic_loop(self, name: str, interval_s: float, fn: Callable[[], None]) -> None:
        while not self._stop_event.wait(interval_s):
            try:
                fn()
            except Exception:
                # keep the loop alive; surface the failure in the service log
                LOGGER.exception("%s loop iteration failed", name)

    def _gate(self, device_id: Optional[str]) -> ActionResult:
        if device_id is not None:
            self.registry.get(device_id)
        connected_id = self.connection.connected_id
        if connected_id is None:
            return ActionResult.rejected(Redirect.DEVICES, "Connect to a recycler first", device_id)
        if device_id is not None and device_id != connected_id:
            return ActionResult.rejected(Redirect.DEVICES, f"Not connected to {device_id}", device_id)
        return ActionResult.accepted(connected_id)

    def _progress_view(self, run: RunRecord) -> dict:
        idx = stage_index(run.progress)
        eta = eta_seconds(run.progress, self.config.simulation.total_duration_s)
        return {
            "stage_index": idx,
            "stage": STAGES[idx],
            "eta_s": eta,
            "eta_text": format_duration(eta),
        }

    def _broadcast_status(self) -> None:
        if not self._loop or not self._sse_subscribers:
            return
        snapshot = self.get_status()
        payload = json.dumps(snapshot)
        for q in list(self._sse_subscribers):
            try:
                self._loop.call_soon_threadsafe(q.put_nowait, payload)
            except RuntimeError:
                # loop already closed
                continue
