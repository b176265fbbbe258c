import asyncio
import json
import threading
import time

from reprint.domain.controller import PanelController
from reprint.domain.models import RunStatus
from reprint.infra.config import ReprintConfig, SimulationConfig
from reprint.infra.scheduler import TimerScheduler


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _fast_config() -> ReprintConfig:
    return ReprintConfig(
        simulation=SimulationConfig(
            tick_interval_s=0.01,
            temperature_interval_s=0.01,
            increment_min=30.0,
            increment_max=30.0,
            auto_reset_delay_s=0.2,
            autostart=False,
        )
    )


def test_timer_scheduler_fires_and_cancels() -> None:
    scheduler = TimerScheduler()
    fired = threading.Event()
    scheduler.call_later(0.01, fired.set)
    assert fired.wait(2.0)

    skipped = threading.Event()
    timer = scheduler.call_later(0.2, skipped.set)
    timer.cancel()
    assert not skipped.wait(0.4)


def test_background_loops_complete_and_auto_reset() -> None:
    panel = PanelController(_fast_config())
    panel.connect("r2")
    assert panel.start().ok

    panel.start_background()
    threads = list(panel._threads)
    try:
        assert len(threads) == 2
        assert _wait_for(lambda: panel.engine.record("r2").status == RunStatus.COMPLETED)
        assert _wait_for(lambda: panel.engine.record("r2").status == RunStatus.READY)
        run = panel.engine.record("r2")
        assert run.progress == 0
        assert run.sub_progress == 0
        assert run.task is None
    finally:
        panel.shutdown()

    assert not any(t.is_alive() for t in threads)
    assert panel._threads == []


def test_status_is_pushed_to_subscribers() -> None:
    panel = PanelController(_fast_config())

    async def _receive() -> dict:
        panel.attach_event_loop(asyncio.get_running_loop())
        queue: asyncio.Queue = asyncio.Queue()
        panel._sse_subscribers.append(queue)
        panel.connect("r2")
        payload = await asyncio.wait_for(queue.get(), timeout=2.0)
        return json.loads(payload)

    snapshot = asyncio.run(_receive())
    assert snapshot["connected_id"] == "r2"
    assert snapshot["run"]["status"] == "Ready"
    assert snapshot["error_badge"] == 0
