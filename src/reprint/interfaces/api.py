import asyncio
import json
from contextlib import asynccontextmanager
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field

from reprint.domain.controller import PanelController
from reprint.domain.materials import MATERIALS
from reprint.infra.config import ReprintConfig, load_config


class LogAppend(BaseModel):
    level: Literal["error", "info"] = Field("info", description="error or info; resolved only comes from diagnose")
    message: str = Field(..., min_length=1, description="Log message")


class SetpointUpdate(BaseModel):
    value: float = Field(..., description="Target temperature in °C")


class SetpointNudge(BaseModel):
    delta: float = Field(..., description="Setpoint change in °C")


def _build_config(config: Optional[ReprintConfig], config_path: Optional[str]) -> ReprintConfig:
    if config is not None:
        return config
    return load_config(config_path)


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=404, detail=exc.args[0] if exc.args else "Not found")


def create_app(
    config: Optional[ReprintConfig] = None,
    config_path: Optional[str] = None,
    controller: Optional[PanelController] = None,
) -> FastAPI:
    cfg = _build_config(config, config_path)
    controller = controller or PanelController(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        controller.attach_event_loop(asyncio.get_running_loop())
        if cfg.simulation.autostart:
            controller.start_background()
        try:
            yield
        finally:
            controller.shutdown()

    app = FastAPI(title="Re-Print Panel", lifespan=lifespan)
    app.state.controller = controller
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- status ----------
    @app.get("/status")
    def status():
        return controller.get_status()

    @app.get("/devices")
    def devices():
        return controller.get_devices()

    @app.get("/devices/{device_id}")
    def device(device_id: str):
        try:
            return controller.get_device(device_id)
        except KeyError as exc:
            raise _not_found(exc)

    # ---------- connection ----------
    @app.post("/devices/{device_id}/connect")
    def connect(device_id: str):
        try:
            controller.connect(device_id)
        except KeyError as exc:
            raise _not_found(exc)
        return {"ok": True, "connected_id": device_id}

    @app.post("/disconnect")
    def disconnect():
        controller.disconnect()
        return {"ok": True}

    # ---------- run commands ----------
    @app.post("/command/start")
    def start(device_id: Optional[str] = None):
        try:
            return controller.start(device_id).as_dict()
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/command/stop")
    def stop(device_id: Optional[str] = None):
        try:
            return controller.stop(device_id).as_dict()
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/command/pause")
    def pause(device_id: Optional[str] = None):
        try:
            return controller.pause(device_id).as_dict()
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/command/toggle")
    def toggle():
        return controller.toggle_run().as_dict()

    # ---------- logs ----------
    @app.get("/logs")
    def log_summary():
        return {
            "total_errors": controller.logs.error_count(),
            "errors": controller.logs.error_counts(),
        }

    @app.get("/logs/{device_id}")
    def logs(device_id: str):
        try:
            return controller.get_logs(device_id)
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/logs/{device_id}")
    def append_log(device_id: str, payload: LogAppend):
        try:
            return controller.append_log(device_id, payload.level, payload.message)
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/logs/{device_id}/ticket")
    def ticket(device_id: str):
        try:
            return controller.create_ticket(device_id)
        except KeyError as exc:
            raise _not_found(exc)

    @app.post("/logs/{device_id}/diagnose")
    def diagnose(device_id: str):
        try:
            resolved = controller.diagnose(device_id)
        except KeyError as exc:
            raise _not_found(exc)
        return {"ok": True, "resolved": resolved}

    @app.get("/logs/{device_id}/export")
    def export(device_id: str):
        try:
            filename, body = controller.export_logs(device_id)
        except KeyError as exc:
            raise _not_found(exc)
        return Response(
            content=body,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # ---------- material / temperature ----------
    @app.get("/materials")
    def materials():
        return [m.as_dict() for m in MATERIALS.values()]

    @app.post("/material/{material_id}")
    def set_material(material_id: str):
        try:
            material = controller.set_material(material_id)
        except KeyError as exc:
            raise _not_found(exc)
        return {"ok": True, "material": material.as_dict()}

    @app.post("/temperature/setpoint")
    def setpoint(payload: SetpointUpdate):
        try:
            value = controller.set_temperature_setpoint(payload.value)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"ok": True, "setpoint_c": value}

    @app.post("/temperature/nudge")
    def nudge(payload: SetpointNudge):
        return {"ok": True, "setpoint_c": controller.nudge_temperature(payload.delta)}

    @app.post("/temperature/reset")
    def reset_temperature():
        return {"ok": True, "setpoint_c": controller.reset_temperature()}

    # ---------- events ----------
    @app.get("/events/sse")
    async def sse():
        queue: asyncio.Queue = asyncio.Queue()
        controller._sse_subscribers.append(queue)
        await queue.put(json.dumps(controller.get_status()))

        async def event_generator():
            try:
                while True:
                    data = await queue.get()
                    yield f"data: {data}\n\n"
            finally:
                try:
                    controller._sse_subscribers.remove(queue)
                except ValueError:
                    pass

        return StreamingResponse(event_generator(), media_type="text/event-stream")

    return app
