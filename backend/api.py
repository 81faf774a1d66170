"""
Warmlink API Endpoints
"""

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel

from core.warmlink.commands import ToggleKind
from core.warmlink.models import CommandResult
from core.warmlink.session import DeviceSession

router = APIRouter()

# Device session (set by app.py during startup)
device_session: Optional[DeviceSession] = None


class ConfigRequest(BaseModel):
    """Partial heater configuration. Omitted fields keep device values."""
    target: Optional[float] = None
    hysteresis: Optional[float] = None
    task_delay: Optional[float] = None
    deadzone_start: Optional[str] = None  # "HH:MM"
    deadzone_end: Optional[str] = None


class CalibrationStartRequest(BaseModel):
    """Request body for starting a calibration run."""
    target_temp_c: float
    start_epoch_utc: Optional[int] = None  # None/0 = start now


class AutomationSettingsRequest(BaseModel):
    enabled: bool
    start: Optional[str] = None  # "HH:MM"
    end: Optional[str] = None
    target_cap_c: Optional[float] = None


class KFactorSuggestRequest(BaseModel):
    ambient: float
    target: float
    warmup_min: float


class KFactorApplyRequest(BaseModel):
    k: float


class ReadyByRequest(BaseModel):
    """Ready-by target as local wall-clock date and time."""
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    target_temp_c: float


def _session() -> DeviceSession:
    if device_session is None or not device_session.running:
        raise HTTPException(status_code=503, detail="Device session not running")
    return device_session


def _result(result: CommandResult) -> dict:
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    return {"ok": True, **result.data}


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "Warmlink",
        "version": "0.1.0",
        "device_connected": device_session is not None and device_session.connection.is_open(),
    }


@router.get("/api/status")
async def get_status():
    """Current heater/deadzone/clock view."""
    session = _session()
    return {
        "view": asdict(session.status.view),
        "has_snapshot": session.status.has_snapshot,
        "error": session.status.last_error,
        "connection": session.connection.state.value,
    }


@router.post("/api/status/refresh")
async def refresh_status():
    """Ask the device for a fresh status (socket if open, else pull)."""
    session = _session()
    return {"ok": await session.commands.request_status()}


@router.post("/api/toggle/{kind}")
async def toggle(kind: ToggleKind):
    """Toggle heater, deadzone or heater task."""
    session = _session()
    logger.info(f"Toggle {kind.value} requested")
    return _result(await session.commands.toggle(kind))


@router.post("/api/sync-time")
async def sync_time():
    """Push this host's clock to the device."""
    session = _session()
    ok = await session.clock_sync.sync_time()
    await session.commands.request_status()
    return {"ok": ok}


@router.post("/api/config")
async def update_config(request: ConfigRequest):
    session = _session()
    return _result(
        await session.commands.update_config(
            target=request.target,
            hysteresis=request.hysteresis,
            task_delay=request.task_delay,
            deadzone_start=request.deadzone_start,
            deadzone_end=request.deadzone_end,
        )
    )


@router.post("/api/reboot")
async def reboot():
    session = _session()
    logger.warning("Device reboot requested")
    return _result(await session.commands.reboot())


@router.get("/api/calibration")
async def get_calibration():
    session = _session()
    return {
        "view": asdict(session.calibration.view),
        "error": session.calibration.last_error,
    }


@router.post("/api/calibration/start")
async def start_calibration(request: CalibrationStartRequest):
    session = _session()
    return _result(await session.calibration.start(request.target_temp_c, request.start_epoch_utc))


@router.post("/api/calibration/cancel")
async def cancel_calibration():
    session = _session()
    return _result(await session.calibration.cancel())


@router.post("/api/calibration/settings")
async def save_automation_settings(request: AutomationSettingsRequest):
    session = _session()
    return _result(
        await session.calibration.save_automation_settings(
            request.enabled, request.start, request.end, request.target_cap_c
        )
    )


@router.delete("/api/calibration/records/{epoch_utc}")
async def delete_calibration_record(epoch_utc: int):
    """Delete a calibration record. Callers confirm before calling this."""
    session = _session()
    return _result(await session.calibration.delete_record(epoch_utc))


@router.get("/api/kfactor")
async def get_kfactor():
    session = _session()
    return _result(await session.kfactor.fetch_status())


@router.post("/api/kfactor/suggest")
async def suggest_kfactor(request: KFactorSuggestRequest):
    session = _session()
    return _result(await session.kfactor.suggest(request.ambient, request.target, request.warmup_min))


@router.post("/api/kfactor/apply")
async def apply_kfactor(request: KFactorApplyRequest):
    session = _session()
    return _result(await session.kfactor.apply(request.k))


@router.get("/api/ready-by")
async def get_ready_by():
    session = _session()
    return {
        "view": asdict(session.ready_by.view),
        "error": session.ready_by.last_error,
    }


@router.post("/api/ready-by")
async def schedule_ready_by(request: ReadyByRequest):
    session = _session()
    return _result(await session.ready_by.schedule(request.date, request.time, request.target_temp_c))


@router.post("/api/ready-by/clear")
async def clear_ready_by():
    session = _session()
    return _result(await session.ready_by.clear())


@router.get("/api/logs")
async def get_logs():
    session = _session()
    return {
        "lines": list(session.logs.snapshot.lines),
        "time_synced": session.logs.snapshot.time_synced,
        "error": session.logs.last_error,
    }


@router.post("/api/logs/clear")
async def clear_logs():
    session = _session()
    return _result(await session.logs.clear())
