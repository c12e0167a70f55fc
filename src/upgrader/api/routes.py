"""API route handlers for the read-only upgrade status endpoints."""

from pathlib import Path

import aiofiles
from fastapi import APIRouter, Request

from upgrader.api.models import ProgressData, ProgressResponse
from upgrader.exceptions import UpgraderError
from upgrader.models.config import UpgraderConfig
from upgrader.services.resumption import SystemdBootTask
from upgrader.services.run_lock import RunLock
from upgrader.services.state_store import FileStateStore

router = APIRouter(prefix="/api/v1.0")

RECENT_LOG_LINES = 50


async def _tail(path: Path, lines: int) -> list[str]:
    """Return the last lines of a log file, empty if it does not exist."""
    if not path.exists():
        return []
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        content = await f.read()
    return content.splitlines()[-lines:]


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(request: Request):
    """GET /api/v1.0/progress - Report upgrade progress from the files on disk.

    Response format (success):
        {
            "code": 200,
            "msg": "success",
            "data": {
                "stage": "22.04",
                "state_file_present": true,
                "lock_held": false,
                "resumption_registered": true,
                "recent_log": ["2026-10-17 10:00:00 [INFO] Saved state: 22.04"]
            }
        }

    An unreadable or unknown state token yields code 500 with the error in
    msg and data.stage set to null.
    """
    config: UpgraderConfig = request.app.state.config
    store = FileStateStore(config.state_file)
    boot_task = SystemdBootTask(config.unit_name, config.systemd_dir)

    code, msg, stage = 200, "success", None
    try:
        stage = store.read()
    except UpgraderError as e:
        code, msg = 500, str(e)

    data = ProgressData(
        stage=stage,
        state_file_present=store.exists(),
        lock_held=RunLock(config.lock_file).active_holder() is not None,
        resumption_registered=boot_task.is_registered(),
        recent_log=await _tail(config.log_file, RECENT_LOG_LINES),
    )
    return ProgressResponse(code=code, msg=msg, data=data)
