"""
api/routes/v1/uploads.py -- Ticket attachment upload.

Routes:
  POST /upload -- store one file, return the path to put in TicketCreate.attachment

Files land in Settings.upload_dir as "<epoch-ms>-<basename>" and are served
back by the StaticFiles mount at /uploads/ (see api/main.py). A stored file
is never overwritten: a name collision bumps the stamp (store_upload).

Security:
  Size is capped at Settings.max_upload_bytes (1 MB). The read stops one byte
  past the cap, so an oversized body is never held in memory in full.
  Only the basename of the client-supplied filename is kept, and anything
  outside [A-Za-z0-9._-] is replaced, so the name cannot escape upload_dir.
"""

import logging
import re
import time
from pathlib import Path, PurePosixPath

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool

from api.models import ErrorDetail, UploadResponse
from auth.dependencies import get_current_principal
from auth.models import Principal

logger = logging.getLogger("helpdesk.api")

# Auth policy:
# - POST /upload: any role (get_current_principal)
router = APIRouter()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_MAX_NAME_ATTEMPTS = 100


def safe_filename(filename: str | None) -> str:
    """Reduce a client-supplied filename to a safe basename.

    >>> safe_filename("../../etc/pass wd")
    'pass_wd'
    """
    base = PurePosixPath((filename or "").replace("\\", "/")).name
    base = _UNSAFE_CHARS.sub("_", base).lstrip(".")
    return base[:200] or "upload"


def store_upload(upload_dir: Path, filename: str | None, data: bytes, now_ms: int | None = None) -> str:
    """Write data under a fresh "<epoch-ms>-<basename>" name and return that name.

    The file is opened with "xb", so an existing upload is never replaced:
    when the name is taken (two uploads of the same file in the same
    millisecond) the stamp moves forward by one and the open is retried.
    Blocking file I/O; async callers run it in the threadpool.
    """
    stamp = int(time.time() * 1000) if now_ms is None else now_ms
    base = safe_filename(filename)
    upload_dir.mkdir(parents=True, exist_ok=True)
    for offset in range(_MAX_NAME_ATTEMPTS):
        stored_name = f"{stamp + offset}-{base}"
        try:
            with open(upload_dir / stored_name, "xb") as fh:
                fh.write(data)
        except FileExistsError:
            continue
        return stored_name
    raise FileExistsError(f"No free upload name for {base!r} after {_MAX_NAME_ATTEMPTS} attempts")


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    request: Request,
    file: UploadFile,
    principal: Principal = Depends(get_current_principal),
) -> UploadResponse:
    """Store an attachment and return its public path."""
    settings = request.app.state.settings
    limit: int = settings.max_upload_bytes

    # Size guard -- read up to limit + 1 byte; reject if over
    raw = await file.read(limit + 1)
    if len(raw) > limit:
        raise HTTPException(
            status_code=413,
            detail=ErrorDetail(
                code="file_too_large",
                message=f"Upload must be {limit // 1024} KB or smaller.",
            ).model_dump(),
        )
    if not raw:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="empty_file", message="Uploaded file is empty.").model_dump(),
        )

    stored_name = await run_in_threadpool(store_upload, settings.upload_dir, file.filename, raw)

    logger.info("User %s uploaded %s (%d bytes)", principal.user_id, stored_name, len(raw))
    return UploadResponse(filename=stored_name, path=f"/uploads/{stored_name}")
