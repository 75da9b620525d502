# realty_crm/responses.py
from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def ok(data: Any = None, message: str = "OK", status_code: int = 200, **extra: Any) -> JSONResponse:
    body = {"success": True, "data": data, "message": message, **extra}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def fail(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "message": message, "error": error if error is not None else message}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
