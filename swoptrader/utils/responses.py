from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope(data: Any = None, pagination: Optional[dict] = None, message: Optional[str] = None) -> dict:
    """Wraps a payload as {success, data, pagination?, message?} with camelCase keys."""
    body = {"success": True, "data": jsonable_encoder(data, by_alias=True)}
    if pagination is not None:
        body["pagination"] = pagination
    if message is not None:
        body["message"] = message
    return body


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})
