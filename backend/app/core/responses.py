from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    data: Any = None,
    message: str = "OK",
    status_code: int = 200,
    success: bool | None = None,
) -> JSONResponse:
    """Uniform API envelope: {success, message, data?}."""
    if success is None:
        success = status_code < 400

    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)

    return JSONResponse(status_code=status_code, content=body)
