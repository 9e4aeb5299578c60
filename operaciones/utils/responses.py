"""
Uniform JSON envelope for service results.

``Ok`` becomes ``{"success": true, "data": ...}``; ``Err`` becomes HTTP 400
with ``{"success": false, "error": {"message", "code"}}``. Unexpected
exceptions are not handled here and reach FastAPI's error handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from operaciones.utils.result import Err, Result

logger = logging.getLogger(__name__)


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return jsonable_encoder(data)


def success(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": _dump(data)})


def failure(error_message: str, code: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": {"message": error_message, "code": code}},
    )


def envelope(
    result: Result,
    serialize: Callable[[Any], Any] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Render a service ``Result`` as the API envelope.

    Args:
        result: ``Ok`` or ``Err`` returned by a service.
        serialize: Converts the ``Ok`` value (usually an ORM row) into a
            schema; identity when omitted.
        status_code: Status for the success case (201 on creation).
    """
    if isinstance(result, Err):
        logger.debug("envelope: %s %s", result.error.code.value, result.error.message)
        return failure(result.error.message, result.error.code.value)
    value = serialize(result.value) if serialize else result.value
    return success(value, status_code=status_code)
