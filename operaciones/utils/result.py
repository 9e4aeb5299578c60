"""
Result values for service operations.

Expected failures (validation, not-found, conflicts) travel back to the
caller as ``Err(ServiceError)`` so routers and scripts can branch on them
without catching exceptions. Unexpected faults still raise.

Usage::

    result = service.transition(orden_id, EstadoOrden.EN_CAMINO)
    if isinstance(result, Err):
        logger.info("rejected: %s", result.error.code)
    else:
        orden = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    TERMINAL_STATE = "TERMINAL_STATE"
    ALREADY_CANCELED = "ALREADY_CANCELED"
    CONFLICT = "CONFLICT"
    CREW_UNAVAILABLE = "CREW_UNAVAILABLE"
    CREW_NOT_FOUND = "CREW_NOT_FOUND"
    INVALID_PLAN = "INVALID_PLAN"


@dataclass(frozen=True)
class ServiceError:
    """Caller-recoverable failure with a machine-readable code."""

    code: ErrorCode
    message: str

    @classmethod
    def invalid_input(cls, message: str) -> ServiceError:
        return cls(ErrorCode.INVALID_INPUT, message)

    @classmethod
    def out_of_range(cls, message: str) -> ServiceError:
        return cls(ErrorCode.OUT_OF_RANGE, message)

    @classmethod
    def not_found(cls, entidad: str, entidad_id: object) -> ServiceError:
        return cls(ErrorCode.NOT_FOUND, f"{entidad} {entidad_id} no encontrado")

    @classmethod
    def conflict(cls, message: str) -> ServiceError:
        return cls(ErrorCode.CONFLICT, message)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: ServiceError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]


def err(code: ErrorCode, message: str) -> Err:
    return Err(ServiceError(code, message))
