"""Per-room failure reporting for reconciliation passes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Synapse's wording when the acting user lacks the power level to sanction.
# Only this exact English phrase is recognized; reworded or translated errors
# fall through to FATAL.
PERMISSION_DENIED_PHRASE = "You don't have permission to ban/kick"


class ErrorKind(Enum):
    PERMISSION = "permission"
    FATAL = "fatal"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class RoomUpdateError:
    room_id: str
    error_message: str
    error_kind: ErrorKind


def describe_error(exc: BaseException) -> str:
    """Best-effort human readable message for an exception."""
    message = str(exc)
    if message:
        return message
    error = getattr(exc, "error", None)
    if isinstance(error, str) and error:
        return error
    return "<no message>"


def classify_error(message: str) -> ErrorKind:
    """Decide whether a failure message is a permission denial."""
    if PERMISSION_DENIED_PHRASE in message:
        return ErrorKind.PERMISSION
    return ErrorKind.FATAL


def room_update_error(room_id: str, exc: BaseException) -> RoomUpdateError:
    message = describe_error(exc)
    return RoomUpdateError(room_id=room_id, error_message=message, error_kind=classify_error(message))
