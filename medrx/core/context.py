from __future__ import annotations

from contextvars import ContextVar
from typing import Final
from uuid import UUID

_CURRENT_PROFILE_ID: Final[ContextVar[UUID | None]] = ContextVar(
    "current_profile_id",
    default=None,
)


def set_current_profile_id(profile_id: UUID | None) -> object:
    return _CURRENT_PROFILE_ID.set(profile_id)


def get_current_profile_id() -> UUID | None:
    return _CURRENT_PROFILE_ID.get()


def reset_current_profile_id(token: object) -> None:
    _CURRENT_PROFILE_ID.reset(token)
