from __future__ import annotations

import logging
from typing import NewType, Protocol

from pydantic import BaseModel, model_validator

from .errors import ConfigurationSourceError, JurisdictionLookupError

logger = logging.getLogger(__name__)

JurisdictionId = NewType("JurisdictionId", str)


class UsState(BaseModel):
    id: JurisdictionId
    code: str
    name: str

    @model_validator(mode="after")
    def _validate_fields(self) -> UsState:
        if not self.code or not self.name:
            raise ValueError("UsState.code and UsState.name must be non-empty")
        return self


class JurisdictionDirectory(Protocol):
    """Lookup of a state by code first, then by name, both case-insensitive."""

    def resolve_jurisdiction_by_code_or_name(self, value: str) -> JurisdictionId | None: ...


class JurisdictionResolver:
    """Map a free-form state identifier (code or name) to a jurisdiction id.

    Absence is a normal outcome: addresses outside the covered tax universe
    resolve to ``None``. Backing store failures raise ``JurisdictionLookupError``
    so callers can apply their own failure policy.
    """

    def __init__(self, directory: JurisdictionDirectory) -> None:
        self._directory = directory

    def resolve_state_id(self, value: str | None) -> JurisdictionId | None:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            return None

        try:
            state_id = self._directory.resolve_jurisdiction_by_code_or_name(cleaned)
        except JurisdictionLookupError:
            raise
        except ConfigurationSourceError as exc:
            raise JurisdictionLookupError(
                f"Jurisdiction lookup failed for {cleaned!r}", status_code=exc.status_code, payload=exc.payload
            ) from exc

        if state_id is None:
            logger.info("Could not resolve state %r to a jurisdiction", cleaned)
        return state_id


__all__ = ["JurisdictionDirectory", "JurisdictionId", "JurisdictionResolver", "UsState"]
