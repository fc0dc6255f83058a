from __future__ import annotations

from decimal import Decimal


class SettlementError(Exception):
    """Base class for errors raised by the settlement engine."""


class InvalidAmountError(SettlementError, ValueError):
    def __init__(self, message: str, *, field: str, value: Decimal | int | None = None) -> None:
        super().__init__(message)
        self.field = field
        self.value = value


class ConfigurationSourceError(SettlementError):
    """The backing configuration store could not be queried."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: object | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class JurisdictionLookupError(ConfigurationSourceError):
    pass


class ConfigurationUnavailableError(SettlementError):
    """Raised under the fail-closed policy when configuration cannot be loaded."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
