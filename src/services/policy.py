from __future__ import annotations

import logging
from typing import TypeVar

from domain.errors import ConfigurationUnavailableError, JurisdictionLookupError
from domain.jurisdiction import JurisdictionId, JurisdictionResolver
from domain.results import FailurePolicy, QueryError, QueryResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


def rows_or_policy(result: QueryResult[T], policy: FailurePolicy, *, what: str) -> tuple[T, ...]:
    """Unwrap repository rows, degrading to no rows or raising depending on ``policy``."""
    if not isinstance(result, QueryError):
        return result.rows
    if policy == FailurePolicy.FAIL_CLOSED:
        raise ConfigurationUnavailableError(f"{what} are unavailable", cause=result.cause)
    logger.warning("Proceeding without %s after a backend failure: %s", what, result.cause)
    return ()


def resolve_state_or_policy(
    resolver: JurisdictionResolver, value: str | None, policy: FailurePolicy
) -> JurisdictionId | None:
    try:
        return resolver.resolve_state_id(value)
    except JurisdictionLookupError as exc:
        if policy == FailurePolicy.FAIL_CLOSED:
            raise ConfigurationUnavailableError(f"Jurisdiction lookup for {value!r} is unavailable", cause=exc) from exc
        logger.warning("Treating state %r as unresolved after a backend failure: %s", value, exc)
        return None
