"""Domain models and types for the marketplace settlement engine.

This package contains in-memory (Pydantic) models describing tax rates, fee
rules and calculation results. They are independent from persistence models so
that business logic and testing can evolve without DB coupling.
"""

__all__ = [
    "checkout",
    "errors",
    "fees",
    "jurisdiction",
    "money",
    "results",
    "tax",
]
