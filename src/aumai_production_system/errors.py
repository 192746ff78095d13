"""Exception hierarchy for the production system.

Construction errors are raised while building a knowledge base; query errors
are raised by an inference call before (or instead of) returning a result.
"""

from __future__ import annotations


class ProductionSystemError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Build time
# ---------------------------------------------------------------------------


class ConstructionError(ProductionSystemError):
    """The knowledge base description is inconsistent."""


class DuplicateFactError(ConstructionError):
    def __init__(self, fact_name: str) -> None:
        self.fact_name = fact_name
        super().__init__(f"Doubled fact: {fact_name!r}")


class DuplicateRuleError(ConstructionError):
    def __init__(self, rule_name: str) -> None:
        self.rule_name = rule_name
        super().__init__(f"Doubled rule: {rule_name!r}")


class UnknownFactReferenceError(ConstructionError):
    """A rule names a fact that the knowledge base does not declare."""

    def __init__(self, fact_name: str, rule_name: str) -> None:
        self.fact_name = fact_name
        self.rule_name = rule_name
        super().__init__(f"Unknown fact name {fact_name!r} in rule {rule_name!r}")


# ---------------------------------------------------------------------------
# Query time
# ---------------------------------------------------------------------------


class QueryError(ProductionSystemError):
    """An inference call could not be answered."""


class UnknownFactError(QueryError):
    def __init__(self, fact_name: str) -> None:
        self.fact_name = fact_name
        super().__init__(f"Unknown fact: {fact_name!r}")


class InferenceLimitError(QueryError):
    """A configured round or depth ceiling was exceeded."""

    def __init__(self, limit_name: str, limit: int) -> None:
        self.limit_name = limit_name
        self.limit = limit
        super().__init__(f"Inference exceeded {limit_name}={limit}")
