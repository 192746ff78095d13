"""Pydantic v2 models for the production system."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Fact(BaseModel):
    """An atomic named proposition.

    Attributes:
        name: Identifier, unique within a knowledge base.
        semantic_value: Free-text description; informational only.

    Example:
        >>> fact = Fact(name="f1", semantic_value="it is raining")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    semantic_value: str = ""

    @field_validator("name")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        """Strip surrounding whitespace from the fact name."""
        return value.strip()


class Rule(BaseModel):
    """An implication from antecedent facts to a single consequent fact.

    Attributes:
        name: Unique identifier for the rule.
        conditionals: Antecedent fact names. Evaluated as a set, but the
            declared order is kept for deterministic output.
        derivation: Name of the consequent fact.

    Example:
        >>> rule = Rule(name="R1", conditionals=["f1", "f2"], derivation="f3")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    conditionals: list[str] = Field(default_factory=list)
    derivation: str = Field(..., min_length=1)

    @field_validator("name", "derivation")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        """Strip surrounding whitespace from string fields."""
        return value.strip()

    @field_validator("conditionals")
    @classmethod
    def strip_conditionals(cls, value: list[str]) -> list[str]:
        """Strip whitespace from each antecedent name."""
        return [item.strip() for item in value]


class KnowledgeBaseDefinition(BaseModel):
    """Unvalidated description of facts and rules, as read from JSON.

    Referential integrity and name uniqueness are checked by
    ``KnowledgeBuilder.build``, not here.

    Example:
        >>> definition = KnowledgeBaseDefinition(
        ...     facts=[Fact(name="f1"), Fact(name="f2"), Fact(name="f3")],
        ...     rules=[Rule(name="R1", conditionals=["f1", "f2"], derivation="f3")],
        ... )
    """

    facts: list[Fact] = Field(default_factory=list)
    rules: list[Rule] = Field(default_factory=list)


class Task(BaseModel):
    """A single inference request: which facts hold and what to prove."""

    true_facts: list[str] = Field(default_factory=list)
    query: str = Field(..., min_length=1)

    @field_validator("query")
    @classmethod
    def strip_query(cls, value: str) -> str:
        return value.strip()

    @field_validator("true_facts")
    @classmethod
    def strip_true_facts(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value]


class BackwardMode(str, Enum):
    """How backward chaining treats an antecedent that is not yet true.

    STRICT: the antecedent must already be in the working set before it is
        checked recursively, so only goals one rule away from the known
        facts are proven.
    CHAINING: the antecedent is proven recursively (textbook backward
        chaining).
    """

    STRICT = "strict"
    CHAINING = "chaining"


class EngineConfig(BaseModel):
    """Per-engine settings.

    Attributes:
        backward_mode: Antecedent semantics for backward chaining.
        max_rounds: Optional ceiling on forward-chaining rounds.
        max_depth: Optional ceiling on backward-chaining recursion depth.
    """

    model_config = ConfigDict(frozen=True)

    backward_mode: BackwardMode = BackwardMode.STRICT
    max_rounds: Optional[int] = Field(default=None, ge=1)
    max_depth: Optional[int] = Field(default=None, ge=1)


class InferenceResult(BaseModel):
    """The outcome of one inference call.

    Attributes:
        query: Name of the queried fact.
        strategy: ``"forward"`` or ``"backward"``.
        derived: Whether the query was found true.
        used_rules: Names of the rules that contributed, in firing order.
        derived_facts: Facts added to the working set during the call.
        rounds: Forward-chaining rounds executed (0 for backward chaining).

    Example:
        >>> res = InferenceResult(query="f3", strategy="forward", derived=True,
        ...                       used_rules=["R1"], derived_facts=["f3"], rounds=2)
    """

    query: str
    strategy: str
    derived: bool
    used_rules: list[str] = Field(default_factory=list)
    derived_facts: list[str] = Field(default_factory=list)
    rounds: int = Field(default=0, ge=0)
