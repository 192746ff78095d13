"""Core production-system inference.

Provides:
- KnowledgeBase: immutable facts and rules addressed by integer handles.
- KnowledgeBuilder: validate a description into a KnowledgeBase, load and
  save JSON documents.
- ProductionEngine: forward (data-driven) and backward (goal-driven)
  chaining over a KnowledgeBase.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Sequence

from .errors import (
    DuplicateFactError,
    DuplicateRuleError,
    InferenceLimitError,
    UnknownFactError,
    UnknownFactReferenceError,
)
from .models import (
    BackwardMode,
    EngineConfig,
    Fact,
    InferenceResult,
    KnowledgeBaseDefinition,
    Rule,
    Task,
)

logger = logging.getLogger(__name__)

FORWARD = "forward"
BACKWARD = "backward"


# ---------------------------------------------------------------------------
# KnowledgeBase
# ---------------------------------------------------------------------------


class CompiledRule(NamedTuple):
    """A rule with its fact names replaced by handles."""

    name: str
    conditionals: tuple[int, ...]
    derivation: int


class KnowledgeBase:
    """Read-only collection of facts and rules.

    Each fact is identified by a handle: its position in declaration order.
    Engines compare handles, never names. Instances are produced by
    ``KnowledgeBuilder.build`` and are safe to share between inference calls.
    """

    __slots__ = ("_facts", "_index", "_rules", "_compiled", "_producers")

    def __init__(
        self,
        facts: Sequence[Fact],
        rules: Sequence[Rule],
        compiled: Sequence[CompiledRule],
    ) -> None:
        self._facts: tuple[Fact, ...] = tuple(facts)
        self._index: Mapping[str, int] = MappingProxyType(
            {fact.name: handle for handle, fact in enumerate(self._facts)}
        )
        self._rules: tuple[Rule, ...] = tuple(rules)
        self._compiled: tuple[CompiledRule, ...] = tuple(compiled)

        producers: dict[int, list[int]] = {}
        for position, rule in enumerate(self._compiled):
            producers.setdefault(rule.derivation, []).append(position)
        self._producers: Mapping[int, tuple[int, ...]] = MappingProxyType(
            {handle: tuple(positions) for handle, positions in producers.items()}
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def facts(self) -> Mapping[str, Fact]:
        """Fact name to Fact, in declaration order."""
        return MappingProxyType({fact.name: fact for fact in self._facts})

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def compiled_rules(self) -> tuple[CompiledRule, ...]:
        """Rules in declaration order, with handles instead of names."""
        return self._compiled

    def producers_of(self, handle: int) -> tuple[int, ...]:
        """Positions of the rules whose derivation is *handle*, in order."""
        return self._producers.get(handle, ())

    def fact(self, name: str) -> Fact:
        """Return the fact called *name*, raising UnknownFactError if absent."""
        return self._facts[self.handle(name)]

    def handle(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise UnknownFactError(name) from None

    def fact_name(self, handle: int) -> str:
        return self._facts[handle].name

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._facts)

    def __repr__(self) -> str:
        return f"KnowledgeBase(facts={len(self._facts)}, rules={len(self._rules)})"

    # ------------------------------------------------------------------
    # Name resolution
    # ------------------------------------------------------------------

    def resolve(
        self, true_fact_names: Iterable[str], query_name: str
    ) -> tuple[list[int], int]:
        """Map true-fact names and the query name to handles.

        Args:
            true_fact_names: Names of the facts initially held true, in order.
            query_name: Name of the fact to prove.

        Returns:
            ``(true_fact_handles, query_handle)``.

        Raises:
            UnknownFactError: For the first name (true facts first, then the
                query) that the knowledge base does not declare.
        """
        true_facts = [self.handle(name) for name in true_fact_names]
        return true_facts, self.handle(query_name)


# ---------------------------------------------------------------------------
# KnowledgeBuilder
# ---------------------------------------------------------------------------


class KnowledgeBuilder:
    """Validate knowledge base descriptions and read/write them as JSON.

    Example:
        >>> builder = KnowledgeBuilder()
        >>> kb = builder.from_dict({
        ...     "facts": [{"name": "f1"}, {"name": "f2"}, {"name": "f3"}],
        ...     "rules": [{"name": "R1", "conditionals": ["f1", "f2"],
        ...                "derivation": "f3"}],
        ... })
        >>> len(kb)
        3
    """

    def build(self, definition: KnowledgeBaseDefinition) -> KnowledgeBase:
        """Check a description and freeze it into a KnowledgeBase.

        Raises:
            DuplicateFactError: Two facts share a name.
            DuplicateRuleError: Two rules share a name.
            UnknownFactReferenceError: A rule names an undeclared fact.
        """
        index: dict[str, int] = {}
        for fact in definition.facts:
            if fact.name in index:
                raise DuplicateFactError(fact.name)
            index[fact.name] = len(index)

        known_rules: set[str] = set()
        compiled: list[CompiledRule] = []
        for rule in definition.rules:
            if rule.name in known_rules:
                raise DuplicateRuleError(rule.name)
            known_rules.add(rule.name)

            for name in (*rule.conditionals, rule.derivation):
                if name not in index:
                    raise UnknownFactReferenceError(name, rule.name)

            compiled.append(
                CompiledRule(
                    name=rule.name,
                    conditionals=tuple(index[name] for name in rule.conditionals),
                    derivation=index[rule.derivation],
                )
            )

        kb = KnowledgeBase(definition.facts, definition.rules, compiled)
        logger.info("Built knowledge base with %d fact(s) and %d rule(s)", len(kb), len(compiled))
        return kb

    def from_dict(self, data: Mapping[str, Any]) -> KnowledgeBase:
        """Validate a decoded JSON document and build it."""
        return self.build(KnowledgeBaseDefinition.model_validate(data))

    def from_json(self, path: Path) -> KnowledgeBase:
        """Load and build a knowledge base from a JSON file.

        Args:
            path: Path to a JSON document with ``facts`` and ``rules``.

        Returns:
            The built KnowledgeBase.
        """
        data = json.loads(path.read_text(encoding="utf-8"))
        return self.from_dict(data)

    def load_task(self, path: Path) -> Task:
        """Load a ``{"true_facts": [...], "query": "..."}`` task file."""
        return Task.model_validate_json(path.read_text(encoding="utf-8"))

    def to_definition(self, kb: KnowledgeBase) -> KnowledgeBaseDefinition:
        return KnowledgeBaseDefinition(facts=list(kb.facts.values()), rules=list(kb.rules))

    def to_json(self, kb: KnowledgeBase, path: Path) -> None:
        """Serialise a KnowledgeBase to a JSON file.

        Args:
            kb: The knowledge base to serialise.
            path: Destination file path.
        """
        path.write_text(self.to_definition(kb).model_dump_json(indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# ProductionEngine
# ---------------------------------------------------------------------------


class _WorkingSet:
    """Ordered, duplicate-free set of fact handles that supports rollback."""

    __slots__ = ("order", "members", "seeded")

    def __init__(self, handles: Iterable[int]) -> None:
        self.order: list[int] = []
        self.members: set[int] = set()
        for handle in handles:
            self.add(handle)
        self.seeded = len(self.order)

    def __contains__(self, handle: int) -> bool:
        return handle in self.members

    def add(self, handle: int) -> bool:
        if handle in self.members:
            return False
        self.members.add(handle)
        self.order.append(handle)
        return True

    def truncate(self, size: int) -> None:
        for handle in self.order[size:]:
            self.members.discard(handle)
        del self.order[size:]

    def added(self) -> list[int]:
        """Handles added after seeding."""
        return self.order[self.seeded:]


class _Proof:
    """Shared accumulator for one backward-chaining call."""

    __slots__ = ("working", "trail", "path")

    def __init__(self, working: _WorkingSet) -> None:
        self.working = working
        self.trail: list[int] = []
        # goals whose proof is in progress on the current branch
        self.path: set[int] = set()

    def mark(self) -> tuple[int, int]:
        return len(self.working.order), len(self.trail)

    def rollback(self, mark: tuple[int, int]) -> None:
        working_size, trail_size = mark
        self.working.truncate(working_size)
        del self.trail[trail_size:]


class ProductionEngine:
    """Forward- and backward-chaining inference over a KnowledgeBase.

    The engine holds no per-call state: every call resolves names, builds a
    fresh working set and trail, and discards them once the result is built.

    Example:
        >>> engine = ProductionEngine(kb)
        >>> result = engine.forward(["f1", "f2"], "f3")
        >>> result.derived, result.used_rules
        (True, ['R1'])
    """

    def __init__(self, knowledge_base: KnowledgeBase, config: Optional[EngineConfig] = None) -> None:
        self._kb = knowledge_base
        self._config = config or EngineConfig()

    @property
    def knowledge_base(self) -> KnowledgeBase:
        return self._kb

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def forward(self, true_fact_names: Sequence[str], query_name: str) -> InferenceResult:
        """Saturate the true facts with every derivable fact and check the query.

        Args:
            true_fact_names: Names of the facts initially held true.
            query_name: Name of the fact to check.

        Returns:
            InferenceResult with ``derived=True`` if the query is in the
            saturated working set. ``used_rules`` lists every rule fired.

        Raises:
            UnknownFactError: A name is not declared in the knowledge base.
            InferenceLimitError: ``config.max_rounds`` was exceeded.
        """
        true_facts, query = self._kb.resolve(true_fact_names, query_name)
        working = _WorkingSet(true_facts)
        trail: list[int] = []

        if query in working:
            logger.debug("Query %r is an initial fact", query_name)
            return self._result(FORWARD, query, True, trail, working, 0)

        rounds = self._forward_chain(working, trail)
        derived = query in working
        logger.info(
            "[forward] %s: derived=%s after %d round(s), %d rule(s) fired",
            query_name, derived, rounds, len(trail),
        )
        return self._result(FORWARD, query, derived, trail, working, rounds)

    def backward(self, true_fact_names: Sequence[str], query_name: str) -> InferenceResult:
        """Try to prove the query from the true facts, working back from the goal.

        Args:
            true_fact_names: Names of the facts initially held true.
            query_name: Name of the goal fact.

        Returns:
            InferenceResult with ``derived=True`` if a proof was found.
            ``used_rules`` lists the rules of that proof, innermost first.

        Raises:
            UnknownFactError: A name is not declared in the knowledge base.
            InferenceLimitError: ``config.max_depth`` was exceeded.
        """
        true_facts, query = self._kb.resolve(true_fact_names, query_name)
        proof = _Proof(_WorkingSet(true_facts))
        derived = self._is_provable(query, proof, 0)
        logger.info(
            "[backward] %s: derived=%s, %d rule(s) used (%s mode)",
            query_name, derived, len(proof.trail), self._config.backward_mode.value,
        )
        return self._result(BACKWARD, query, derived, proof.trail, proof.working, 0)

    def infer(self, strategy: str, true_fact_names: Sequence[str], query_name: str) -> InferenceResult:
        """Dispatch to ``forward`` or ``backward`` by name."""
        if strategy == FORWARD:
            return self.forward(true_fact_names, query_name)
        if strategy == BACKWARD:
            return self.backward(true_fact_names, query_name)
        raise ValueError(f"Unknown strategy {strategy!r}; expected 'forward' or 'backward'")

    def explain(self, strategy: str, true_fact_names: Sequence[str], query_name: str) -> str:
        """Return a human-readable trace of one inference call.

        Args:
            strategy: ``"forward"`` or ``"backward"``.
            true_fact_names: Names of the facts initially held true.
            query_name: Name of the fact to prove.

        Returns:
            Multi-line explanation string.
        """
        result = self.infer(strategy, true_fact_names, query_name)
        lines: list[str] = [
            f"Query: {result.query}",
            f"Strategy: {result.strategy}",
            f"Derived: {result.derived}",
        ]
        if result.strategy == FORWARD:
            lines.append(f"Rounds: {result.rounds}")
        if result.used_rules:
            rules = {rule.name: rule for rule in self._kb.rules}
            lines.append("Used rules:")
            for name in result.used_rules:
                rule = rules[name]
                lines.append(f"  -> [{name}] {' ^ '.join(rule.conditionals)} => {rule.derivation}")
        else:
            lines.append("No rules used.")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _forward_chain(self, working: _WorkingSet, trail: list[int]) -> int:
        """Fire rules round by round until a round adds nothing.

        Rules in a round only see the working set as it was when the round
        began. Returns the number of rounds that added facts.
        """
        max_rounds = self._config.max_rounds
        rounds = 0
        while True:
            fired: list[int] = []
            for position, rule in enumerate(self._kb.compiled_rules):
                if rule.derivation in working:
                    continue
                if all(conditional in working for conditional in rule.conditionals):
                    fired.append(position)

            if not fired:
                return rounds

            rounds += 1
            if max_rounds is not None and rounds > max_rounds:
                raise InferenceLimitError("max_rounds", max_rounds)

            # a fact produced by several rules this round is added once,
            # but every one of those rules goes on the trail
            for position in fired:
                working.add(self._kb.compiled_rules[position].derivation)
            trail.extend(fired)
            logger.debug(
                "Round %d fired %s", rounds,
                [self._kb.compiled_rules[position].name for position in fired],
            )

    def _is_provable(self, fact: int, proof: _Proof, depth: int) -> bool:
        """Depth-first proof of *fact*; the first rule that succeeds wins."""
        if fact in proof.working:
            return True

        max_depth = self._config.max_depth
        if max_depth is not None and depth > max_depth:
            raise InferenceLimitError("max_depth", max_depth)
        if fact in proof.path:
            logger.debug("Cycle on goal %r; abandoning branch", self._kb.fact_name(fact))
            return False

        proof.path.add(fact)
        try:
            for position in self._kb.producers_of(fact):
                rule = self._kb.compiled_rules[position]
                mark = proof.mark()
                if all(
                    self._antecedent_holds(conditional, proof, depth + 1)
                    for conditional in rule.conditionals
                ):
                    proof.trail.append(position)
                    proof.working.add(fact)
                    logger.debug("Goal %r proven by %s", self._kb.fact_name(fact), rule.name)
                    return True
                proof.rollback(mark)
            return False
        finally:
            proof.path.discard(fact)

    def _antecedent_holds(self, conditional: int, proof: _Proof, depth: int) -> bool:
        if self._config.backward_mode is BackwardMode.STRICT:
            return conditional in proof.working and self._is_provable(conditional, proof, depth)
        return self._is_provable(conditional, proof, depth)

    def _result(
        self,
        strategy: str,
        query: int,
        derived: bool,
        trail: Sequence[int],
        working: _WorkingSet,
        rounds: int,
    ) -> InferenceResult:
        compiled = self._kb.compiled_rules
        return InferenceResult(
            query=self._kb.fact_name(query),
            strategy=strategy,
            derived=derived,
            used_rules=[compiled[position].name for position in trail],
            derived_facts=[self._kb.fact_name(handle) for handle in working.added()],
            rounds=rounds,
        )
