"""Quickstart examples for aumai-production-system.

Run this file directly to verify your installation and see the library in action:

    python examples/quickstart.py

This file demonstrates:
  1. Building a knowledge base from a JSON-shaped description
  2. Forward chaining (data-driven)
  3. Backward chaining in strict and chaining modes
  4. The explain() trace and construction/query errors
"""

from __future__ import annotations

from aumai_production_system.core import KnowledgeBuilder, ProductionEngine
from aumai_production_system.errors import ConstructionError, UnknownFactError
from aumai_production_system.models import BackwardMode, EngineConfig

WEATHER_KB = {
    "facts": [
        {"name": "rain", "semantic_value": "it is raining"},
        {"name": "cold", "semantic_value": "it is below zero"},
        {"name": "wet", "semantic_value": "the road is wet"},
        {"name": "ice", "semantic_value": "the road is icy"},
        {"name": "slow", "semantic_value": "drive slowly"},
    ],
    "rules": [
        {"name": "R1", "conditionals": ["rain"], "derivation": "wet"},
        {"name": "R2", "conditionals": ["wet", "cold"], "derivation": "ice"},
        {"name": "R3", "conditionals": ["ice"], "derivation": "slow"},
    ],
}


def demo_forward() -> None:
    print("=" * 60)
    print("Demo 1: Forward chaining")
    print("=" * 60)

    kb = KnowledgeBuilder().from_dict(WEATHER_KB)
    engine = ProductionEngine(kb)
    result = engine.forward(["rain", "cold"], "slow")
    print(f"Derived: {result.derived}")
    print(f"Used rules: {result.used_rules} over {result.rounds} round(s)\n")


def demo_backward() -> None:
    """Strict mode only proves goals whose antecedents are already true."""
    print("=" * 60)
    print("Demo 2: Backward chaining, strict vs chaining")
    print("=" * 60)

    kb = KnowledgeBuilder().from_dict(WEATHER_KB)
    for mode in BackwardMode:
        engine = ProductionEngine(kb, EngineConfig(backward_mode=mode))
        result = engine.backward(["rain", "cold"], "slow")
        print(f"{mode.value:>8}: derived={result.derived} used={result.used_rules}")
    print()


def demo_explain_and_errors() -> None:
    print("=" * 60)
    print("Demo 3: explain() and errors")
    print("=" * 60)

    builder = KnowledgeBuilder()
    engine = ProductionEngine(builder.from_dict(WEATHER_KB))
    print(engine.explain("forward", ["rain", "cold"], "ice"))

    try:
        engine.forward(["rain", "fog"], "ice")
    except UnknownFactError as exc:
        print(f"\nQuery rejected: {exc}")

    broken = {"facts": WEATHER_KB["facts"], "rules": [{"name": "R9", "conditionals": ["snow"], "derivation": "ice"}]}
    try:
        builder.from_dict(broken)
    except ConstructionError as exc:
        print(f"Knowledge base rejected: {exc}")


if __name__ == "__main__":
    demo_forward()
    demo_backward()
    demo_explain_and_errors()
