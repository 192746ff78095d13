"""CLI entry point for aumai-production-system.

Commands:
    validate -- build a JSON knowledge base and report its size
    forward  -- data-driven inference for one task
    backward -- goal-driven inference for one task
    run      -- forward and backward inference over two task files
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from pydantic import ValidationError

from . import __version__
from .core import BACKWARD, FORWARD, KnowledgeBase, KnowledgeBuilder, ProductionEngine
from .errors import ProductionSystemError
from .models import BackwardMode, EngineConfig, InferenceResult, Task

ENV_PREFIX = "PRODUCTION_SYSTEM"


def _fail(message: str) -> NoReturn:
    click.echo(f"ERROR {message}", err=True)
    sys.exit(1)


def _load_kb(kb_path: Path) -> KnowledgeBase:
    try:
        return KnowledgeBuilder().from_json(kb_path)
    except (ValueError, ProductionSystemError) as exc:
        # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
        _fail(f"loading knowledge base: {exc}")


def _load_task(task_path: Optional[Path], facts: tuple[str, ...], query: Optional[str]) -> Task:
    if task_path is not None:
        try:
            return KnowledgeBuilder().load_task(task_path)
        except ValidationError as exc:
            _fail(f"loading task: {exc}")
    if query is None:
        raise click.UsageError("Provide either --task or --query.")
    return Task(true_facts=list(facts), query=query)


def _format_verdict(result: InferenceResult) -> str:
    used = "[" + " ".join(result.used_rules) + "]"
    return f"[{result.strategy}] :: Is derived: {str(result.derived).lower()}, used rules: {used}"


def _run_one(
    strategy: str,
    kb_path: Path,
    task_path: Optional[Path],
    facts: tuple[str, ...],
    query: Optional[str],
    explain: bool,
    config: EngineConfig,
) -> None:
    kb = _load_kb(kb_path)
    task = _load_task(task_path, facts, query)
    engine = ProductionEngine(kb, config)
    try:
        if explain:
            click.echo(engine.explain(strategy, task.true_facts, task.query))
        else:
            click.echo(_format_verdict(engine.infer(strategy, task.true_facts, task.query)))
    except ProductionSystemError as exc:
        _fail(str(exc))


_kb_option = click.option(
    "--kb",
    "kb_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to a JSON knowledge base file.",
)
_task_option = click.option(
    "--task",
    "task_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a JSON task file: {"true_facts": [...], "query": "..."}.',
)
_fact_option = click.option(
    "--fact", "facts", multiple=True, help="Name of an initially true fact (repeatable)."
)
_query_option = click.option("--query", default=None, help="Name of the fact to prove.")
_explain_option = click.option(
    "--explain", is_flag=True, default=False, help="Print the full inference trace."
)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log inference progress.")
def main(verbose: bool) -> None:
    """AumAI production system -- forward and backward chaining CLI."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@main.command("validate")
@_kb_option
def validate_command(kb_path: Path) -> None:
    """Build the knowledge base at KB_PATH and report its size.

    Example:

        aumai-production-system validate --kb rules.json
    """
    kb = _load_kb(kb_path)
    click.echo(f"OK: {len(kb)} fact(s) and {len(kb.rules)} rule(s) in {kb_path}")


@main.command("forward")
@_kb_option
@_task_option
@_fact_option
@_query_option
@_explain_option
@click.option(
    "--max-rounds",
    default=None,
    type=click.IntRange(min=1),
    envvar=f"{ENV_PREFIX}_MAX_ROUNDS",
    help="Abort after this many rounds.",
)
def forward_command(
    kb_path: Path,
    task_path: Optional[Path],
    facts: tuple[str, ...],
    query: Optional[str],
    explain: bool,
    max_rounds: Optional[int],
) -> None:
    """Check QUERY by saturating the true facts with every applicable rule.

    Example:

        aumai-production-system forward --kb rules.json --fact f1 --fact f2 --query f3
    """
    config = EngineConfig(max_rounds=max_rounds)
    _run_one(FORWARD, kb_path, task_path, facts, query, explain, config)


@main.command("backward")
@_kb_option
@_task_option
@_fact_option
@_query_option
@_explain_option
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in BackwardMode]),
    default=BackwardMode.STRICT.value,
    show_default=True,
    envvar=f"{ENV_PREFIX}_BACKWARD_MODE",
    help="strict: antecedents must already be true; chaining: prove them recursively.",
)
@click.option(
    "--max-depth",
    default=None,
    type=click.IntRange(min=1),
    envvar=f"{ENV_PREFIX}_MAX_DEPTH",
    help="Abort when the proof recurses deeper than this.",
)
def backward_command(
    kb_path: Path,
    task_path: Optional[Path],
    facts: tuple[str, ...],
    query: Optional[str],
    explain: bool,
    mode: str,
    max_depth: Optional[int],
) -> None:
    """Try to prove QUERY by working back from it towards the true facts.

    Example:

        aumai-production-system backward --kb rules.json --task backward.json
    """
    config = EngineConfig(backward_mode=BackwardMode(mode), max_depth=max_depth)
    _run_one(BACKWARD, kb_path, task_path, facts, query, explain, config)


@main.command("run")
@_kb_option
@click.option(
    "--forward-task",
    "forward_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Task file for forward chaining.",
)
@click.option(
    "--backward-task",
    "backward_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Task file for backward chaining.",
)
def run_command(kb_path: Path, forward_path: Path, backward_path: Path) -> None:
    """Run forward chaining on one task file and backward chaining on another.

    Example:

        aumai-production-system run --kb rules.json \\
            --forward-task forward.json --backward-task backward.json
    """
    engine = ProductionEngine(_load_kb(kb_path))
    for strategy, path in ((FORWARD, forward_path), (BACKWARD, backward_path)):
        task = _load_task(path, (), None)
        try:
            result = engine.infer(strategy, task.true_facts, task.query)
        except ProductionSystemError as exc:
            _fail(str(exc))
        click.echo(_format_verdict(result))


if __name__ == "__main__":
    main()
