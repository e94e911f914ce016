"""CLI entry point for the evaluation metrics engine.

Commands:
  lit-eval evaluate <execution.json>       Metrics for one execution
  lit-eval aggregate <metrics.json>...     Batch statistics over executions
  lit-eval compare NAME=<metrics.json>...  Rank LLM systems by quality
"""

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError

from .models import LLMSystemSummary, MetricsResult

FORMAT_CHOICES = ["json", "text"]


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _load_json(path: Path):
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"{path} is not valid JSON: {e}") from e


def _load_results(path: Path) -> list[MetricsResult]:
    data = _load_json(path)
    items = data if isinstance(data, list) else [data]
    try:
        return [MetricsResult.model_validate(item) for item in items]
    except ValidationError as e:
        raise click.ClickException(f"{path} does not contain evaluation results:\n{e}") from e


def _write(text: str, output: Path | None) -> None:
    if output:
        output.write_text(text)
        click.echo(f"Written -> {output}")
    else:
        click.echo(text)


@click.group()
@click.version_option(package_name="lit-eval-metrics")
def main():
    """Validity, relevance and quality metrics for LLM literature searches."""
    pass


@main.command()
@click.argument("execution_json", type=click.Path(exists=True, path_type=Path))
@click.option("--verification", type=click.Path(exists=True, path_type=Path), default=None,
              help="Raw verification results for the execution")
@click.option("--comparison", type=click.Path(exists=True, path_type=Path), default=None,
              help="Raw ground-truth comparison results for the execution")
@click.option("--ground-truth-count", type=click.IntRange(min=0), default=None,
              help="Number of ground truth references for the seed paper")
@click.option("-f", "--format", "output_format", type=click.Choice(FORMAT_CHOICES),
              default="json")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None)
@click.option("-v", "--verbose", is_flag=True)
def evaluate(
    execution_json: Path,
    verification: Path | None,
    comparison: Path | None,
    ground_truth_count: int | None,
    output_format: str,
    output: Path | None,
    verbose: bool,
):
    """Evaluate a single execution."""
    _setup_logging(verbose)

    from .calculator import evaluate_execution
    from .report import format_report

    execution = _load_json(execution_json)
    if not isinstance(execution, dict):
        raise click.BadParameter(f"{execution_json} must contain a JSON object")

    result = evaluate_execution(
        execution,
        verification=_load_json(verification) if verification else None,
        comparison=_load_json(comparison) if comparison else None,
        ground_truth_count=ground_truth_count,
    )

    if output_format == "text":
        _write(format_report(result), output)
    else:
        _write(result.model_dump_json(indent=2), output)

    if result.missing_fields:
        click.echo(f"Incomplete: missing {', '.join(result.missing_fields)}", err=True)


@main.command()
@click.argument("metrics_json", nargs=-1, required=True,
                type=click.Path(exists=True, path_type=Path))
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None)
@click.option("-v", "--verbose", is_flag=True)
def aggregate(metrics_json: tuple[Path, ...], output: Path | None, verbose: bool):
    """Aggregate evaluation results from one or more files."""
    _setup_logging(verbose)

    from .aggregator import aggregate as aggregate_results

    results: list[MetricsResult] = []
    for path in metrics_json:
        results.extend(_load_results(path))

    aggregated = aggregate_results(results)
    _write(aggregated.model_dump_json(indent=2), output)


@main.command()
@click.argument("systems", nargs=-1, required=True)
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None)
@click.option("-v", "--verbose", is_flag=True)
def compare(systems: tuple[str, ...], output: Path | None, verbose: bool):
    """Rank LLM systems. Each argument is NAME=metrics.json (repeat NAME to add files)."""
    _setup_logging(verbose)

    from .aggregator import compare_llm_systems

    grouped: dict[str, list[MetricsResult]] = {}
    for entry in systems:
        name, sep, path = entry.partition("=")
        if not sep or not name or not path:
            raise click.BadParameter(f"expected NAME=FILE, got '{entry}'")
        file_path = Path(path)
        if not file_path.exists():
            raise click.BadParameter(f"{file_path} does not exist")
        grouped.setdefault(name, []).extend(_load_results(file_path))

    ranked = compare_llm_systems(grouped)
    adapter = TypeAdapter(list[LLMSystemSummary])
    _write(adapter.dump_json(ranked, indent=2).decode(), output)

    for position, summary in enumerate(ranked, start=1):
        score = summary.aggregate.mean("combined_metrics", "combined_quality_score")
        shown = "N/A" if score is None else f"{score * 100:.1f}%"
        click.echo(
            f"  {position}. {summary.name}: combined {shown} "
            f"({summary.execution_count} executions)",
            err=True,
        )
