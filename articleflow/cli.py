"""Command line interface for running and reviewing article workflows."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from .config import load_config
from .context import ExecutionContext
from .contracts import ArticleInput
from .errors import ArticleFlowError
from .executors import build_pipeline
from .state import OutputKind

app = typer.Typer(help="CLI for articleflow workflows")

SnapshotArg = typer.Argument(..., help="Path of the JSON snapshot file")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    """articleflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_context(snapshot: Path) -> ExecutionContext:
    if not snapshot.exists():
        typer.secho(f"Snapshot not found: {snapshot}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return ExecutionContext.from_json(snapshot.read_text(encoding="utf-8"))


def _save_context(ctx: ExecutionContext, snapshot: Path) -> None:
    snapshot.parent.mkdir(parents=True, exist_ok=True)
    snapshot.write_text(ctx.to_json(), encoding="utf-8")


def _run_pipeline(
    ctx: ExecutionContext,
    snapshot: Path,
    config_path: Optional[Path],
    auto_approve: bool,
) -> None:
    config = load_config(str(config_path) if config_path else None)
    if auto_approve:
        config.pipeline.auto_approve = True
    pipeline = build_pipeline(config)
    try:
        asyncio.run(pipeline.run(ctx))
    except Exception as e:
        _save_context(ctx, snapshot)
        typer.secho(f"Workflow failed: {e}", fg=typer.colors.RED)
        typer.echo(f"Snapshot saved to {snapshot}")
        raise typer.Exit(code=1)
    _save_context(ctx, snapshot)
    typer.echo(ctx.get_summary())
    typer.echo(f"Snapshot saved to {snapshot}")


@app.command("run")
def run(
    input_file: Path = typer.Argument(..., help="YAML or JSON article brief"),
    snapshot: Optional[Path] = typer.Option(None, help="Where to write the snapshot"),
    config: Optional[Path] = typer.Option(None, help="Config file"),
    auto_approve: bool = typer.Option(False, help="Skip all approval gates"),
) -> None:
    """
    Start a new workflow from an article brief.

    The workflow runs until it finishes, reaches an approval gate or fails.
    Its state is written to a snapshot file that the other commands use.

    Example:
        articleflow run brief.yaml --snapshot runs/sleep.json
    """
    if not input_file.exists():
        typer.secho(f"Input file not found: {input_file}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    data = yaml.safe_load(input_file.read_text(encoding="utf-8")) or {}
    try:
        article_input = ArticleInput(**data)
    except ValidationError as e:
        typer.secho(f"Invalid article input:\n{e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    ctx = ExecutionContext(article_input)
    snapshot = snapshot or Path(f"{ctx.id}.json")
    typer.echo(f"Started workflow {ctx.id}")
    _run_pipeline(ctx, snapshot, config, auto_approve)


@app.command("resume")
def resume(
    snapshot: Path = SnapshotArg,
    config: Optional[Path] = typer.Option(None, help="Config file"),
    auto_approve: bool = typer.Option(False, help="Skip all approval gates"),
) -> None:
    """Continue a workflow from its snapshot."""
    ctx = _load_context(snapshot)
    _run_pipeline(ctx, snapshot, config, auto_approve)


@app.command("approve")
def approve(
    snapshot: Path = SnapshotArg,
    output: OutputKind = typer.Option(..., help="Output to approve"),
) -> None:
    """Approve the output waiting at the current gate."""
    ctx = _load_context(snapshot)
    try:
        ctx.approve(output)
    except ArticleFlowError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _save_context(ctx, snapshot)
    typer.echo(f"Workflow {ctx.id}: {ctx.state.describe()}")


@app.command("reject")
def reject(
    snapshot: Path = SnapshotArg,
    output: OutputKind = typer.Option(..., help="Output to reject"),
    reason: str = typer.Option(..., help="Why the output was rejected"),
) -> None:
    """Reject the output waiting at the current gate."""
    ctx = _load_context(snapshot)
    try:
        ctx.reject(output, reason)
    except ArticleFlowError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _save_context(ctx, snapshot)
    typer.echo(f"Workflow {ctx.id}: {ctx.state.describe()}")


@app.command("restart")
def restart(
    snapshot: Path = SnapshotArg,
    reason: Optional[str] = typer.Option(None, help="Note recorded in the history"),
) -> None:
    """Re-open a failed or rejected stage so `resume` runs it again."""
    ctx = _load_context(snapshot)
    try:
        ctx.restart_stage(reason)
    except ArticleFlowError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    _save_context(ctx, snapshot)
    typer.echo(f"Workflow {ctx.id}: {ctx.state.describe()}")


@app.command("show")
def show(
    snapshot: Path = SnapshotArg,
    history: bool = typer.Option(False, help="Also print the history log"),
) -> None:
    """Print the summary of a workflow snapshot."""
    ctx = _load_context(snapshot)
    typer.echo(ctx.get_summary())
    if history:
        typer.echo("")
        typer.echo("History:")
        for entry in ctx.history:
            typer.echo(
                f"  {entry.timestamp.isoformat()} [{entry.state.describe()}] {entry.action}"
            )


if __name__ == "__main__":
    app()
