"""Main Typer application.

Entry point: ``depforge`` (configured via pyproject.toml [project.scripts]).

Usage::

    depforge --list
    depforge [--publish] [--yes] [--dry-run] TARGET...
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from depforge.config import ForgeConfig
from depforge.core.assembly import build_graph
from depforge.core.dependency_graph import DependencyGraph, list_artifacts
from depforge.core.executor import execute
from depforge.core.planner import plan as compute_plan
from depforge.cli.render import PlanRenderer

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="depforge",
    help="Reconcile images, packages, test markers and deploys against local and published state.",
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(config: ForgeConfig) -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.debug else config.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


async def reconcile(
    graph: DependencyGraph,
    targets: list[str],
    *,
    publish: bool,
    yes: bool,
    dry_run: bool,
) -> int:
    """Plan, confirm and execute.  Returns the process exit code."""
    renderer = PlanRenderer(console=console)

    plan = await compute_plan(graph, publish=publish, targets=targets)
    renderer.print_plan(plan)

    if plan.is_noop:
        console.print("[bold green]Nothing to do.[/bold green]")
        return 0
    if dry_run:
        return 0
    if not yes and not typer.confirm("Execute this plan?", default=False):
        err_console.print("[yellow]Aborted.[/yellow]")
        return 1

    report = await execute(
        plan, graph, publish=publish, on_progress=renderer.print_progress
    )
    renderer.print_report(report)
    return 0 if report.ok else 1


@app.command()
def main_cmd(
    ctx: typer.Context,
    targets: Optional[List[str]] = typer.Argument(
        None,
        help="Artifacts to reconcile; their dependencies are included.",
        show_default=False,
    ),
    list_only: bool = typer.Option(
        False, "--list", help="List available artifacts; ignore other arguments."
    ),
    publish: bool = typer.Option(
        False, "--publish", help="Publish artifacts to remote registries."
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Execute plan without confirmation."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the plan and exit without executing it."
    ),
    repo_root: Optional[Path] = typer.Option(
        None, "--repo-root", help="Source tree root (default: DEPFORGE_REPO_ROOT or .)."
    ),
) -> None:
    """Reconcile build artifacts: build, pull or publish whatever is out of date."""
    try:
        config = ForgeConfig()
        if repo_root is not None:
            config = config.model_copy(update={"repo_root": repo_root})
        configure_logging(config)

        graph = build_graph(config)

        if list_only:
            for name in list_artifacts(graph):
                typer.echo(name)
            typer.echo("", err=True)
            typer.echo(f"{len(graph)} artifacts", err=True)
            raise typer.Exit(code=0)

        if not targets:
            typer.echo(ctx.get_usage(), err=True)
            typer.echo(f"Try '{ctx.command_path} --help' for help.", err=True)
            raise typer.Exit(code=2)

        exit_code = asyncio.run(
            reconcile(graph, targets, publish=publish, yes=yes, dry_run=dry_run)
        )
    except typer.Exit:
        raise
    except Exception as exc:
        logger.debug("Run failed", exc_info=True)
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    raise typer.Exit(code=exit_code)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
