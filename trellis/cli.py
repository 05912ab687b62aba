"""Command line interface for managing and triggering trellis workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from trellis import TrellisConfig, WorkflowManager, get_store, load_config
from trellis.cli_utils.definitions import _build_registry, _read_definition_file

app = typer.Typer(help="CLI for trellis workflows")

# Command groups
definition_app = typer.Typer(help="Commands for managing workflow definitions")
instance_app = typer.Typer(help="Commands for inspecting paused workflow instances")

app.add_typer(definition_app, name="definition")
app.add_typer(instance_app, name="instance")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to a trellis YAML configuration file"
    ),
) -> None:
    """Trellis CLI entry point."""
    config = load_config(str(config_path) if config_path else None)
    ctx.obj = config
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _config(ctx: typer.Context) -> TrellisConfig:
    return ctx.obj if isinstance(ctx.obj, TrellisConfig) else load_config()


def _store(ctx: typer.Context, database_url: Optional[str]):
    return get_store(database_url=database_url, config=_config(ctx))


@definition_app.command("load")
def definition_load(
    ctx: typer.Context,
    path: Path,
    database_url: Optional[str] = typer.Option(None, help="Store URL override"),
    plugin: List[str] = typer.Option([], help="Module registering extra activities"),
) -> None:
    """
    Validate a YAML or JSON workflow definition and save it to the store.

    Example:
        trellis definition load ./approval.yaml
        trellis definition load ./orders.json --plugin myapp.activities
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    definition = _read_definition_file(path)
    problems = _build_registry(plugin).validate_definition(definition)
    if problems:
        for problem in problems:
            typer.secho(problem, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    asyncio.run(_store(ctx, database_url).save_definition(definition))
    typer.echo(f"Saved workflow definition {definition.name} ({definition.id})")


@definition_app.command("list")
def definition_list(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(None, help="Store URL override"),
) -> None:
    """List workflow definitions with their start activity and status."""
    definitions = asyncio.run(_store(ctx, database_url).list_definitions())
    if not definitions:
        typer.echo("No workflow definitions found")
        return
    for definition in definitions:
        status = "enabled" if definition.is_enabled else "disabled"
        start = definition.start_activity_name or "(no start)"
        typer.echo(f"{definition.id}\t{definition.name}\t{start}\t{status}")


@instance_app.command("list")
def instance_list(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(None, help="Store URL override"),
) -> None:
    """List paused workflow instances and the activities they await."""
    instances = asyncio.run(_store(ctx, database_url).list_instances())
    if not instances:
        typer.echo("No workflow instances found")
        return
    for instance in instances:
        awaiting = ", ".join(a.name for a in instance.awaiting_activities)
        typer.echo(f"{instance.id}\t{instance.definition_id}\t{awaiting}")


@instance_app.command("show")
def instance_show(
    ctx: typer.Context,
    instance_id: str,
    database_url: Optional[str] = typer.Option(None, help="Store URL override"),
) -> None:
    """Show the definition and awaiting activities of a paused instance."""
    instance = asyncio.run(_store(ctx, database_url).get_instance(instance_id))
    if instance is None:
        typer.secho("Workflow instance not found", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Instance: {instance.id}")
    typer.echo(f"Definition: {instance.definition_id}")
    typer.echo(f"Version: {instance.version}")
    typer.echo("Awaiting:")
    for awaiting in instance.awaiting_activities:
        typer.echo(f"  - {awaiting.activity_id} ({awaiting.name})")


@app.command("trigger")
def trigger(
    ctx: typer.Context,
    event: str,
    context: Optional[str] = typer.Option(
        None, help="JSON object exposed to activities as workflow properties"
    ),
    database_url: Optional[str] = typer.Option(None, help="Store URL override"),
    plugin: List[str] = typer.Option([], help="Module registering extra activities"),
) -> None:
    """
    Trigger an event, starting and resuming the workflows waiting for it.

    Example:
        trellis trigger Signal --context '{"order": 42}'
    """
    try:
        properties = json.loads(context) if context else {}
    except json.JSONDecodeError as exc:
        typer.secho(f"Invalid context JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if not isinstance(properties, dict):
        typer.secho("Context must be a JSON object", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    manager = WorkflowManager(
        _build_registry(plugin), _store(ctx, database_url), config=_config(ctx)
    )
    asyncio.run(manager.trigger_event(event, context_factory=lambda: properties))
    typer.echo(f"Triggered {event}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
