"""Command line interface: ``apimextract extract`` and ``apimextract kinds``."""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from apimextract.app import main as run_main
from apimextract.graph.resource_graph import ResourceGraph, default_graph
from apimextract.models.resources import ResourceKind


@click.group()
@click.version_option(package_name="apimextract")
def cli() -> None:
    """Export an API management service's configuration to a directory tree."""


@cli.command()
@click.option("--service-url", help="ARM URI of the service (overrides the next three options).")
@click.option("--subscription-id", help="Azure subscription id.")
@click.option("--resource-group", help="Resource group of the service.")
@click.option("--service-name", help="Name of the API management service.")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory the export tree is written to.",
)
@click.option(
    "--configuration",
    "configuration_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML or JSON document restricting what is extracted.",
)
@click.option("--max-concurrency", type=click.IntRange(min=0), help="Cap on concurrent requests (0 = unbounded).")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level.",
)
def extract(
    service_url: str | None,
    subscription_id: str | None,
    resource_group: str | None,
    service_name: str | None,
    output_dir: Path | None,
    configuration_path: Path | None,
    max_concurrency: int | None,
    log_level: str | None,
) -> None:
    """Extract the service configuration.

    Unset options fall back to APIMEXTRACT_* environment variables.
    """
    asyncio.run(
        run_main(
            service_url=service_url,
            subscription_id=subscription_id,
            resource_group=resource_group,
            service_name=service_name,
            output_dir=output_dir,
            configuration_path=configuration_path,
            max_concurrency=max_concurrency,
            log_level=log_level,
        )
    )


@cli.command()
def kinds() -> None:
    """Print the resource graph, with each kind's configuration key."""
    graph = default_graph()
    for root in graph.ordered(graph.roots()):
        _echo_kind(graph, root, depth=0)


def _echo_kind(graph: ResourceGraph, kind: ResourceKind, depth: int) -> None:
    click.echo(f"{'  ' * depth}{kind.plural}  ({kind.label})")
    for successor in graph.ordered(graph.successors(kind)):
        _echo_kind(graph, successor, depth + 1)
