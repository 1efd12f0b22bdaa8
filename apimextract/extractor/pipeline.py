"""List -> should-extract -> write -> recurse, over the resource graph.

Every sibling instance and every successor kind runs as its own task inside
an ``asyncio.TaskGroup``.  The first failure cancels the rest of the run and
is re-raised as a single ExtractionFailedError naming the failing resource;
there is no partial success.  Cancelling the run task (SIGINT/SIGTERM)
reaches every branch at its next network or file operation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterable
from dataclasses import dataclass, replace
from typing import Any

import structlog

from apimextract.client.listing import ResourceLister
from apimextract.errors import ExtractionFailedError
from apimextract.filter.inclusion import Inclusion, InclusionFilter
from apimextract.graph.kinds import GROUP, SUBSCRIPTION
from apimextract.graph.resource_graph import ResourceGraph
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import Composite, ResourceKind, ResourceName
from apimextract.observability.metrics import resources_listed_total, resources_skipped_total
from apimextract.writer.filesystem import ResourceWriter

_log = structlog.get_logger(component="extractor.pipeline")


@dataclass(frozen=True)
class ExtractionContext:
    """Everything one branch of the walk needs, passed down explicitly."""

    graph: ResourceGraph
    lister: ResourceLister
    inclusion: InclusionFilter
    writer: ResourceWriter
    ancestors: AncestorPath = AncestorPath()

    def descend(self, kind: ResourceKind, name: ResourceName) -> ExtractionContext:
        return replace(self, ancestors=self.ancestors.append(kind, name))


async def run_extraction(context: ExtractionContext) -> None:
    """Extract every root kind (and, recursively, everything below it)."""
    await _fan_out(extract_kind(context, kind) for kind in context.graph.ordered(context.graph.roots()))


async def extract_kind(context: ExtractionContext, kind: ResourceKind) -> None:
    """Extract all instances of *kind* under ``context.ancestors``."""
    with structlog.contextvars.bound_contextvars(kind=kind.key, ancestors=str(context.ancestors)):
        try:
            if not await context.lister.is_supported(kind, context.ancestors):
                resources_skipped_total.labels(kind=kind.key, reason="unsupported").inc()
                return

            seen: set[ResourceName] = set()
            async with asyncio.TaskGroup() as group:
                async for name, dto in context.lister.list(kind, context.ancestors):
                    resources_listed_total.labels(kind=kind.key).inc()
                    if name in seen:
                        _log.debug("duplicate listing entry ignored", name=str(name))
                        continue
                    seen.add(name)
                    group.create_task(extract_instance(context, kind, name, dto))
        except ExtractionFailedError:
            raise
        except BaseExceptionGroup as group_error:
            raise _failure(_first_leaf(group_error), kind, context.ancestors, None)
        except Exception as exc:
            raise _failure(exc, kind, context.ancestors, None)


async def extract_instance(
    context: ExtractionContext,
    kind: ResourceKind,
    name: ResourceName,
    dto: dict[str, Any] | None,
) -> None:
    """Decide, write, then recurse into the successors of one instance."""
    with structlog.contextvars.bound_contextvars(kind=kind.key, name=str(name), ancestors=str(context.ancestors)):
        try:
            if not await should_extract(context, kind, name, dto):
                return

            await context.writer.write(kind, name, dto, context.ancestors)

            successors = context.graph.successors(kind)
            if successors:
                child = context.descend(kind, name)
                await _fan_out(extract_kind(child, successor) for successor in context.graph.ordered(successors))
        except ExtractionFailedError:
            raise
        except Exception as exc:
            raise _failure(exc, kind, context.ancestors, name)


async def should_extract(
    context: ExtractionContext,
    kind: ResourceKind,
    name: ResourceName,
    dto: dict[str, Any] | None,
) -> bool:
    """Protected instances never; otherwise whatever the filter says, UNCONFIGURED meaning yes."""
    if kind.is_protected(name):
        if kind is SUBSCRIPTION:
            _log.warning(f"Skipping master subscription '{name}'{context.ancestors.to_log_string()}.")
        elif kind is GROUP:
            _log.warning(f"Skipping system group '{name}'{context.ancestors.to_log_string()}.")
        else:
            _log.warning(f"Skipping protected {kind.label} '{name}'{context.ancestors.to_log_string()}.")
        resources_skipped_total.labels(kind=kind.key, reason="protected").inc()
        return False

    candidate = _filter_name(context, kind, name, dto)
    verdict = await context.inclusion.is_included(kind, candidate, context.ancestors)
    match verdict:
        case Inclusion.EXCLUDED:
            _log.info(
                f"Skipping {kind.label} '{candidate}'{context.ancestors.to_log_string()} as it is not in configuration."
            )
            resources_skipped_total.labels(kind=kind.key, reason="not_configured").inc()
            return False
        case Inclusion.INCLUDED | Inclusion.UNCONFIGURED:
            return True


def _filter_name(
    context: ExtractionContext, kind: ResourceKind, name: ResourceName, dto: dict[str, Any] | None
) -> ResourceName:
    # Links are configured by the name of the resource they point at.
    match kind:
        case ResourceKind(composite=Composite(link_property=str())) if dto is not None:
            return ResourceName(context.writer.instance_directory_name(kind, name, dto))
        case _:
            return name


async def _fan_out(coroutines: Iterable[Coroutine[Any, Any, None]]) -> None:
    """Run *coroutines* concurrently; the first failure cancels the others and is re-raised."""
    tasks: list[Coroutine[Any, Any, None]] = list(coroutines)
    if not tasks:
        return
    try:
        async with asyncio.TaskGroup() as group:
            for coroutine in tasks:
                group.create_task(coroutine)
    except BaseExceptionGroup as group_error:
        raise _first_leaf(group_error)


def _first_leaf(group_error: BaseExceptionGroup[Any]) -> BaseException:
    error: BaseException = group_error
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]
    return error


def _failure(
    exc: BaseException, kind: ResourceKind, ancestors: AncestorPath, name: ResourceName | None
) -> BaseException:
    """Attach the resource path to *exc* unless it already carries one."""
    if isinstance(exc, ExtractionFailedError) or not isinstance(exc, Exception):
        return exc
    failure = ExtractionFailedError(kind, ancestors, name, exc)
    failure.__cause__ = exc
    failure.__suppress_context__ = True
    return failure
