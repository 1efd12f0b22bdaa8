"""Writes extracted resources into the output directory tree.

Layout, for a service exported to ``out/``::

    out/policy.xml                                         service policy
    out/apis/echo-api/apiInformation.json                  information file
    out/apis/echo-api/policy.xml                           child policy
    out/apis/echo-api/operations/get/policy.xml
    out/products/starter/apis/echo-api/productApiInformation.json
    out/policy fragments/cors/policy.xml                   fragment policy

Files are overwritten, never appended to, and JSON is rendered
deterministically so repeated runs produce identical bytes.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog

from apimextract.errors import GraphError, ValidationError
from apimextract.models.ancestors import AncestorPath
from apimextract.models.resources import Capability, Composite, Directory, ResourceKind, ResourceName
from apimextract.observability.metrics import resources_written_total

_log = structlog.get_logger(component="writer.filesystem")

_SERVICE_MARKER = "microsoft.apimanagement/service/"

POLICY_FILE_NAME = "policy.xml"


def relative_id(resource_id: str) -> str:
    """Strip the subscription, resource group and service from an ARM resource id.

    ``/subscriptions/s/resourceGroups/g/providers/Microsoft.ApiManagement/service/svc/loggers/ai``
    becomes ``/loggers/ai``.  Ids that are already relative are returned unchanged.
    """
    index = resource_id.casefold().find(_SERVICE_MARKER)
    if index < 0:
        return resource_id
    remainder = resource_id[index + len(_SERVICE_MARKER) :]
    _service, _, path = remainder.partition("/")
    return f"/{path}"


def render_json(content: dict[str, Any]) -> str:
    return json.dumps(content, indent=4, ensure_ascii=False) + "\n"


def normalize_dto(kind: ResourceKind, name: ResourceName, payload: dict[str, Any]) -> dict[str, Any]:
    """Reduce a remote payload to the kind's persisted shape.

    Keeps the declared properties in declared order, drops nulls and rewrites
    reference properties to service-relative ids.  Link resources also carry
    their own name.
    """
    shape = kind.dto
    if shape is None:
        raise GraphError(f"Kind '{kind.key}' has no DTO")

    source = payload.get("properties") or {}
    keys = shape.properties if shape.properties is not None else tuple(source)
    properties: dict[str, Any] = {}
    for key in keys:
        value = source.get(key)
        if value is None:
            continue
        if key in shape.references and isinstance(value, str):
            value = relative_id(value)
        properties[key] = value

    dto: dict[str, Any] = {}
    if kind.composite is not None and kind.composite.is_link:
        dto["name"] = str(name)
    if properties:
        dto["properties"] = properties
    return dto


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


class ResourceWriter:
    """Maps resources to paths under *output_dir* and writes their files."""

    def __init__(self, output_dir: Path) -> None:
        self._root = output_dir

    @property
    def output_dir(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def ancestors_directory(self, ancestors: AncestorPath) -> Path:
        """Directory of the innermost ancestor instance (the output root when empty)."""
        path = self._root
        for ancestor in ancestors:
            if ancestor.kind.directory is None:
                raise GraphError(f"Ancestor kind '{ancestor.kind.key}' has no directory")
            path = path / ancestor.kind.directory.collection_name / str(ancestor.name)
        return path

    def collection_directory(self, kind: ResourceKind, ancestors: AncestorPath) -> Path:
        if kind.directory is None:
            raise GraphError(f"Kind '{kind.key}' has no directory")
        return self.ancestors_directory(ancestors) / kind.directory.collection_name

    def instance_directory_name(self, kind: ResourceKind, name: ResourceName, dto: dict[str, Any]) -> str:
        """Directory name of an instance: its name, or the linked resource's name for links."""
        match kind:
            case ResourceKind(composite=Composite(link_property=str(link_property))):
                linked = (dto.get("properties") or {}).get(link_property)
                if not isinstance(linked, str) or not linked.strip("/"):
                    raise ValidationError(f"{kind.label} '{name}' has no '{link_property}' property")
                return linked.rstrip("/").rsplit("/", 1)[-1]
            case _:
                return str(name)

    def information_file_path(
        self, kind: ResourceKind, name: ResourceName, dto: dict[str, Any], ancestors: AncestorPath
    ) -> Path:
        if kind.information_file is None:
            raise GraphError(f"Kind '{kind.key}' has no information file")
        directory = self.collection_directory(kind, ancestors) / self.instance_directory_name(kind, name, dto)
        return directory / kind.information_file

    def policy_file_path(self, kind: ResourceKind, name: ResourceName, ancestors: AncestorPath) -> Path:
        match kind:
            case ResourceKind(is_policy=True, directory=Directory()):
                return self.collection_directory(kind, ancestors) / str(name) / POLICY_FILE_NAME
            case ResourceKind(is_policy=True):
                return self.ancestors_directory(ancestors) / f"{name}.xml"
            case _:
                raise GraphError(f"Kind '{kind.key}' is not a policy resource")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write(
        self,
        kind: ResourceKind,
        name: ResourceName,
        payload: dict[str, Any] | None,
        ancestors: AncestorPath,
    ) -> list[Path]:
        """Persist every file *kind* carries for one instance; returns the paths written."""
        capabilities = kind.capabilities
        if payload is None or Capability.DTO not in capabilities:
            return []

        written: list[Path] = []
        dto = normalize_dto(kind, name, payload)

        if Capability.INFORMATION_FILE in capabilities:
            path = self.information_file_path(kind, name, dto, ancestors)
            await asyncio.to_thread(_write_text, path, render_json(self._information_content(kind, dto)))
            resources_written_total.labels(kind=kind.key, file="information").inc()
            written.append(path)

        if Capability.POLICY in capabilities:
            path = self.policy_file_path(kind, name, ancestors)
            content = (payload.get("properties") or {}).get("value")
            if content is None:
                _log.warning("policy has no content", kind=kind.key, name=str(name))
                content = ""
            await asyncio.to_thread(_write_text, path, str(content))
            resources_written_total.labels(kind=kind.key, file="policy").inc()
            written.append(path)

        for path in written:
            _log.debug("file written", path=str(path))
        return written

    def _information_content(self, kind: ResourceKind, dto: dict[str, Any]) -> dict[str, Any]:
        assert kind.dto is not None
        excluded = kind.dto.information_file_excludes
        if not excluded or "properties" not in dto:
            return dto
        content = dict(dto)
        content["properties"] = {key: value for key, value in dto["properties"].items() if key not in excluded}
        return content
