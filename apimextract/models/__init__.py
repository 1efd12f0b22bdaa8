"""Core data structures for apimextract."""

from apimextract.models.ancestors import Ancestor, AncestorPath
from apimextract.models.config import ExtractorConfig, HttpConfig, LogConfig, ServiceConfig
from apimextract.models.resources import (
    Capability,
    Composite,
    Directory,
    DtoShape,
    ResourceKind,
    ResourceName,
    revision_root,
)

__all__ = [
    "Ancestor",
    "AncestorPath",
    "Capability",
    "Composite",
    "Directory",
    "DtoShape",
    "ExtractorConfig",
    "HttpConfig",
    "LogConfig",
    "ResourceKind",
    "ResourceName",
    "ServiceConfig",
    "revision_root",
]
