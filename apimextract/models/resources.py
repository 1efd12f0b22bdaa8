"""Resource kinds and resource names.

A ResourceKind is one variant of a closed catalog (see apimextract.graph.kinds).
Its capabilities are carried as optional sub-structs; ``capabilities`` derives
the matching Capability flag set so callers can either ``match`` on the
sub-structs or test flags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Flag, auto

from apimextract.errors import GraphError, InvalidResourceNameError

REVISION_SEPARATOR = ";rev="


@dataclass(frozen=True, eq=False)
class ResourceName:
    """Name of a resource instance, unique within its collection.

    The management service treats identifiers case-insensitively, so equality
    and hashing ignore case.  ``str()`` returns the original spelling.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise InvalidResourceNameError(f"Resource name cannot be null or whitespace, got {self.value!r}")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ResourceName):
            return self.value.casefold() == other.value.casefold()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value.casefold())

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"ResourceName({self.value!r})"


def revision_root(name: ResourceName) -> ResourceName | None:
    """Return the unversioned root of *name*, or None if it is not a revision.

    ``orders;rev=2`` -> ``orders``.  ``orders`` -> None.
    """
    root, separator, revision = name.value.partition(REVISION_SEPARATOR)
    if not separator or not root.strip() or not revision.isdigit():
        return None
    return ResourceName(root)


class Capability(Flag):
    """Capabilities a resource kind may carry."""

    SIMPLE = auto()
    NAMED = auto()
    CHILD = auto()
    COMPOSITE = auto()
    DIRECTORY = auto()
    DTO = auto()
    INFORMATION_FILE = auto()
    POLICY = auto()


@dataclass(frozen=True)
class Directory:
    """The kind persists one sub-directory per instance under *collection_name*."""

    collection_name: str


@dataclass(frozen=True)
class DtoShape:
    """Shape of the structured payload persisted for a kind.

    properties:                keys kept from the remote ``properties`` object,
                               in output order; None keeps every key.
    references:                properties holding absolute resource ids that are
                               rewritten to service-relative ids.
    information_file_excludes: properties left out of the information file
                               (they are persisted elsewhere, e.g. policy XML).
    """

    properties: tuple[str, ...] | None = None
    references: tuple[str, ...] = ()
    information_file_excludes: tuple[str, ...] = ()


@dataclass(frozen=True, eq=False)
class Composite:
    """Two kinds whose combination forms an association resource.

    A *link* composite names the DTO property (``link_property``) that holds
    the id of the secondary resource.  A *direct* composite has none.
    """

    primary: ResourceKind
    secondary: ResourceKind
    link_property: str | None = None

    @property
    def is_link(self) -> bool:
        return self.link_property is not None


@dataclass(frozen=True, eq=False)
class ResourceKind:
    """One kind of configuration entity of the management service.

    Kinds compare by identity.  A kind is either a child (``parent`` set),
    a composite (``composite`` set), or top-level; never both.
    """

    key: str
    singular: str
    plural: str
    label: str
    collection_uri_path: str
    directory: Directory | None = None
    dto: DtoShape | None = None
    information_file: str | None = None
    is_policy: bool = False
    parent: ResourceKind | None = None
    composite: Composite | None = None
    supports_revisions: bool = False
    protected_names: frozenset[ResourceName] = field(default_factory=frozenset)
    depends_on: tuple[ResourceKind, ...] = ()

    def __post_init__(self) -> None:
        if self.parent is not None and self.composite is not None:
            raise GraphError(f"Kind '{self.key}' cannot be both a child and a composite")
        if self.information_file is not None and (self.directory is None or self.dto is None):
            raise GraphError(f"Kind '{self.key}' has an information file but no directory or DTO")
        if self.is_policy and self.dto is None:
            raise GraphError(f"Policy kind '{self.key}' must carry a DTO")
        if self.composite is not None and self.composite.is_link and self.dto is None:
            raise GraphError(f"Link kind '{self.key}' must carry a DTO")

    def __repr__(self) -> str:
        return f"ResourceKind({self.key})"

    @property
    def capabilities(self) -> Capability:
        caps = Capability.SIMPLE | Capability.NAMED
        if self.parent is not None:
            caps |= Capability.CHILD
        if self.composite is not None:
            caps |= Capability.COMPOSITE
        if self.directory is not None:
            caps |= Capability.DIRECTORY
        if self.dto is not None:
            caps |= Capability.DTO
        if self.information_file is not None:
            caps |= Capability.INFORMATION_FILE
        if self.is_policy:
            caps |= Capability.POLICY
        return caps

    @property
    def traversal_predecessor(self) -> ResourceKind | None:
        """The kind whose instances this kind is listed under, if any."""
        if self.parent is not None:
            return self.parent
        if self.composite is not None:
            return self.composite.primary
        return None

    @property
    def dependency_predecessors(self) -> tuple[ResourceKind, ...]:
        """Kinds that must exist before this one can be recreated."""
        predecessors: list[ResourceKind] = []
        if self.parent is not None:
            predecessors.append(self.parent)
        if self.composite is not None:
            predecessors.extend((self.composite.primary, self.composite.secondary))
        predecessors.extend(self.depends_on)
        return tuple(dict.fromkeys(predecessors))

    def is_protected(self, name: ResourceName) -> bool:
        return name in self.protected_names
