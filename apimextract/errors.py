"""Exception hierarchy for apimextract.

ExtractorError           -- base for every error raised by this package.
ValidationError          -- setup problems (bad names, malformed configuration).
GraphError               -- programmer errors in the static resource graph.
RemoteRequestError       -- a management API request failed after retries.
ExtractionFailedError    -- a pipeline branch failed; carries the resource path.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apimextract.models.ancestors import AncestorPath
    from apimextract.models.resources import ResourceKind, ResourceName


class ExtractorError(Exception):
    """Base class for all apimextract errors."""


class ValidationError(ExtractorError):
    """Raised when input fails validation.  Never retried."""


class InvalidResourceNameError(ValidationError):
    """Raised when a resource name is empty or whitespace-only."""


class ConfigurationError(ValidationError):
    """Raised for a malformed configuration document or missing settings."""


class GraphError(ExtractorError):
    """Raised for an inconsistent resource graph or an unknown kind."""


class RemoteRequestError(ExtractorError):
    """Raised when a request to the management API fails for good."""

    def __init__(self, uri: str, status_code: int | None, content: str = "") -> None:
        if status_code is None:
            message = f"HTTP request to URI {uri} failed. {content}"
        else:
            message = f"HTTP request to URI {uri} failed with status code {status_code}. Content is '{content}'."
        super().__init__(message)
        self.uri = uri
        self.status_code = status_code
        self.content = content


class ExtractionFailedError(ExtractorError):
    """Raised when extracting a resource (or a collection of one kind) fails.

    ``name`` is None when the failure happened while listing the collection.
    """

    def __init__(
        self,
        kind: ResourceKind,
        ancestors: AncestorPath,
        name: ResourceName | None,
        cause: BaseException,
    ) -> None:
        self.kind = kind
        self.ancestors = ancestors
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to extract {self.location}: {cause}")

    @property
    def location(self) -> str:
        """Human-readable resource path, e.g. ``diagnostic 'd1' in api 'echo'``."""
        if self.name is None:
            return f"{self.kind.plural}{self.ancestors.to_log_string()}"
        return f"{self.kind.singular} '{self.name}'{self.ancestors.to_log_string()}"
