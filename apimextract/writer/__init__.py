"""Output tree writer.

Submodules:
    filesystem  -- Paths, DTO normalization and file writes.
"""

from apimextract.writer.filesystem import ResourceWriter

__all__ = ["ResourceWriter"]
