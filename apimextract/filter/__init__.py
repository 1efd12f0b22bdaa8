"""Configuration-driven inclusion filter.

Submodules:
    configuration  -- Loading and validation of the configuration document.
    inclusion      -- Tri-state verdict per (kind, name, ancestor path).
"""

from apimextract.filter.inclusion import Inclusion, InclusionFilter

__all__ = ["Inclusion", "InclusionFilter"]
