"""Extraction pipeline.

Submodules:
    pipeline  -- ExtractionContext and the recursive list/filter/write walk.
"""

from apimextract.extractor.pipeline import ExtractionContext, run_extraction

__all__ = ["ExtractionContext", "run_extraction"]
