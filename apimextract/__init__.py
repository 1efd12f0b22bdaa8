"""apimextract: export an API management service's configuration as a file tree."""

__version__ = "0.1.0"
