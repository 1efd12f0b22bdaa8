"""Click command line entry points."""
