"""Builders, converters and lookups for Ray resources on Kubernetes, with a configuration command line."""

__version__ = "0.1.0"