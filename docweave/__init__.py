"""Cross-module API documentation aggregation with incremental generation."""

__version__ = "0.3.0"
