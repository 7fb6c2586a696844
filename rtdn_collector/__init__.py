"""Google Play RTDN collector and subscription enrichment service."""

__version__ = "0.1.0"
