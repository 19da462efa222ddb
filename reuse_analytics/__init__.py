"""
Reusable Packaging Analytics

Order ingestion and opt-in analytics pipeline for a reusable-packaging program.
"""

__version__ = "1.0.0"
