"""
TenderWatch - Centralized tender scraper and cache orchestrator.

Periodically scrapes tender listings from university campus websites,
caches the normalized results, and serves them to API consumers with
graceful fallback when a source is unreachable.
"""

__version__ = "0.1.0"
__app_name__ = "tenderwatch"
