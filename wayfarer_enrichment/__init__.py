"""
Wayfarer content enrichment: resumable, rate-limit-aware backfill of travel
catalog content with generated text.
"""

__version__ = "0.1.0"
