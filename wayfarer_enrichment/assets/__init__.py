"""
Dagster assets for the catalog tables.
"""

from wayfarer_enrichment.assets.tables import (
    destinations_table,
    itineraries_table,
    enhanced_experiences_table,
    collections_table,
    snowbird_destinations_table,
)

from wayfarer_enrichment.assets.checks import (
    check_itinerary_days_match_duration,
    check_experience_coverage,
    check_short_descriptions,
    check_collection_items_annotated,
    check_no_stale_claims,
)

__all__ = [
    # Table assets
    "destinations_table",
    "itineraries_table",
    "enhanced_experiences_table",
    "collections_table",
    "snowbird_destinations_table",
    # Asset checks
    "check_itinerary_days_match_duration",
    "check_experience_coverage",
    "check_short_descriptions",
    "check_collection_items_annotated",
    "check_no_stale_claims",
]
