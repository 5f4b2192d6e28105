"""
Dagster ops for the enrichment pipeline.
"""

from wayfarer_enrichment.ops.enrichment import (
    prepare_entity_store,
    enrich_batch,
)
from wayfarer_enrichment.ops.seeding import (
    load_seed_csv,
    upsert_catalog_destinations,
    upsert_snowbird_destinations,
    load_collections_json,
    upsert_collections,
)

__all__ = [
    # Enrichment
    "prepare_entity_store",
    "enrich_batch",
    # Seeding
    "load_seed_csv",
    "upsert_catalog_destinations",
    "upsert_snowbird_destinations",
    "load_collections_json",
    "upsert_collections",
]
