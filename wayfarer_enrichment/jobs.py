import os

from dagster import job

from wayfarer_enrichment.config import default_batch_size
from wayfarer_enrichment.ops import (
    # Enrichment
    prepare_entity_store,
    enrich_batch,
    # Seeding
    load_seed_csv,
    upsert_catalog_destinations,
    upsert_snowbird_destinations,
    load_collections_json,
    upsert_collections,
)


def enrichment_job(entity_type: str, description: str):
    """One job per entity type; the op config defaults can be overridden per run in the launchpad."""

    @job(
        name=f"{entity_type}_enrichment",
        description=description,
        config={
            "ops": {
                "enrich_batch": {
                    "config": {
                        "entity_type": entity_type,
                        "batch_size": default_batch_size(),
                    }
                },
            }
        },
    )
    def _enrichment_job():
        enrich_batch(prepare_entity_store())

    return _enrichment_job


destination_narrative_enrichment = enrichment_job(
    "destination_narrative",
    "Fill short or missing destination descriptions, tips, cuisine, geography and culture",
)
immersive_description_enrichment = enrichment_job(
    "immersive_description",
    "Write cultural immersion descriptions for destinations that lack one",
)
itinerary_enrichment = enrichment_job(
    "itinerary",
    "Create missing itineraries and rebuild ones whose days don't match their duration",
)
experiences_enrichment = enrichment_job(
    "experiences",
    "Top destinations up to three themed experiences",
)
collection_items_enrichment = enrichment_job(
    "collection_items",
    "Annotate collection items with a highlight and an insider note",
)
snowbird_enrichment = enrichment_job(
    "snowbird",
    "Complete snowbird relocation guides",
)

ENRICHMENT_JOBS = [
    destination_narrative_enrichment,
    immersive_description_enrichment,
    itinerary_enrichment,
    experiences_enrichment,
    collection_items_enrichment,
    snowbird_enrichment,
]


@job(
    description="Seed pipeline: load regions and destinations from CSV",
    config={
        "ops": {
            "load_seed_csv": {
                "config": {
                    "path": os.getenv("WAYFARER_DESTINATIONS_PATH", "seeds/destinations.csv"),
                }
            },
        }
    },
)
def seed_destinations_pipeline():
    """
    1. Load the destinations CSV
    2. Upsert regions, then destinations (narrative columns untouched)
    """
    upsert_catalog_destinations(load_seed_csv())


@job(
    description="Seed pipeline: load snowbird destinations from CSV",
    config={
        "ops": {
            "load_seed_csv": {
                "config": {
                    "path": os.getenv("WAYFARER_SNOWBIRD_PATH", "seeds/snowbird_destinations.csv"),
                }
            },
        }
    },
)
def seed_snowbird_pipeline():
    upsert_snowbird_destinations(load_seed_csv())


@job(description="Seed pipeline: load collections and attach member destinations from JSON")
def seed_collections_pipeline():
    upsert_collections(load_collections_json())
