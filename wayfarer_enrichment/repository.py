"""
Dagster code location for the Wayfarer enrichment pipeline.
"""

from dagster import Definitions, load_assets_from_modules, load_asset_checks_from_modules

from wayfarer_enrichment import assets
from wayfarer_enrichment.jobs import (
    ENRICHMENT_JOBS,
    seed_destinations_pipeline,
    seed_snowbird_pipeline,
    seed_collections_pipeline,
)
from wayfarer_enrichment.sensors import (
    narrative_to_itinerary,
    itinerary_to_experiences,
)
from wayfarer_enrichment.resources import (
    database_resource_from_env,
    generation_resource_from_env,
)


resources_defs = {
    "database": database_resource_from_env(),
    "generation": generation_resource_from_env(),
}

defs = Definitions(
    assets=load_assets_from_modules([assets]),
    asset_checks=load_asset_checks_from_modules([assets]),
    jobs=[
        *ENRICHMENT_JOBS,
        seed_destinations_pipeline,
        seed_snowbird_pipeline,
        seed_collections_pipeline,
    ],
    sensors=[
        narrative_to_itinerary,
        itinerary_to_experiences,
    ],
    resources=resources_defs,
)
