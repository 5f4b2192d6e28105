"""
Asset definitions for the catalog tables.

These assets represent the actual tables in PostgreSQL and provide
observability and coverage metadata: how much of the catalog is enriched.
"""

from typing import Any, Dict

from dagster import asset, Output, AssetExecutionContext

from wayfarer_enrichment.resources import DatabaseResource


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


@asset(
    key_prefix=["catalog"],
    description="Destinations with their narrative fields",
    compute_kind="postgres",
    group_name="catalog_tables",
)
def destinations_table(context: AssetExecutionContext, database: DatabaseResource) -> Output[Dict[str, Any]]:
    """
    Asset representing the destinations table.

    Populated by the seed jobs; narrative columns are filled by the
    destination_narrative and immersive_description enrichments.
    """
    stats = database.get_store().table_stats()["destinations"]
    context.log.info(f"Destinations table stats: {stats}")

    return Output(
        value=stats,
        metadata={
            "total_destinations": stats["total"],
            "regions": stats["regions"],
            "described": stats["described"],
            "described_percent": _percent(stats["described"], stats["total"]),
            "immersive_percent": _percent(stats["immersive"], stats["total"]),
        },
    )


@asset(
    key_prefix=["catalog"],
    description="Itineraries and their day plans",
    compute_kind="postgres",
    group_name="catalog_tables",
    deps=[destinations_table],
)
def itineraries_table(context: AssetExecutionContext, database: DatabaseResource) -> Output[Dict[str, Any]]:
    stats = database.get_store().table_stats()
    itineraries = stats["itineraries"]
    total_destinations = stats["destinations"]["total"]

    return Output(
        value=itineraries,
        metadata={
            "total_itineraries": itineraries["total"],
            "total_days": itineraries["days"],
            "destination_coverage_percent": _percent(itineraries["total"], total_destinations),
        },
    )


@asset(
    key_prefix=["catalog"],
    description="Themed enhanced experiences per destination",
    compute_kind="postgres",
    group_name="catalog_tables",
    deps=[destinations_table],
)
def enhanced_experiences_table(context: AssetExecutionContext, database: DatabaseResource) -> Output[Dict[str, Any]]:
    stats = database.get_store().table_stats()
    experiences = stats["enhanced_experiences"]

    return Output(
        value=experiences,
        metadata={
            "total_experiences": experiences["total"],
            "destinations_covered": experiences["destinations_covered"],
            "destination_coverage_percent": _percent(
                experiences["destinations_covered"], stats["destinations"]["total"]
            ),
        },
    )


@asset(
    key_prefix=["catalog"],
    description="Curated collections and their annotated member destinations",
    compute_kind="postgres",
    group_name="catalog_tables",
    deps=[destinations_table],
)
def collections_table(context: AssetExecutionContext, database: DatabaseResource) -> Output[Dict[str, Any]]:
    collections = database.get_store().table_stats()["collections"]

    return Output(
        value=collections,
        metadata={
            "total_collections": collections["total"],
            "items": collections["items"],
            "annotated_percent": _percent(collections["annotated_items"], collections["items"]),
        },
    )


@asset(
    key_prefix=["catalog"],
    description="Snowbird relocation guides",
    compute_kind="postgres",
    group_name="catalog_tables",
)
def snowbird_destinations_table(context: AssetExecutionContext, database: DatabaseResource) -> Output[Dict[str, Any]]:
    snowbird = database.get_store().table_stats()["snowbird_destinations"]
    return Output(value=snowbird, metadata={"total_snowbird_destinations": snowbird["total"]})
