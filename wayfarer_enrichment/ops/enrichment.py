"""
Enrichment operations: prepare the catalog store, then run one bounded
enrichment batch for a single entity type.
"""

from typing import Any, Dict

from dagster import (
    op,
    In,
    Out,
    OpExecutionContext,
    get_dagster_logger,
    AssetMaterialization,
    Failure,
)

from wayfarer_enrichment.config import EnrichmentConfig
from wayfarer_enrichment.errors import StoreUnavailable
from wayfarer_enrichment.pipeline import FAILED, EnrichmentPipeline
from wayfarer_enrichment.resources import DatabaseResource, GenerationResource
from wayfarer_enrichment.tasks import get_task


@op(
    description="Verify the catalog database is reachable and create missing tables",
    out=Out(Dict[str, Any], description="Row counts per table before enrichment"),
)
def prepare_entity_store(context: OpExecutionContext, database: DatabaseResource) -> Dict[str, Any]:
    logger = get_dagster_logger()

    store = database.get_store()
    try:
        store.ping()
        store.ensure_schema()
        stats = store.table_stats()
    except StoreUnavailable as e:
        logger.error(f"Catalog database unavailable: {str(e)}")
        raise Failure(description=f"Catalog database unavailable: {e}") from e

    logger.info(f"Catalog ready: {stats}")
    return stats


@op(
    description="Run one bounded, resumable enrichment batch",
    ins={"store_stats": In(Dict[str, Any])},
    out=Out(Dict[str, Any], description="Run report"),
)
def enrich_batch(
    context: OpExecutionContext,
    config: EnrichmentConfig,
    database: DatabaseResource,
    generation: GenerationResource,
    store_stats: Dict[str, Any],
) -> Dict[str, Any]:
    """Select incomplete entities, generate content for each and persist it."""
    logger = get_dagster_logger()

    task = get_task(config.entity_type)
    store = database.get_store(claim_ttl_seconds=config.claim_ttl_seconds)
    # Dry runs never reach the provider, so they don't need credentials.
    client = None if config.dry_run else generation.get_client()

    pipeline = EnrichmentPipeline(task, store, client, config, run_id=context.run_id)
    try:
        report = pipeline.run()
    except StoreUnavailable as e:
        logger.error(f"Enrichment run {context.run_id} aborted: {str(e)}")
        raise

    if report.failed:
        failed = [o.label for o in report.outcomes if o.status == FAILED]
        logger.warning(f"{report.failed} entities failed {report.failures_by_kind}: {', '.join(failed)}")

    context.log_event(
        AssetMaterialization(
            asset_key=["catalog", f"{task.name}_enrichment"],
            description=report.summary(),
            metadata={
                "entity_type": task.name,
                "selected": report.selected,
                "succeeded": report.succeeded,
                "failed": report.failed,
                "skipped": report.skipped,
                "planned": report.planned,
                "threshold": report.threshold,
                "dry_run": report.dry_run,
                "stop_reason": report.stop_reason or "",
                "elapsed_seconds": round(report.elapsed_seconds, 2),
            },
        )
    )

    return report.to_dict()
