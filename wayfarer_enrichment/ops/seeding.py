"""
Seeding operations for loading catalog reference data from local files.
"""

import os
from typing import Any, Dict, List

import pandas as pd

from dagster import (
    op,
    In,
    Out,
    OpExecutionContext,
    get_dagster_logger,
    Field,
    String,
    AssetMaterialization,
)

from wayfarer_enrichment import seeding
from wayfarer_enrichment.resources import DatabaseResource


@op(
    description="Load a catalog CSV (destinations or snowbird destinations)",
    out=Out(pd.DataFrame, description="Seed rows"),
    config_schema={
        "path": Field(String, description="Path to the CSV file"),
    },
)
def load_seed_csv(context: OpExecutionContext) -> pd.DataFrame:
    logger = get_dagster_logger()

    path = context.op_config["path"]
    logger.info(f"Loading seed rows from {path}")

    try:
        df = seeding.read_csv(path)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load seed CSV: {str(e)}")
        raise

    logger.info(f"Loaded {len(df)} seed rows")
    return df


@op(
    description="Upsert regions and destinations",
    ins={"df": In(pd.DataFrame)},
    out=Out(Dict[str, int], description="Counts of seeded regions and destinations"),
)
def upsert_catalog_destinations(context: OpExecutionContext, database: DatabaseResource, df: pd.DataFrame) -> Dict[str, int]:
    store = database.get_store()
    store.ensure_schema()
    counts = seeding.seed_destinations(store, df)

    context.log_event(
        AssetMaterialization(
            asset_key=["catalog", "destinations"],
            description="Seeded regions and destinations",
            metadata=counts,
        )
    )
    return counts


@op(
    description="Upsert snowbird destinations",
    ins={"df": In(pd.DataFrame)},
    out=Out(int, description="Number of snowbird rows upserted"),
)
def upsert_snowbird_destinations(context: OpExecutionContext, database: DatabaseResource, df: pd.DataFrame) -> int:
    store = database.get_store()
    store.ensure_schema()
    count = seeding.seed_snowbird(store, df)

    context.log_event(
        AssetMaterialization(
            asset_key=["catalog", "snowbird_destinations"],
            description="Seeded snowbird destinations",
            metadata={"rows": count},
        )
    )
    return count


@op(
    description="Load collections and their member destinations from JSON",
    out=Out(List[Dict[str, Any]], description="Collection definitions"),
    config_schema={
        "path": Field(
            String,
            description="Path to the collections JSON file",
            default_value=os.getenv("WAYFARER_COLLECTIONS_PATH", "seeds/collections.json"),
        ),
    },
)
def load_collections_json(context: OpExecutionContext) -> List[Dict[str, Any]]:
    logger = get_dagster_logger()

    path = context.op_config["path"]
    collections = seeding.read_collections(path)
    logger.info(f"Loaded {len(collections)} collections from {path}")
    return collections


@op(
    description="Upsert collections and attach member destinations",
    ins={"collections": In(List[Dict[str, Any]])},
    out=Out(Dict[str, int], description="Counts of collections and attached items"),
)
def upsert_collections(
    context: OpExecutionContext,
    database: DatabaseResource,
    collections: List[Dict[str, Any]],
) -> Dict[str, int]:
    logger = get_dagster_logger()

    store = database.get_store()
    store.ensure_schema()
    totals = seeding.seed_collections(store, collections)
    if totals["missing"]:
        logger.warning(f"{totals['missing']} collection members reference unknown destinations; seed destinations first")

    context.log_event(
        AssetMaterialization(
            asset_key=["catalog", "collections"],
            description="Seeded collections",
            metadata=totals,
        )
    )
    return totals
