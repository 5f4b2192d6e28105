"""
Seed-file loading for the catalog: destinations and snowbird destinations
from CSV, collections from JSON. All writes are upserts, so re-seeding is
safe and never touches enriched narrative columns.
"""

import json
import logging
from typing import Any, Dict, List

import pandas as pd

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["name", "country", "region"]


def _require_columns(df: pd.DataFrame, required: List[str], source: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{source} is missing required columns: {missing}")


def _value(row, column, default=None):
    if column not in row or pd.isna(row[column]):
        return default
    value = row[column]
    if isinstance(value, str):
        return value.strip()
    # numpy scalars aren't adaptable by psycopg2
    return value.item() if hasattr(value, "item") else value


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def read_csv(path: str, required: List[str] = REQUIRED_COLUMNS) -> pd.DataFrame:
    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    _require_columns(df, required, path)
    before = len(df)
    df = df.dropna(subset=required)
    if len(df) < before:
        logger.warning(f"{path}: dropped {before - len(df)} rows with blank {required}")
    return df


def seed_destinations(store, df: pd.DataFrame) -> Dict[str, int]:
    """Upsert regions, then destinations; returns counts."""
    regions = sorted({str(r).strip() for r in df["region"]})
    region_map = store.upsert_regions([{"name": name} for name in regions])

    destinations = []
    for _, row in df.iterrows():
        destinations.append({
            "name": _value(row, "name"),
            "country": _value(row, "country"),
            "region_id": region_map[_value(row, "region")],
            "description": _value(row, "description"),
            "image_url": _value(row, "image_url"),
            "featured": _flag(_value(row, "featured", False)),
            "rating": str(_value(row, "rating", "0")),
        })
    destination_map = store.upsert_destinations(destinations)
    logger.info(f"Seeded {len(region_map)} regions and {len(destination_map)} destinations")
    return {"regions": len(region_map), "destinations": len(destination_map)}


def seed_snowbird(store, df: pd.DataFrame) -> int:
    rows = [
        {
            "name": _value(row, "name"),
            "country": _value(row, "country"),
            "region": _value(row, "region"),
            "image_url": _value(row, "image_url"),
            "avg_winter_temp": _value(row, "avg_winter_temp"),
            "cost_comparison": _value(row, "cost_comparison"),
        }
        for _, row in df.iterrows()
    ]
    count = store.upsert_snowbird_destinations(rows)
    logger.info(f"Seeded {count} snowbird destinations")
    return count


def read_collections(path: str) -> List[Dict[str, Any]]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    collections = data.get("collections", []) if isinstance(data, dict) else data
    for c in collections:
        if not c.get("name") or not c.get("slug"):
            raise ValueError(f"{path}: every collection needs a name and a slug")
    return collections


def seed_collections(store, collections: List[Dict[str, Any]]) -> Dict[str, int]:
    totals = {"collections": 0, "attached": 0, "missing": 0}
    for c in collections:
        result = store.upsert_collection(
            {
                "name": c["name"],
                "slug": c["slug"],
                "description": c.get("description") or "",
                "image_url": c.get("image_url") or "",
                "theme_color": c.get("theme_color") or "#1f6feb",
                "icon": c.get("icon") or "globe",
                "featured": _flag(c.get("featured", False)),
            },
            [{"name": d["name"], "country": d["country"]} for d in c.get("destinations", [])],
        )
        totals["collections"] += 1
        totals["attached"] += result["attached"]
        totals["missing"] += result["missing"]
    logger.info(
        f"Seeded {totals['collections']} collections "
        f"({totals['attached']} items attached, {totals['missing']} destinations not found)"
    )
    return totals
