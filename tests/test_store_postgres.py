"""
EntityStore against a real PostgreSQL database.

Runs only when WAYFARER_TEST_DATABASE_URL points at a disposable database;
the catalog tables in it are dropped and recreated.
"""

import os
from urllib.parse import unquote, urlparse

import pytest

from wayfarer_enrichment.errors import ConstraintViolation
from wayfarer_enrichment.resources import DatabaseResource

TEST_DATABASE_URL = os.getenv("WAYFARER_TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(not TEST_DATABASE_URL, reason="WAYFARER_TEST_DATABASE_URL not set")

TABLES = [
    "enrichment_claims", "collection_items", "collections", "days", "itineraries",
    "enhanced_experiences", "snowbird_destinations", "destinations", "regions",
]


@pytest.fixture
def database():
    parsed = urlparse(TEST_DATABASE_URL)
    resource = DatabaseResource(
        host=parsed.hostname,
        port=parsed.port or 5432,
        database=parsed.path.lstrip("/"),
        user=unquote(parsed.username or ""),
        password=unquote(parsed.password or ""),
    )
    resource.open_pool()
    with resource.get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(f"DROP TABLE IF EXISTS {', '.join(TABLES)} CASCADE")
        conn.commit()
    yield resource
    resource.close()


@pytest.fixture
def store(database):
    store = database.get_store(claim_ttl_seconds=60)
    store.ensure_schema()
    return store


def seed_destination(store, name="Porto", country="Portugal", description=""):
    region_map = store.upsert_regions([{"name": "Europe"}])
    ids = store.upsert_destinations([{
        "name": name,
        "country": country,
        "region_id": region_map["Europe"],
        "description": description,
        "image_url": "",
        "featured": False,
        "rating": "4.5",
    }])
    return ids[f"{name}|{country}"]


def test_schema_is_idempotent(store):
    store.ensure_schema()
    assert store.table_stats()["destinations"]["total"] == 0


def test_missing_text_selection_and_update(store):
    did = seed_destination(store, description="Short.")
    seed_destination(store, "Ghent", "Belgium", description="x" * 300)

    rows = store.select_destinations_missing_text("destination_narrative", "description", 150, 10)
    assert [r["id"] for r in rows] == [did]

    store.update_destination_fields(did, {"description": "y" * 200, "cuisine": "Bacalhau"})
    assert store.select_destinations_missing_text("destination_narrative", "description", 150, 10) == []


def test_identity_columns_cannot_be_written(store):
    did = seed_destination(store)
    with pytest.raises(ValueError):
        store.update_destination_fields(did, {"name": "Oporto"})


def test_claims_exclude_and_expire(store):
    did = seed_destination(store)

    assert store.claim("destination_narrative", did, "run-a")
    assert not store.claim("destination_narrative", did, "run-b")
    assert store.select_destinations_missing_text("destination_narrative", "description", 150, 10) == []

    store.release("destination_narrative", did, "run-a")
    assert store.claim("destination_narrative", did, "run-b")


def test_itinerary_replacement_is_whole(store):
    did = seed_destination(store)
    days = [{"day_number": n, "title": f"Day {n}", "activities": ["Walk"]} for n in (1, 2, 3)]
    itinerary = {"title": "3 days", "duration": 3, "description": "Plan", "content": "Day 1"}

    iid = store.replace_itinerary(did, itinerary, days)
    again = store.replace_itinerary(did, itinerary, days[:2] + [{**days[2], "title": "New"}])

    assert iid == again
    assert store.table_stats()["itineraries"] == {"total": 1, "days": 3}
    assert store.select_itinerary_candidates("itinerary", 10) == []


def test_itinerary_with_a_day_gap_is_selected(store):
    did = seed_destination(store)
    days = [{"day_number": n, "title": f"Day {n}", "activities": []} for n in (1, 2, 4)]
    store.replace_itinerary(did, {"title": "3 days", "duration": 3, "description": "Plan", "content": ""}, days)

    rows = store.select_itinerary_candidates("itinerary", 10)

    assert [r["id"] for r in rows] == [did]
    assert (rows[0]["day_count"], rows[0]["first_day"], rows[0]["last_day"]) == (3, 1, 4)


def test_fetch_reads_the_current_row(store):
    did = seed_destination(store, description="Short.")
    assert store.fetch_destination_text("description", did)["current_value"] == "Short."

    store.update_destination_fields(did, {"description": "z" * 200})

    assert store.fetch_destination_text("description", did)["current_value"] == "z" * 200
    assert store.fetch_itinerary_candidate(did)["itinerary_id"] is None
    assert store.fetch_experience_candidate(did)["experiences"] == []
    assert store.fetch_destination_text("description", did + 1000) is None


def test_duplicate_days_roll_back(store):
    did = seed_destination(store)
    days = [{"day_number": 1, "title": "Day 1", "activities": []}] * 2

    with pytest.raises(ConstraintViolation):
        store.replace_itinerary(did, {"title": "t", "duration": 2, "description": "d", "content": "c"}, days)

    assert store.table_stats()["itineraries"]["total"] == 0


def test_experiences_deduplicate_by_title(store):
    did = seed_destination(store)
    experience = {
        "title": "Tram 28 at dawn",
        "theme": "cultural",
        "specific_location": "Alfama",
        "description": "Ride before the crowds.",
        "personal_narrative": None,
        "season": None,
        "seasonal_event": None,
        "best_time_to_visit": None,
        "local_tip": None,
    }

    assert store.add_experiences(did, [experience]) == 1
    assert store.add_experiences(did, [experience]) == 0
    assert store.table_stats()["enhanced_experiences"]["total"] == 1
