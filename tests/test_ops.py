import json

from dagster import materialize

from wayfarer_enrichment.assets import (
    check_experience_coverage,
    check_itinerary_days_match_duration,
    destinations_table,
    enhanced_experiences_table,
    itineraries_table,
)
from wayfarer_enrichment.jobs import (
    destination_narrative_enrichment,
    itinerary_enrichment,
    seed_collections_pipeline,
    seed_destinations_pipeline,
)

from tests.fakes import (
    FakeDatabase,
    FakeGenerationResource,
    FakeGenerator,
    FakeStore,
    itinerary_payload,
)


def enrich_run_config(entity_type, **overrides):
    config = {"entity_type": entity_type, "batch_size": 5, "request_delay": 0.0, "batch_delay": 0.0}
    config.update(overrides)
    return {"ops": {"enrich_batch": {"config": config}}}


def resources_for(store, generator=None):
    return {
        "database": FakeDatabase(store),
        "generation": FakeGenerationResource(generator or FakeGenerator()),
    }


def test_itinerary_job_enriches_and_reports():
    store = FakeStore()
    did = store.add_destination("Kyoto", "Japan")
    generator = FakeGenerator(default=itinerary_payload(3, "Kyoto"))

    result = itinerary_enrichment.execute_in_process(
        run_config=enrich_run_config("itinerary"),
        resources=resources_for(store, generator),
    )

    assert result.success
    assert store.schema_created
    report = result.output_for_node("enrich_batch")
    assert report["succeeded"] == 1
    assert report["run_id"] == result.run_id
    assert len(store.days_for(store.itinerary_for(did)["id"])) == 3

    keys = [m.asset_key.path for m in result.asset_materializations_for_node("enrich_batch")]
    assert ["catalog", "itinerary_enrichment"] in keys


def test_dry_run_job_needs_no_generation_client():
    store = FakeStore()
    store.add_destination("Porto", "Portugal")

    class NoClient:
        def get_client(self):
            raise AssertionError("dry runs must not build a client")

    result = destination_narrative_enrichment.execute_in_process(
        run_config=enrich_run_config("destination_narrative", dry_run=True),
        resources={"database": FakeDatabase(store), "generation": NoClient()},
    )

    assert result.success
    assert result.output_for_node("enrich_batch")["planned"] == 1
    assert store.destinations[1]["description"] == ""


def test_failed_entities_do_not_fail_the_job():
    store = FakeStore()
    store.add_destination("Porto", "Portugal")

    result = destination_narrative_enrichment.execute_in_process(
        run_config=enrich_run_config("destination_narrative"),
        resources=resources_for(store, FakeGenerator()),
    )

    assert result.success
    report = result.output_for_node("enrich_batch")
    assert report["failed"] == 1
    assert report["failures_by_kind"] == {"malformed_output": 1}


def test_unreachable_store_fails_the_job():
    store = FakeStore()
    store.unavailable = True

    result = itinerary_enrichment.execute_in_process(
        run_config=enrich_run_config("itinerary"),
        resources=resources_for(store, FakeGenerator(default=itinerary_payload(3))),
        raise_on_error=False,
    )

    assert not result.success


def test_seed_jobs_load_destinations_then_collections(tmp_path):
    store = FakeStore()
    csv_path = tmp_path / "destinations.csv"
    csv_path.write_text(
        "name,country,region,image_url,featured,rating\n"
        "Porto,Portugal,Europe,https://img/porto.jpg,true,4.7\n"
        "Kyoto,Japan,Asia,https://img/kyoto.jpg,false,4.9\n"
    )
    json_path = tmp_path / "collections.json"
    json_path.write_text(json.dumps([
        {
            "name": "Slow Cities",
            "slug": "slow-cities",
            "description": "Places to linger",
            "destinations": [
                {"name": "Porto", "country": "Portugal"},
                {"name": "Atlantis", "country": "Nowhere"},
            ],
        }
    ]))

    seeded = seed_destinations_pipeline.execute_in_process(
        run_config={"ops": {"load_seed_csv": {"config": {"path": str(csv_path)}}}},
        resources={"database": FakeDatabase(store)},
    )
    assert seeded.success
    assert seeded.output_for_node("upsert_catalog_destinations") == {"regions": 2, "destinations": 2}

    collected = seed_collections_pipeline.execute_in_process(
        run_config={"ops": {"load_collections_json": {"config": {"path": str(json_path)}}}},
        resources={"database": FakeDatabase(store)},
    )
    assert collected.success
    assert collected.output_for_node("upsert_collections") == {"collections": 1, "attached": 1, "missing": 1}


def test_table_assets_report_coverage():
    store = FakeStore()
    did = store.add_destination("Porto", "Portugal", description="x" * 200)
    store.add_destination("Kyoto", "Japan")
    store.add_itinerary(did, duration=2, day_numbers=[1, 2])

    result = materialize(
        [destinations_table, itineraries_table, enhanced_experiences_table],
        resources={"database": FakeDatabase(store)},
    )

    assert result.success
    assert result.output_for_node("catalog__destinations_table")["described"] == 1
    assert result.output_for_node("catalog__itineraries_table") == {"total": 1, "days": 2}


def test_asset_checks_flag_inconsistencies():
    store = FakeStore()
    did = store.add_destination("Kyoto", "Japan")
    store.add_itinerary(did, duration=7, day_numbers=[1, 2, 3, 4, 5])

    result = materialize(
        [itineraries_table, enhanced_experiences_table, check_itinerary_days_match_duration, check_experience_coverage],
        resources={"database": FakeDatabase(store)},
    )

    evaluations = {e.check_name: e for e in result.get_asset_check_evaluations()}
    assert evaluations["check_itinerary_days_match_duration"].passed is False
    assert evaluations["check_experience_coverage"].passed is False


def test_code_location_loads_every_job_and_sensor():
    from wayfarer_enrichment.repository import defs

    for name in (
        "destination_narrative_enrichment",
        "immersive_description_enrichment",
        "itinerary_enrichment",
        "experiences_enrichment",
        "collection_items_enrichment",
        "snowbird_enrichment",
        "seed_destinations_pipeline",
        "seed_snowbird_pipeline",
        "seed_collections_pipeline",
    ):
        assert defs.get_job_def(name).name == name
    assert defs.get_sensor_def("narrative_to_itinerary").name == "narrative_to_itinerary"
