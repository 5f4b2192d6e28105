import pytest

from wayfarer_enrichment.completeness import Theme
from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.tasks import (
    CollectionItemsTask,
    DestinationNarrativeTask,
    ExperiencesTask,
    ImmersiveDescriptionTask,
    ItineraryTask,
    SnowbirdTask,
    get_task,
)

from tests.fakes import (
    FakeStore,
    collection_payload,
    experience_payload,
    itinerary_payload,
    narrative_payload,
    snowbird_payload,
)


@pytest.fixture
def store():
    return FakeStore()


def test_registry_builds_every_task():
    for name in ("destination_narrative", "immersive_description", "itinerary", "experiences", "collection_items", "snowbird"):
        assert get_task(name).name == name


def test_registry_rejects_unknown_type():
    with pytest.raises(ValueError):
        get_task("reviews")


class TestDestinationNarrative:
    def test_persist_writes_every_narrative_field(self, store):
        did = store.add_destination("Porto", "Portugal", description="Short.")
        task = DestinationNarrativeTask()
        entity = task.select(store, 5, 150)[0]

        task.persist(store, entity, narrative_payload("Porto"), 150)

        dest = store.destinations[did]
        assert len(dest["description"]) >= 150
        assert dest["local_tips"].startswith("- Buy a transit card")
        assert dest["cuisine"] and dest["geography"] and dest["culture"] and dest["best_time_to_visit"]

    def test_description_below_threshold_is_rejected_without_writing(self, store):
        did = store.add_destination("Porto", "Portugal", description="Short.")
        task = DestinationNarrativeTask()
        entity = task.select(store, 5, 150)[0]

        with pytest.raises(IncompleteContent) as exc:
            task.persist(store, entity, narrative_payload("Porto", length=80), 150)

        assert "Porto, Portugal" in str(exc.value)
        assert store.destinations[did]["description"] == "Short."
        assert store.destinations[did]["cuisine"] is None

    def test_missing_field_is_rejected_without_writing(self, store):
        did = store.add_destination("Porto", "Portugal")
        task = DestinationNarrativeTask()
        entity = task.select(store, 5, 150)[0]
        payload = narrative_payload("Porto")
        del payload["cuisine"]

        with pytest.raises(IncompleteContent) as exc:
            task.persist(store, entity, payload, 150)

        assert "cuisine" in str(exc.value)
        assert store.destinations[did]["description"] == ""

    def test_prompt_states_threshold_and_region(self, store):
        store.add_destination("Porto", "Portugal", region="Southern Europe")
        task = DestinationNarrativeTask()
        entity = task.select(store, 5, 500)[0]

        prompt = task.build_prompt(entity, 500)

        assert "at least 500 characters" in prompt.user
        assert "Southern Europe" in prompt.user


def test_immersive_description_written_alone(store):
    did = store.add_destination("Kyoto", "Japan", description="x" * 400)
    task = ImmersiveDescriptionTask()
    entity = task.select(store, 5, task.default_threshold)[0]
    text = "Kneel on tatami as a tea master whisks matcha in a centuries-old machiya."

    task.persist(store, entity, {"immersiveDescription": text}, task.default_threshold)

    assert store.destinations[did]["immersive_description"] == text
    assert store.destinations[did]["description"] == "x" * 400


class TestItinerary:
    def test_new_itinerary_gets_default_duration(self, store):
        did = store.add_destination("Lisbon", "Portugal")
        task = ItineraryTask()
        entity = task.select(store, 5, 0)[0]

        assert task.target_duration(entity) == 3
        assert "3-day itinerary" in task.build_prompt(entity, 0).user

        task.persist(store, entity, itinerary_payload(3, "Lisbon"), 0)

        itinerary = store.itinerary_for(did)
        days = store.days_for(itinerary["id"])
        assert itinerary["duration"] == 3
        assert [d["day_number"] for d in days] == [1, 2, 3]
        assert days[0]["activities"] == ["Morning: Morning walk 1", "Afternoon: Museum visit 1", "Evening: Dinner at tavern 1"]

    def test_day_count_must_match_duration(self, store):
        did = store.add_destination("Lisbon", "Portugal")
        task = ItineraryTask()
        entity = task.select(store, 5, 0)[0]

        with pytest.raises(IncompleteContent):
            task.persist(store, entity, itinerary_payload(2, "Lisbon"), 0)

        assert store.itinerary_for(did) is None

    def test_out_of_order_days_are_rejected(self, store):
        store.add_destination("Lisbon", "Portugal")
        task = ItineraryTask()
        entity = task.select(store, 5, 0)[0]
        payload = itinerary_payload(3, "Lisbon")
        payload["days"][1]["day"] = 3

        with pytest.raises(IncompleteContent):
            task.persist(store, entity, payload, 0)

    def test_overfull_itinerary_is_rebuilt_at_declared_duration(self, store):
        did = store.add_destination("Lisbon", "Portugal")
        iid = store.add_itinerary(did, duration=3, day_numbers=[1, 2, 3, 4])
        task = ItineraryTask()
        entity = task.select(store, 5, 0)[0]

        task.persist(store, entity, itinerary_payload(3, "Lisbon"), 0)

        assert len(store.days_for(iid)) == 3


class TestExperiences:
    def test_requests_missing_themes_only(self, store):
        did = store.add_destination("Barcelona", "Spain")
        store.add_experience(did, "Gothic Quarter walking tour")
        store.add_experience(did, "La Boqueria food tasting")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]

        assert task.requested_themes(entity) == [Theme.nature]
        prompt = task.build_prompt(entity, 0)
        assert "Gothic Quarter walking tour" in prompt.user
        assert "in this order: nature" in prompt.user

    def test_tops_up_to_three_when_themes_are_covered(self, store):
        did = store.add_destination("Kyoto", "Japan")
        store.add_experience(did, "Cooking class in a mountain temple")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]

        assert task.requested_themes(entity) == [Theme.cultural, Theme.culinary]

    def test_persist_stores_theme_and_completes(self, store):
        did = store.add_destination("Kyoto", "Japan")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]

        task.persist(store, entity, experience_payload(["cultural", "culinary", "nature"], "Kyoto"), 0)

        rows = store.experiences_for(did)
        assert [r["theme"] for r in rows] == ["cultural", "culinary", "nature"]
        assert task.select(store, 5, 0) == []

    def test_extra_experiences_are_ignored(self, store):
        did = store.add_destination("Kyoto", "Japan")
        store.add_experience(did, "Tea Ceremony", theme="cultural")
        store.add_experience(did, "Nishiki market", theme="culinary")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]

        task.persist(store, entity, experience_payload(["culinary", "nature", "cultural"], "Kyoto"), 0)

        assert len(store.experiences_for(did)) == 3

    def test_missing_theme_rejects_whole_bundle(self, store):
        did = store.add_destination("Kyoto", "Japan")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]

        with pytest.raises(IncompleteContent) as exc:
            task.persist(store, entity, experience_payload(["cultural", "culinary"], "Kyoto"), 0)

        assert "nature" in str(exc.value)
        assert store.experiences_for(did) == []

    def test_repeated_existing_title_is_rejected(self, store):
        did = store.add_destination("Kyoto", "Japan")
        store.add_experience(did, "Kyoto cultural experience 1", theme="cultural")
        store.add_experience(did, "Nishiki market", theme="culinary")
        task = ExperiencesTask()
        entity = task.select(store, 5, 0)[0]
        payload = experience_payload(["nature"], "Kyoto")
        payload["experiences"][0]["title"] = "kyoto cultural experience 1"

        with pytest.raises(IncompleteContent):
            task.persist(store, entity, payload, 0)
        assert len(store.experiences_for(did)) == 2


class TestCollectionItems:
    def test_fills_blank_annotations(self, store):
        did = store.add_destination("Hvar", "Croatia")
        item_id = store.add_collection_item("Island Escapes", did, description="Slow days by the sea")
        task = CollectionItemsTask()
        entity = task.select(store, 5, 0)[0]

        assert "Island Escapes" in task.label(entity)
        assert "Slow days by the sea" in task.build_prompt(entity, 0).user

        task.persist(store, entity, collection_payload(), 0)

        item = store.collection_items[item_id]
        assert item["highlight"] == collection_payload()["highlight"]
        assert item["note"] == collection_payload()["note"]

    def test_keeps_existing_highlight(self, store):
        did = store.add_destination("Hvar", "Croatia")
        item_id = store.add_collection_item("Island Escapes", did, highlight="Hand-written highlight")
        task = CollectionItemsTask()
        entity = task.select(store, 5, 0)[0]

        task.persist(store, entity, collection_payload(), 0)

        assert store.collection_items[item_id]["highlight"] == "Hand-written highlight"
        assert store.collection_items[item_id]["note"]

    def test_overlong_highlight_is_rejected(self, store):
        did = store.add_destination("Hvar", "Croatia")
        store.add_collection_item("Island Escapes", did)
        task = CollectionItemsTask()
        entity = task.select(store, 5, 0)[0]
        payload = collection_payload()
        payload["highlight"] = "x" * 250

        with pytest.raises(IncompleteContent):
            task.persist(store, entity, payload, 0)


class TestSnowbird:
    def test_fills_only_blank_fields(self, store):
        sid = store.add_snowbird("Merida", "Mexico", flight_time="4h30 from Toronto")
        task = SnowbirdTask()
        entity = task.select(store, 5, task.default_threshold)[0]

        task.persist(store, entity, snowbird_payload(), task.default_threshold)

        guide = store.snowbird[sid]
        assert guide["flight_time"] == "4h30 from Toronto"
        assert guide["visa_requirements"].startswith("Canadians")
        assert guide["local_tips"] == "- Book long stays early\n- Use the local bus"
        assert task.select(store, 5, task.default_threshold) == []

    def test_short_description_is_replaced(self, store):
        sid = store.add_snowbird("Merida", "Mexico", **{f: "filled" for f in (
            "visa_requirements", "healthcare_access", "avg_accommodation_cost", "flight_time",
            "language_barrier", "canadian_expats", "best_time_to_visit", "local_tips", "cost_of_living",
        )}, description="Warm.")
        task = SnowbirdTask()
        entity = task.select(store, 5, 100)[0]

        task.persist(store, entity, snowbird_payload(), 100)

        assert len(store.snowbird[sid]["description"]) >= 100
        assert store.snowbird[sid]["visa_requirements"] == "filled"
