"""
Itinerary enrichment: destinations without an itinerary, and itineraries
whose day rows don't match their duration (a crash mid-seed, a manual
delete). Both are rebuilt as a whole: itinerary row plus the full day set.
"""

from wayfarer_enrichment.completeness import ItineraryState, itinerary_state
from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.models import DayPlan, ItineraryContent
from wayfarer_enrichment.prompts import build_prompt
from wayfarer_enrichment.tasks.base import EnrichmentTask

DEFAULT_DURATION = 3

ITINERARY_INSTRUCTIONS = """Create a {duration}-day itinerary for {place}.
Return exactly {duration} entries in "days", numbered 1 to {duration}.
Each day focuses on a different aspect of the destination, with specific, authentic,
location-specific activities."""


class ItineraryTask(EnrichmentTask):
    name = "itinerary"
    content_model = ItineraryContent

    def __init__(self, default_duration: int = DEFAULT_DURATION):
        self.default_duration = default_duration

    def select(self, store, limit, threshold):
        return store.select_itinerary_candidates(self.name, limit)

    def refresh(self, store, entity):
        return store.fetch_itinerary_candidate(entity["id"])

    def needs_enrichment(self, entity, threshold):
        state = itinerary_state(
            entity.get("itinerary_id"),
            entity.get("duration"),
            entity.get("day_count") or 0,
            entity.get("first_day"),
            entity.get("last_day"),
        )
        return state is not ItineraryState.COMPLETE

    def target_duration(self, entity) -> int:
        # An existing itinerary keeps its declared duration; only its days are rebuilt.
        if entity.get("itinerary_id") is not None and entity.get("duration"):
            return int(entity["duration"])
        return self.default_duration

    def build_prompt(self, entity, threshold):
        instructions = ITINERARY_INSTRUCTIONS.replace("{duration}", str(self.target_duration(entity)))
        return build_prompt(
            entity["name"],
            entity.get("country"),
            "itinerary",
            ItineraryContent,
            instructions,
            nested={"days": DayPlan},
        )

    def validate(self, entity, data, threshold):
        content = super().validate(entity, data, threshold)
        duration = self.target_duration(entity)
        if len(content.days) != duration:
            raise IncompleteContent(
                self.label(entity),
                [f"days: got {len(content.days)} day plans for a {duration}-day itinerary"],
            )
        return content

    def write(self, store, entity, content, threshold):
        duration = len(content.days)
        store.replace_itinerary(
            entity["id"],
            {
                "title": content.title,
                "duration": duration,
                "description": content.description,
                "content": "\n".join(f"Day {d.day}: {d.title}" for d in content.days),
            },
            [
                {"day_number": d.day, "title": d.title, "activities": d.activities}
                for d in content.days
            ],
        )
