"""
Destination narrative enrichment: the main description plus local tips,
cuisine, geography, culture and best time to visit; and the shorter
cultural "immersive" description.
"""

from wayfarer_enrichment.completeness import BASIC_DESCRIPTION_THRESHOLD, text_is_complete
from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.models import DestinationNarrative, ImmersiveDescription
from wayfarer_enrichment.prompts import build_prompt
from wayfarer_enrichment.tasks.base import EnrichmentTask

NARRATIVE_INSTRUCTIONS = """Provide detailed information about {place} for a travel guide.
The description must be at least {threshold} characters long and read as flowing prose.
Local tips should be practical and specific (neighbourhoods, transport, etiquette)."""

IMMERSIVE_INSTRUCTIONS = """Create a compelling cultural immersion description for {place} that explains why a
traveler would want to experience this destination from a cultural perspective.
Focus on authentic local connections, cultural insights and meaningful experiences that leave
a lasting impact, rich with specific cultural details but concise (max 60 words)."""


class DestinationNarrativeTask(EnrichmentTask):
    name = "destination_narrative"
    content_model = DestinationNarrative
    default_threshold = BASIC_DESCRIPTION_THRESHOLD

    def select(self, store, limit, threshold):
        return store.select_destinations_missing_text(self.name, "description", threshold, limit)

    def refresh(self, store, entity):
        return store.fetch_destination_text("description", entity["id"])

    def needs_enrichment(self, entity, threshold):
        return not text_is_complete(entity.get("current_value"), threshold)

    def build_prompt(self, entity, threshold):
        instructions = NARRATIVE_INSTRUCTIONS.replace("{threshold}", str(max(threshold, 1)))
        if entity.get("region"):
            instructions += f"\nThe destination is in the {entity['region']} region."
        return build_prompt(entity["name"], entity.get("country"), "destination", DestinationNarrative, instructions)

    def validate(self, entity, data, threshold):
        content = super().validate(entity, data, threshold)
        # Writing a description that is still too short would leave the entity selectable forever.
        if not text_is_complete(content.description, threshold):
            raise IncompleteContent(
                self.label(entity),
                [f"description: {len(content.description)} chars, need at least {threshold}"],
            )
        return content

    def write(self, store, entity, content, threshold):
        store.update_destination_fields(entity["id"], {
            "description": content.description,
            "local_tips": content.local_tips,
            "cuisine": content.cuisine,
            "geography": content.geography,
            "culture": content.culture,
            "best_time_to_visit": content.best_time_to_visit,
        })


class ImmersiveDescriptionTask(EnrichmentTask):
    name = "immersive_description"
    content_model = ImmersiveDescription
    default_threshold = 40

    def select(self, store, limit, threshold):
        return store.select_destinations_missing_text(self.name, "immersive_description", threshold, limit)

    def refresh(self, store, entity):
        return store.fetch_destination_text("immersive_description", entity["id"])

    def needs_enrichment(self, entity, threshold):
        return not text_is_complete(entity.get("current_value"), threshold)

    def build_prompt(self, entity, threshold):
        return build_prompt(entity["name"], entity.get("country"), "immersive", ImmersiveDescription, IMMERSIVE_INSTRUCTIONS)

    def validate(self, entity, data, threshold):
        content = super().validate(entity, data, threshold)
        if not text_is_complete(content.immersive_description, threshold):
            raise IncompleteContent(
                self.label(entity),
                [f"immersiveDescription: {len(content.immersive_description)} chars, need at least {threshold}"],
            )
        return content

    def write(self, store, entity, content, threshold):
        store.update_destination_fields(entity["id"], {"immersive_description": content.immersive_description})
