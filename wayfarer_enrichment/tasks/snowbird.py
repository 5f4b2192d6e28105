"""Snowbird guides: long-stay information for Canadians wintering abroad."""

from wayfarer_enrichment.completeness import fields_complete, is_blank, text_is_complete
from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.models import SnowbirdGuide
from wayfarer_enrichment.prompts import build_prompt
from wayfarer_enrichment.store import SNOWBIRD_TEXT_FIELDS
from wayfarer_enrichment.tasks.base import EnrichmentTask

SNOWBIRD_INSTRUCTIONS = """Create a comprehensive guide for Canadian snowbirds (retirees who spend winter months
in warmer climates) considering {place} as a winter destination.
Focus on practical information for long-term stays of 3-6 months during the Canadian winter."""


class SnowbirdTask(EnrichmentTask):
    name = "snowbird"
    content_model = SnowbirdGuide
    default_threshold = 100

    def select(self, store, limit, threshold):
        return store.select_snowbird_candidates(self.name, threshold, limit)

    def refresh(self, store, entity):
        return store.fetch_snowbird(entity["id"])

    def needs_enrichment(self, entity, threshold):
        return not (
            fields_complete(entity, SNOWBIRD_TEXT_FIELDS)
            and text_is_complete(entity.get("description"), threshold)
        )

    def build_prompt(self, entity, threshold):
        instructions = SNOWBIRD_INSTRUCTIONS
        if entity.get("region"):
            instructions += f"\nRegion: {entity['region']}."
        return build_prompt(entity["name"], entity.get("country"), "snowbird", SnowbirdGuide, instructions)

    def validate(self, entity, data, threshold):
        content = super().validate(entity, data, threshold)
        if not text_is_complete(entity.get("description"), threshold) and not text_is_complete(content.description, threshold):
            raise IncompleteContent(
                self.label(entity),
                [f"description: {len(content.description)} chars, need at least {threshold}"],
            )
        return content

    def write(self, store, entity, content, threshold):
        generated = content.model_dump(include=SNOWBIRD_TEXT_FIELDS)
        fields = {name: value for name, value in generated.items() if is_blank(entity.get(name))}
        if not text_is_complete(entity.get("description"), threshold):
            fields["description"] = generated["description"]
        if fields:
            store.update_snowbird_fields(entity["id"], fields)
