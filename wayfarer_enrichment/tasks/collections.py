"""Collection item annotation: a short highlight and an insider note per member destination."""

from wayfarer_enrichment.completeness import is_blank
from wayfarer_enrichment.models import CollectionItemContent
from wayfarer_enrichment.prompts import build_prompt
from wayfarer_enrichment.tasks.base import EnrichmentTask

COLLECTION_INSTRUCTIONS = """{place} is part of the curated collection "{collection}".
Collection theme: {theme}
Write a highlight explaining why it belongs in this collection and a note with an insider tip
related to the collection theme."""


class CollectionItemsTask(EnrichmentTask):
    name = "collection_items"
    content_model = CollectionItemContent

    def select(self, store, limit, threshold):
        return store.select_collection_items_for_annotation(self.name, limit)

    def refresh(self, store, entity):
        return store.fetch_collection_item(entity["id"])

    def needs_enrichment(self, entity, threshold):
        return is_blank(entity.get("highlight")) or is_blank(entity.get("note"))

    def label(self, entity):
        return f"{super().label(entity)} in {entity.get('collection_name')}"

    def build_prompt(self, entity, threshold):
        instructions = (
            COLLECTION_INSTRUCTIONS
            .replace("{collection}", entity.get("collection_name") or "")
            .replace("{theme}", entity.get("collection_description") or entity.get("collection_name") or "")
        )
        return build_prompt(entity["name"], entity.get("country"), "collection", CollectionItemContent, instructions)

    def write(self, store, entity, content, threshold):
        # Hand-written annotations are kept; only the blank half is filled.
        highlight = entity.get("highlight") if not is_blank(entity.get("highlight")) else content.highlight
        note = entity.get("note") if not is_blank(entity.get("note")) else content.note
        store.update_collection_item(entity["id"], highlight, note)
