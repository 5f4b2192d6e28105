"""
Enhanced experiences: top a destination up to three experiences, one per
theme not yet covered. Existing experiences are never modified.
"""

from typing import List

from wayfarer_enrichment.completeness import (
    EXPERIENCE_TARGET,
    Theme,
    experiences_complete,
    is_blank,
    missing_themes,
)
from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.models import ExperienceBundle, ExperienceContent
from wayfarer_enrichment.prompts import build_prompt
from wayfarer_enrichment.tasks.base import EnrichmentTask

EXPERIENCE_INSTRUCTIONS = """Create {count} authentic local experiences for {place}.
Return them in "experiences", one per theme, in this order: {themes}.
Each must be specific to the destination, not generic tourist activities, and must not repeat
an existing experience."""


class ExperiencesTask(EnrichmentTask):
    name = "experiences"
    content_model = ExperienceBundle

    def select(self, store, limit, threshold):
        return store.select_experience_candidates(self.name, limit)

    def refresh(self, store, entity):
        return store.fetch_experience_candidate(entity["id"])

    def needs_enrichment(self, entity, threshold):
        return not experiences_complete(entity.get("experiences") or [])

    def requested_themes(self, entity) -> List[Theme]:
        existing = [e for e in entity.get("experiences") or [] if not is_blank(e.get("title"))]
        themes = missing_themes(existing)
        cycle = list(Theme)
        i = 0
        while len(existing) + len(themes) < EXPERIENCE_TARGET:
            themes.append(cycle[i % len(cycle)])
            i += 1
        return themes

    def existing_titles(self, entity) -> List[str]:
        return [e["title"] for e in entity.get("experiences") or [] if not is_blank(e.get("title"))]

    def build_prompt(self, entity, threshold):
        themes = self.requested_themes(entity)
        instructions = (
            EXPERIENCE_INSTRUCTIONS
            .replace("{count}", str(len(themes)))
            .replace("{themes}", ", ".join(t.value for t in themes))
        )
        titles = self.existing_titles(entity)
        if titles:
            instructions += "\nExisting experiences: " + "; ".join(titles)
        return build_prompt(
            entity["name"],
            entity.get("country"),
            "experience",
            ExperienceBundle,
            instructions,
            nested={"experiences": ExperienceContent},
        )

    def validate(self, entity, data, threshold):
        bundle = super().validate(entity, data, threshold)
        seen = {t.strip().lower() for t in self.existing_titles(entity)}
        pool = list(bundle.experiences)
        chosen = []
        problems = []
        for theme in self.requested_themes(entity):
            match = next((e for e in pool if e.theme is theme), None)
            if match is None:
                problems.append(f"experiences: no {theme.value} experience returned")
                continue
            pool.remove(match)
            key = match.title.lower()
            if key in seen:
                problems.append(f"experiences: duplicate title {match.title!r}")
                continue
            seen.add(key)
            chosen.append(match)
        if problems:
            raise IncompleteContent(self.label(entity), problems)
        return ExperienceBundle(experiences=chosen)

    def write(self, store, entity, content, threshold):
        rows = [
            {
                "title": e.title,
                "theme": e.theme.value,
                "specific_location": e.specific_location,
                "description": e.description,
                "personal_narrative": e.personal_narrative,
                "season": e.season,
                "seasonal_event": e.seasonal_event,
                "best_time_to_visit": e.best_time_to_visit,
                "local_tip": e.local_tip,
            }
            for e in content.experiences
        ]
        store.add_experiences(entity["id"], rows)
