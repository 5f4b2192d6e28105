"""
Base strategy for one kind of enrichment.

A task bundles the three pieces that vary per entity type: how incomplete
entities are selected and recognised, how the prompt is built, and how the
validated content is written back.
"""

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from wayfarer_enrichment.errors import IncompleteContent
from wayfarer_enrichment.prompts import PromptRequest


def parse_content(model: Type[BaseModel], data: Dict[str, Any], entity_name: str) -> BaseModel:
    """Validate generated JSON against a content model; any problem means nothing is written."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "content"
            problems.append(f"{location}: {err['msg']}")
        raise IncompleteContent(entity_name, problems) from e


class EnrichmentTask:
    name: str = ""
    content_model: Type[BaseModel] = BaseModel
    default_threshold: int = 0

    def select(self, store, limit: int, threshold: int) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def refresh(self, store, entity: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Re-read `entity` from the store in its selected shape; None if it is gone."""
        raise NotImplementedError

    def needs_enrichment(self, entity: Dict[str, Any], threshold: int) -> bool:
        raise NotImplementedError

    def build_prompt(self, entity: Dict[str, Any], threshold: int) -> PromptRequest:
        raise NotImplementedError

    def validate(self, entity: Dict[str, Any], data: Dict[str, Any], threshold: int) -> BaseModel:
        return parse_content(self.content_model, data, self.label(entity))

    def write(self, store, entity: Dict[str, Any], content: BaseModel, threshold: int) -> None:
        raise NotImplementedError

    def persist(self, store, entity: Dict[str, Any], data: Dict[str, Any], threshold: int) -> BaseModel:
        """Validate, then write as one logical unit."""
        content = self.validate(entity, data, threshold)
        self.write(store, entity, content, threshold)
        return content

    def label(self, entity: Dict[str, Any]) -> str:
        if entity.get("country"):
            return f"{entity['name']}, {entity['country']}"
        return str(entity.get("name", entity.get("id")))

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
