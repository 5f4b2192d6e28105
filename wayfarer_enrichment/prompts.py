"""
Prompt construction for structured generation requests.

A prompt is a system instruction (persona, tone, no placeholders) plus a
user instruction that embeds the expected JSON shape, rendered from the
pydantic content model so the prompt and the validator never drift apart.
"""

import typing
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from pydantic import BaseModel

DEFAULT_TEMPERATURE = 0.7

PERSONAS: Dict[str, str] = {
    "destination": (
        "You are a travel expert with deep knowledge of destinations around the world. "
        "You write accurate, specific travel-guide content with authentic local detail."
    ),
    "immersive": (
        "You are a cultural anthropologist and travel writer specializing in immersive, "
        "authentic travel experiences. Your descriptions help travelers connect with the soul of a destination."
    ),
    "itinerary": (
        "You are a travel expert with deep knowledge of destinations around the world. "
        "Provide accurate, specific itineraries for each location with authentic local experiences."
    ),
    "experience": (
        "You are a local guide who writes about authentic experiences that reveal the true "
        "character of a place, away from tourist crowds."
    ),
    "collection": (
        "You are a travel expert with deep knowledge about how destinations fit into themed travel "
        "collections. You provide specific, authentic information that highlights the unique aspects of each destination."
    ),
    "snowbird": (
        "You are a travel expert specializing in long-term stay destinations for Canadian snowbirds. "
        "Provide detailed, accurate information that helps Canadians make informed decisions about winter destinations outside the US."
    ),
}

STYLE_RULES = """Rules:
- Be specific to the named place; never generic.
- No placeholders, no "[insert ...]", no lorem ipsum, no TODO text.
- Warm, confident tone; no marketing superlatives stacked in a row.
- Return STRICT JSON only, a single object with exactly the keys shown."""


@dataclass(frozen=True)
class PromptRequest:
    system: str
    user: str
    temperature: float = DEFAULT_TEMPERATURE
    schema_name: str = ""

    def messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


def _type_label(annotation) -> str:
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin is typing.Union:
        non_null = [a for a in args if a is not type(None)]
        label = _type_label(non_null[0]) if non_null else "null"
        return f"{label} or null"
    if origin in (list, List):
        return "array"
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "object"
    if annotation is int:
        return "integer"
    if annotation is float:
        return "number"
    return "string"


def _length_hint(field) -> Optional[str]:
    extra = field.json_schema_extra if isinstance(field.json_schema_extra, dict) else {}
    if "words" in extra:
        return f"about {extra['words']} words"
    if "max_chars" in extra:
        return f"max {extra['max_chars']} characters"
    return None


def describe_schema(model: Type[BaseModel], indent: str = "  ") -> str:
    """Render a pydantic model as the literal JSON shape shown to the provider."""
    lines = ["{"]
    items = list(model.model_fields.items())
    for position, (name, field) in enumerate(items):
        key = field.alias or name
        parts = [_type_label(field.annotation)]
        if field.description:
            parts.append(field.description)
        hint = _length_hint(field)
        if hint:
            parts.append(hint)
        comma = "," if position < len(items) - 1 else ""
        lines.append(f'{indent}"{key}": "{" - ".join(parts)}"{comma}')
    lines.append("}")
    return "\n".join(lines)


def build_prompt(
    entity_name: str,
    entity_country: Optional[str],
    entity_type: str,
    content_model: Type[BaseModel],
    instructions: str,
    temperature: float = DEFAULT_TEMPERATURE,
    nested: Optional[Dict[str, Type[BaseModel]]] = None,
) -> PromptRequest:
    """
    Build a generation request for one entity.

    `instructions` is the task text; `nested` lists models whose shape should
    be spelled out as well (array element types).
    """
    place = f"{entity_name}, {entity_country}" if entity_country else entity_name
    system = PERSONAS.get(entity_type, PERSONAS["destination"])

    sections = [
        instructions.strip().replace("{place}", place),
        "Provide the information in the following JSON format:",
        describe_schema(content_model),
    ]
    for key, model in (nested or {}).items():
        sections.append(f'Each element of "{key}" has this shape:')
        sections.append(describe_schema(model))
    sections.append(STYLE_RULES)

    return PromptRequest(
        system=system,
        user="\n\n".join(sections),
        temperature=temperature,
        schema_name=content_model.__name__,
    )
