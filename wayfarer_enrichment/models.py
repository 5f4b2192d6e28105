"""
Pydantic models for generated content.

Field aliases are the camelCase keys the generation provider is asked to
return; descriptions double as the per-field schema lines in prompts.
Prompts ask for the `words`/`max_chars` targets in json_schema_extra,
validation accepts some slack above them.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from wayfarer_enrichment.completeness import Theme


def _strip(value):
    if isinstance(value, str):
        return value.strip()
    return value


def _join_lines(value):
    # Tips sometimes come back as a JSON list instead of a paragraph.
    if isinstance(value, list):
        items = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return "\n".join(f"- {item}" if not item.startswith("-") else item for item in items)
    return _strip(value)


class GeneratedContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _strip_strings(cls, value):
        return _strip(value)


class DestinationNarrative(GeneratedContent):
    description: str = Field(
        min_length=1,
        description="Rich, evocative description of the destination for a travel guide",
        json_schema_extra={"words": 150},
    )
    local_tips: str = Field(
        alias="localTips",
        min_length=1,
        description="At least 3 practical local tips for travelers",
    )
    cuisine: str = Field(
        min_length=1,
        description="Brief overview of the local cuisine in 3-4 sentences",
    )
    geography: str = Field(
        min_length=1,
        description="Concise description of the geography in 2-3 sentences",
    )
    culture: str = Field(
        min_length=1,
        description="Summary of the local culture in 3-4 sentences",
    )
    best_time_to_visit: str = Field(
        alias="bestTimeToVisit",
        min_length=1,
        description="Best months to visit and why, in one sentence",
    )

    @field_validator("local_tips", mode="before")
    @classmethod
    def _tips_to_text(cls, value):
        return _join_lines(value)


class ImmersiveDescription(GeneratedContent):
    immersive_description: str = Field(
        alias="immersiveDescription",
        min_length=1,
        max_length=600,
        description="Cultural immersion description: authentic local connections and meaningful experiences, 2-3 sentences",
        json_schema_extra={"words": 50},
    )


class DayPlan(GeneratedContent):
    day: int = Field(ge=1, description="Day number, starting at 1")
    title: str = Field(min_length=1, description="Day title focusing on a unique aspect of the destination")
    morning_activity: str = Field(
        alias="morningActivity",
        min_length=1,
        description="Specific morning activity with a named location",
    )
    afternoon_activity: str = Field(
        alias="afternoonActivity",
        min_length=1,
        description="Specific afternoon activity with a named location",
    )
    evening_activity: str = Field(
        alias="eveningActivity",
        min_length=1,
        description="Specific evening activity or dining with a named location",
    )

    @property
    def activities(self) -> List[str]:
        return [
            f"Morning: {self.morning_activity}",
            f"Afternoon: {self.afternoon_activity}",
            f"Evening: {self.evening_activity}",
        ]


class ItineraryContent(GeneratedContent):
    title: str = Field(min_length=1, description="Catchy title for the itinerary")
    description: str = Field(
        min_length=1,
        description="Two-sentence summary of what the itinerary covers",
    )
    days: List[DayPlan] = Field(
        min_length=1,
        description="One entry per day, in order, each with day, title, morningActivity, afternoonActivity, eveningActivity",
    )

    @model_validator(mode="after")
    def _dense_day_numbers(self):
        numbers = [d.day for d in self.days]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"day numbers must run 1..{len(numbers)} in order, got {numbers}")
        return self


class ExperienceContent(GeneratedContent):
    theme: Theme = Field(description="One of: cultural, culinary, nature")
    title: str = Field(min_length=1, max_length=200, description="Unique and specific experience name")
    specific_location: str = Field(
        alias="specificLocation",
        min_length=1,
        description="Exact location within the destination where this takes place",
    )
    description: str = Field(min_length=1, description="Concise 1-2 sentence description of the experience")
    personal_narrative: Optional[str] = Field(
        default=None,
        alias="personalNarrative",
        description="First-person account with sensory details and emotional reactions",
    )
    season: Optional[str] = Field(default=None, description="Best season or year-round")
    seasonal_event: Optional[str] = Field(
        default=None,
        alias="seasonalEvent",
        description="Seasonal event that enhances the experience, or null",
    )
    best_time_to_visit: Optional[str] = Field(
        default=None,
        alias="bestTimeToVisit",
        description="Specific time of day or conditions that make it optimal",
    )
    local_tip: Optional[str] = Field(
        default=None,
        alias="localTip",
        description="Insider tip most tourists wouldn't know",
    )

    @field_validator("theme", mode="before")
    @classmethod
    def _lower_theme(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ExperienceBundle(GeneratedContent):
    experiences: List[ExperienceContent] = Field(
        min_length=1,
        description="Requested experiences, each with theme, title, specificLocation, description, personalNarrative, season, seasonalEvent, bestTimeToVisit, localTip",
    )


class CollectionItemContent(GeneratedContent):
    highlight: str = Field(
        min_length=1,
        max_length=200,
        description="Compelling 1-2 sentence highlight of how the destination fits the collection theme",
        json_schema_extra={"max_chars": 100},
    )
    note: str = Field(
        min_length=1,
        max_length=300,
        description="Detailed insider tip related to the collection theme for this destination",
        json_schema_extra={"max_chars": 150},
    )


class SnowbirdGuide(GeneratedContent):
    description: str = Field(
        min_length=1,
        description="Why the destination is perfect for Canadian snowbirds",
        json_schema_extra={"words": 100},
    )
    visa_requirements: str = Field(
        alias="visaRequirements",
        min_length=1,
        description="Visa information for Canadians staying for extended periods",
    )
    healthcare_access: str = Field(
        alias="healthcareAccess",
        min_length=1,
        description="Healthcare quality, facilities and insurance options for Canadians",
    )
    avg_accommodation_cost: str = Field(
        alias="avgAccommodationCost",
        min_length=1,
        description="Average monthly cost range for 1-2 bedroom accommodations",
    )
    flight_time: str = Field(alias="flightTime", min_length=1, description="Typical flight duration from Toronto or Vancouver")
    language_barrier: str = Field(
        alias="languageBarrier",
        min_length=1,
        description="Level of difficulty and English prevalence",
    )
    canadian_expats: str = Field(
        alias="canadianExpats",
        min_length=1,
        description="Size and presence of the Canadian community",
    )
    best_time_to_visit: str = Field(
        alias="bestTimeToVisit",
        min_length=1,
        description="Optimal months for Canadian snowbirds",
    )
    local_tips: str = Field(alias="localTips", min_length=1, description="2-3 specific insider tips for Canadians living there")
    cost_of_living: str = Field(
        alias="costOfLiving",
        min_length=1,
        description="Breakdown of monthly expenses compared to Florida",
    )

    @field_validator("local_tips", mode="before")
    @classmethod
    def _tips_to_text(cls, value):
        return _join_lines(value)
