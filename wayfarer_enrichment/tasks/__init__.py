from wayfarer_enrichment.tasks.base import EnrichmentTask, parse_content
from wayfarer_enrichment.tasks.collections import CollectionItemsTask
from wayfarer_enrichment.tasks.destinations import DestinationNarrativeTask, ImmersiveDescriptionTask
from wayfarer_enrichment.tasks.experiences import ExperiencesTask
from wayfarer_enrichment.tasks.itineraries import ItineraryTask
from wayfarer_enrichment.tasks.snowbird import SnowbirdTask

TASKS = {
    task.name: task
    for task in (
        DestinationNarrativeTask,
        ImmersiveDescriptionTask,
        ItineraryTask,
        ExperiencesTask,
        CollectionItemsTask,
        SnowbirdTask,
    )
}


def get_task(name: str, **options) -> EnrichmentTask:
    try:
        task_cls = TASKS[name]
    except KeyError:
        raise ValueError(f"Unknown entity type {name!r}; expected one of {sorted(TASKS)}") from None
    return task_cls(**options)


__all__ = [
    "TASKS",
    "get_task",
    "parse_content",
    "EnrichmentTask",
    "CollectionItemsTask",
    "DestinationNarrativeTask",
    "ImmersiveDescriptionTask",
    "ExperiencesTask",
    "ItineraryTask",
    "SnowbirdTask",
]
