"""
Run-status sensors chaining enrichment jobs:
destination_narrative -> itinerary -> experiences.

Itineraries read better once the destination narrative exists, and
experiences avoid repeating what the itinerary already covers.
"""

from dagster import run_status_sensor, DagsterRunStatus, RunRequest

from wayfarer_enrichment.jobs import (
    destination_narrative_enrichment,
    itinerary_enrichment,
    experiences_enrichment,
)


def _chain_tags(dagster_run) -> dict:
    return {
        "trigger": "chain",
        "parent_run_id": dagster_run.run_id,
        "parent_job": dagster_run.job_name,
    }


@run_status_sensor(
    run_status=DagsterRunStatus.SUCCESS,
    monitored_jobs=[destination_narrative_enrichment],
    request_job=itinerary_enrichment,
    name="narrative_to_itinerary",
    minimum_interval_seconds=30,
)
def narrative_to_itinerary(context):
    """Trigger itinerary enrichment when a narrative run succeeds."""
    dagster_run = context.dagster_run
    return RunRequest(run_key=f"itinerary_after_{dagster_run.run_id}", tags=_chain_tags(dagster_run))


@run_status_sensor(
    run_status=DagsterRunStatus.SUCCESS,
    monitored_jobs=[itinerary_enrichment],
    request_job=experiences_enrichment,
    name="itinerary_to_experiences",
    minimum_interval_seconds=30,
)
def itinerary_to_experiences(context):
    """Trigger experience enrichment when an itinerary run succeeds."""
    dagster_run = context.dagster_run
    return RunRequest(run_key=f"experiences_after_{dagster_run.run_id}", tags=_chain_tags(dagster_run))
