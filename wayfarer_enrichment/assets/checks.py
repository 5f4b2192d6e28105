"""
Asset checks for catalog consistency.

These checks watch the invariants enrichment is meant to restore: day
counts matching durations, three experiences per destination, descriptions
above the completeness threshold, annotated collection items and no
abandoned claims.
"""

from dagster import asset_check, AssetCheckResult, AssetCheckSeverity

from wayfarer_enrichment.completeness import BASIC_DESCRIPTION_THRESHOLD
from wayfarer_enrichment.resources import DatabaseResource


def _summary(database: DatabaseResource):
    return database.get_store().quality_summary(BASIC_DESCRIPTION_THRESHOLD)


@asset_check(asset=["catalog", "itineraries_table"], description="Every itinerary has exactly `duration` days")
def check_itinerary_days_match_duration(database: DatabaseResource) -> AssetCheckResult:
    summary = _summary(database)
    mismatched = summary["itineraries_with_day_mismatch"]
    out_of_range = summary["itineraries_with_out_of_range_days"]

    passed = mismatched == 0 and out_of_range == 0
    return AssetCheckResult(
        passed=passed,
        severity=AssetCheckSeverity.ERROR,
        metadata={
            "day_count_mismatches": mismatched,
            "out_of_range_day_numbers": out_of_range,
        },
        description=f"{mismatched} itineraries have the wrong number of days" if not passed
                    else "All itineraries have a full set of days",
    )


@asset_check(asset=["catalog", "enhanced_experiences_table"], description="Destinations have at least three experiences")
def check_experience_coverage(database: DatabaseResource) -> AssetCheckResult:
    summary = _summary(database)
    below = summary["destinations_below_experience_target"]
    total = summary["destinations"]

    return AssetCheckResult(
        passed=below == 0,
        severity=AssetCheckSeverity.WARN,
        metadata={
            "destinations_below_target": below,
            "destinations": total,
            "below_target_percent": round(below / total * 100, 2) if total > 0 else 0,
        },
        description=f"{below} of {total} destinations have fewer than three experiences",
    )


@asset_check(asset=["catalog", "destinations_table"], description="Destination descriptions meet the basic length")
def check_short_descriptions(database: DatabaseResource) -> AssetCheckResult:
    summary = _summary(database)
    short = summary["short_descriptions"]

    return AssetCheckResult(
        passed=short == 0,
        severity=AssetCheckSeverity.WARN,
        metadata={"short_descriptions": short, "threshold": BASIC_DESCRIPTION_THRESHOLD},
        description=f"{short} destinations have descriptions under {BASIC_DESCRIPTION_THRESHOLD} characters",
    )


@asset_check(asset=["catalog", "collections_table"], description="Collection items have a highlight and a note")
def check_collection_items_annotated(database: DatabaseResource) -> AssetCheckResult:
    summary = _summary(database)
    unannotated = summary["unannotated_collection_items"]

    return AssetCheckResult(
        passed=unannotated == 0,
        severity=AssetCheckSeverity.WARN,
        metadata={"unannotated_items": unannotated},
        description=f"{unannotated} collection items are missing a highlight or note",
    )


@asset_check(asset=["catalog", "destinations_table"], description="No enrichment claims outlived their TTL")
def check_no_stale_claims(database: DatabaseResource) -> AssetCheckResult:
    """Stale claims mean a run died mid-entity; they expire on their own but are worth knowing about."""
    stale = _summary(database)["stale_claims"]

    return AssetCheckResult(
        passed=stale == 0,
        severity=AssetCheckSeverity.WARN,
        metadata={"stale_claims": stale},
        description=f"{stale} abandoned enrichment claims",
    )
