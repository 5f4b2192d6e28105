import pytest

from wayfarer_enrichment.completeness import (
    ItineraryState,
    Theme,
    experience_themes,
    experiences_complete,
    fields_complete,
    is_blank,
    itinerary_state,
    missing_themes,
    text_is_complete,
    title_themes,
)


@pytest.mark.parametrize("value", [None, "", "   ", "\n\t", [], ["", "  "]])
def test_blank_values(value):
    assert is_blank(value)


@pytest.mark.parametrize("value", ["x", " a ", ["", "tip"], 0])
def test_non_blank_values(value):
    assert not is_blank(value)


def test_short_text_counts_as_incomplete_like_null():
    assert not text_is_complete(None, 150)
    assert not text_is_complete("", 150)
    assert not text_is_complete("A lovely city.", 150)
    assert text_is_complete("x" * 150, 150)


def test_text_length_ignores_surrounding_whitespace():
    assert not text_is_complete("  " + "x" * 149 + "   ", 150)


def test_zero_threshold_only_requires_non_blank():
    assert text_is_complete("ok", 0)
    assert not text_is_complete("   ", 0)


def test_fields_complete():
    row = {"a": "x", "b": "  ", "c": None}
    assert fields_complete(row, ["a"])
    assert not fields_complete(row, ["a", "b"])
    assert not fields_complete(row, ["missing"])


@pytest.mark.parametrize(
    "itinerary_id, duration, day_count, expected",
    [
        (None, None, 0, ItineraryState.MISSING),
        (1, 7, 5, ItineraryState.MISSING_DAYS),
        (1, 0, 0, ItineraryState.MISSING_DAYS),
        (1, 3, 4, ItineraryState.OVERFULL),
        (1, 3, 3, ItineraryState.COMPLETE),
    ],
)
def test_itinerary_state(itinerary_id, duration, day_count, expected):
    assert itinerary_state(itinerary_id, duration, day_count) is expected


@pytest.mark.parametrize(
    "first_day, last_day, expected",
    [
        (1, 3, ItineraryState.COMPLETE),
        (1, 4, ItineraryState.MISNUMBERED),
        (0, 2, ItineraryState.MISNUMBERED),
        (2, 4, ItineraryState.MISNUMBERED),
    ],
)
def test_three_days_must_be_numbered_one_to_duration(first_day, last_day, expected):
    assert itinerary_state(1, 3, 3, first_day, last_day) is expected


def test_title_themes_match_word_prefixes():
    assert title_themes("Tea Ceremony in Uji") == {Theme.cultural}
    assert title_themes("Tsukiji Outer Market breakfast") == {Theme.culinary}
    assert title_themes("Hiking the Mountain Trails") == {Theme.nature}
    assert title_themes("Artisan workshops") == {Theme.cultural}


def test_title_themes_do_not_match_inside_words():
    assert Theme.cultural not in title_themes("The heart of the city")


def test_title_can_evidence_several_themes():
    assert title_themes("Cooking class in a mountain village") == {Theme.culinary, Theme.nature}


def test_stored_theme_wins_over_title_keywords():
    assert experience_themes({"title": "Food market crawl", "theme": "Nature"}) == {Theme.nature}


def test_unknown_stored_theme_falls_back_to_title():
    assert experience_themes({"title": "Food market crawl", "theme": "shopping"}) == {Theme.culinary}


def test_missing_themes_in_canonical_order():
    existing = [{"title": "Gothic Quarter walking tour"}]
    assert missing_themes(existing) == [Theme.culinary, Theme.nature]


def test_experiences_need_three_rows_and_every_theme():
    three_cultural = [{"title": t} for t in ("Museum night", "Temple dawn", "Art Nouveau walk")]
    assert not experiences_complete(three_cultural)

    covered = [{"title": "Museum night"}, {"title": "Cooking class"}, {"title": "Botanical gardens"}]
    assert experiences_complete(covered)

    two = [{"title": "Museum night"}, {"title": "Cooking class in the hills"}]
    assert not experiences_complete(two)


def test_blank_titles_do_not_count_toward_the_target():
    rows = [{"title": "Museum night"}, {"title": "Cooking class"}, {"title": "Botanical gardens"}, {"title": " "}]
    assert experiences_complete(rows)
    assert not experiences_complete(rows[1:])


def test_predicates_are_pure():
    rows = [{"title": "Museum night", "theme": None}]
    snapshot = [dict(r) for r in rows]
    for _ in range(3):
        experiences_complete(rows)
        missing_themes(rows)
    assert rows == snapshot
