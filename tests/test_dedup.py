"""Tests for near-duplicate collapsing."""
import pytest

from src.core.dedup import are_near_duplicates, collapse, drop_exact_duplicates, name_similarity, prefer
from src.core.schemas import Activity


def _activity(name, **overrides):
    data = {"name": name, "day_number": 1, "time_slot": "morning", "price": 30, "rating": 4.5}
    data.update(overrides)
    return Activity(**data)


def test_reworded_titles_are_similar():
    assert name_similarity("Eiffel Tower Skip-the-Line Tour", "Skip the Line: Eiffel Tower Tour") == 1.0
    assert name_similarity("Louvre Museum", "Seine Cruise") == 0.0
    assert name_similarity("", "Seine Cruise") == 0.0


@pytest.mark.parametrize("first_reviews, second_reviews", [(2000, 900), (900, 2000)])
def test_eiffel_duplicates_keep_the_better_reviewed_listing(first_reviews, second_reviews):
    first = _activity(
        "Eiffel Tower Skip-the-Line Tour",
        rating=4.8 if first_reviews == 2000 else 4.5,
        number_of_reviews=first_reviews,
    )
    second = _activity(
        "Skip the Line: Eiffel Tower Tour",
        rating=4.8 if second_reviews == 2000 else 4.5,
        number_of_reviews=second_reviews,
    )

    survivors = collapse([first, second])

    assert len(survivors) == 1
    assert survivors[0].number_of_reviews == 2000


def test_shared_location_and_category_is_a_duplicate():
    left = _activity("Sunset Kayak", location="Lake Bled", category="Nature & Adventure")
    right = _activity("Paddle Board Session", location="Lake Bled", category="Nature & Adventure")
    assert are_near_duplicates(left, right)
    assert not are_near_duplicates(left, right.model_copy(update={"category": "Lifestyle & Local"}))


def test_missing_location_never_matches_on_location():
    left = _activity("Sunset Kayak", category="Nature & Adventure")
    right = _activity("Paddle Board Session", category="Nature & Adventure")
    assert not are_near_duplicates(left, right)


def test_duplicates_in_different_slots_are_kept():
    morning = _activity("Louvre Museum Tour", time_slot="morning")
    evening = _activity("Louvre Museum Tour", time_slot="evening")
    other_day = _activity("Louvre Museum Tour", day_number=2)
    assert collapse([morning, evening, other_day]) == [morning, evening, other_day]


def test_prefer_rules_in_order():
    base = _activity("A", rating=4.0, number_of_reviews=100, price=50)
    # rating gap above 0.3 wins outright
    assert prefer(base, base.model_copy(update={"rating": 4.5, "number_of_reviews": 1}))
    assert not prefer(base, base.model_copy(update={"rating": 3.5, "number_of_reviews": 10_000}))
    # then review count ratio
    assert prefer(base, base.model_copy(update={"number_of_reviews": 150, "price": 90}))
    assert not prefer(base, base.model_copy(update={"number_of_reviews": 60, "price": 10}))
    # then price
    assert prefer(base, base.model_copy(update={"number_of_reviews": 120, "price": 40}))
    assert not prefer(base, base.model_copy(update={"number_of_reviews": 120, "price": 50}))


def test_collapse_is_a_subset_in_first_seen_order():
    items = [
        _activity("Louvre Museum Tour", rating=4.0),
        _activity("Seine Cruise"),
        _activity("Tour Louvre Museum", rating=4.9),
    ]

    survivors = collapse(items)

    assert [item.name for item in survivors] == ["Tour Louvre Museum", "Seine Cruise"]
    assert all(item in items for item in survivors)


def test_collapse_accepts_wrapped_items():
    wrapped = [("x", _activity("Seine River Cruise")), ("y", _activity("Seine River Cruise Tour"))]
    survivors = collapse(wrapped, activity_of=lambda item: item[1], group_of=lambda item: "all")
    assert survivors == [wrapped[0]]


def test_drop_exact_duplicates_by_code_or_name_and_location():
    first = _activity("Seine Cruise", location="Paris", product_code="P1")
    same_code = _activity("Seine River Cruise", product_code="P1")
    same_name = _activity("seine cruise!", location="paris")
    distinct = _activity("Seine Cruise", location="Lyon")

    assert drop_exact_duplicates([first, same_code, same_name, distinct]) == [first, distinct]
