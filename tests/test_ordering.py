"""
tests/test_ordering.py — Manual Ordering
==========================================
Dense ``order`` values across create, delete and reorder for
competitions, events and their categories.
"""

from __future__ import annotations

from synapse.services.audit_service import get_recent_actions
from synapse.services.competition_service import (
    create_competition,
    create_competition_category,
    delete_competition,
    delete_competition_category,
    get_active_competitions,
    get_all_competitions,
    get_competition,
    get_competition_categories,
    reorder_competition_categories,
    reorder_competitions,
    update_competition,
)
from synapse.services.event_service import (
    create_event,
    delete_event,
    get_all_events,
    reorder_events,
    update_event,
)


def _orders(items) -> list[tuple[str, int]]:
    return [(i.name, i.order) for i in items]


def _competitions(store, *names: str) -> list[str]:
    return [create_competition(store, {"name": n}).id for n in names]


class TestCompetitionOrdering:
    def test_new_competitions_append_from_one(self, store):
        _competitions(store, "Hackathon", "Robo Wars", "Quiz")
        assert _orders(get_all_competitions(store)) == [
            ("Hackathon", 1), ("Robo Wars", 2), ("Quiz", 3),
        ]

    def test_delete_closes_the_gap(self, store):
        ids = _competitions(store, "Hackathon", "Robo Wars", "Quiz")
        assert delete_competition(store, ids[0]).success
        assert _orders(get_all_competitions(store)) == [("Robo Wars", 1), ("Quiz", 2)]
        assert _competitions(store, "Gaming")
        assert get_all_competitions(store)[-1].order == 3

    def test_reorder_takes_the_full_list(self, store):
        a, b, c = _competitions(store, "Hackathon", "Robo Wars", "Quiz")
        assert reorder_competitions(store, [c, a, b], actor_id="admin-1").success
        assert _orders(get_all_competitions(store)) == [
            ("Quiz", 1), ("Hackathon", 2), ("Robo Wars", 3),
        ]
        assert get_recent_actions(store.engine, limit=1)[0]["action_type"] == "REORDER"

    def test_partial_or_duplicated_reorder_is_refused(self, store):
        a, b, c = _competitions(store, "Hackathon", "Robo Wars", "Quiz")
        assert not reorder_competitions(store, [c, a]).success
        assert not reorder_competitions(store, [a, a, b, c]).success
        assert not reorder_competitions(store, [a, b, c, "ghost"]).success
        assert _orders(get_all_competitions(store)) == [
            ("Hackathon", 1), ("Robo Wars", 2), ("Quiz", 3),
        ]

    def test_update_cannot_move_order(self, store):
        a, _ = _competitions(store, "Hackathon", "Robo Wars")
        assert update_competition(store, a, {"order": 9, "prize_pool": "50k"}).success
        comp = get_competition(store, a)
        assert comp.order == 1
        assert comp.prize_pool == "50k"

    def test_inactive_competitions_are_hidden_publicly(self, store):
        a, _ = _competitions(store, "Hackathon", "Robo Wars")
        update_competition(store, a, {"is_active": False})
        assert [c.name for c in get_active_competitions(store)] == ["Robo Wars"]

    def test_missing_competition(self, store):
        assert update_competition(store, "ghost", {"name": "x"}).error == "Competition not found"
        assert delete_competition(store, "ghost").error == "Competition not found"


class TestCompetitionCategories:
    def test_blank_name_rejected(self, store):
        assert create_competition_category(store, "   ").error == "Category name is required"

    def test_create_delete_reorder(self, store):
        tech = create_competition_category(store, " Technical ").id
        fun = create_competition_category(store, "Fun").id
        art = create_competition_category(store, "Art").id
        assert [c.name for c in get_competition_categories(store)] == ["Technical", "Fun", "Art"]

        assert reorder_competition_categories(store, [art, tech, fun]).success
        assert _orders(get_competition_categories(store)) == [
            ("Art", 1), ("Technical", 2), ("Fun", 3),
        ]

        assert delete_competition_category(store, tech).success
        assert _orders(get_competition_categories(store)) == [("Art", 1), ("Fun", 2)]


class TestEventOrdering:
    def test_events_follow_the_same_rules(self, store):
        a = create_event(store, {"name": "DJ Night", "price": 200}).id
        b = create_event(store, {"name": "Comedy", "price": 0}).id
        c = create_event(store, {"name": "Open Mic"}).id

        assert reorder_events(store, [b, c, a]).success
        assert _orders(get_all_events(store)) == [("Comedy", 1), ("Open Mic", 2), ("DJ Night", 3)]

        assert delete_event(store, c).success
        assert _orders(get_all_events(store)) == [("Comedy", 1), ("DJ Night", 2)]

    def test_negative_numbers_are_rejected(self, store):
        assert not create_event(store, {"name": "DJ Night", "price": -1}).success
        event_id = create_event(store, {"name": "DJ Night"}).id
        assert not update_event(store, event_id, {"capacity": -5}).success
