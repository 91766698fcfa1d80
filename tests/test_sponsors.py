"""
tests/test_sponsors.py — Sponsors, Promotions & Promotional Space
===================================================================
"""

from __future__ import annotations

from synapse.services.sponsor_service import (
    CATEGORY_IN_USE,
    create_category,
    create_promotion,
    create_sponsor,
    delete_category,
    delete_promotion,
    delete_sponsor,
    get_all_categories,
    get_all_promotions,
    get_promotional_space,
    get_sponsors_by_category,
    get_sponsors_grouped_by_category,
    reorder_categories,
    reorder_sponsors,
    update_category_name,
    update_promotional_space,
    update_sponsor,
)


def _sponsor(store, title: str, category_id: str) -> str:
    result = create_sponsor(store, {"title": title, "category_id": category_id, "link": ""})
    assert result.success, result.error
    return result.id


class TestCategories:
    def test_orders_start_at_zero(self, store):
        create_category(store, "Title Sponsor")
        create_category(store, "Gold")
        assert [(c.name, c.order) for c in get_all_categories(store)] == [
            ("Title Sponsor", 0), ("Gold", 1),
        ]

    def test_delete_refused_while_sponsors_remain(self, store):
        gold = create_category(store, "Gold").id
        sponsor = _sponsor(store, "Acme", gold)

        assert delete_category(store, gold).error == CATEGORY_IN_USE
        assert len(get_all_categories(store)) == 1

        delete_sponsor(store, sponsor)
        assert delete_category(store, gold).success
        assert get_all_categories(store) == []

    def test_rename_propagates_to_sponsors(self, store):
        gold = create_category(store, "Gold").id
        _sponsor(store, "Acme", gold)
        assert update_category_name(store, gold, "Platinum").success
        assert get_sponsors_by_category(store, gold)[0].category_name == "Platinum"

    def test_rename_missing_category(self, store):
        assert update_category_name(store, "ghost", "X").error == "Category not found"

    def test_reorder(self, store):
        a = create_category(store, "A").id
        b = create_category(store, "B").id
        assert reorder_categories(store, [b, a]).success
        assert [c.name for c in get_all_categories(store)] == ["B", "A"]


class TestSponsors:
    def test_sponsor_needs_existing_category(self, store):
        result = create_sponsor(store, {"title": "Acme", "category_id": "ghost"})
        assert result.error == "Category not found"

    def test_sponsors_are_ordered_per_category(self, store):
        gold = create_category(store, "Gold").id
        silver = create_category(store, "Silver").id
        _sponsor(store, "A", gold)
        _sponsor(store, "B", silver)
        _sponsor(store, "C", gold)
        assert [(s.title, s.order) for s in get_sponsors_by_category(store, gold)] == [
            ("A", 0), ("C", 1),
        ]
        assert get_sponsors_by_category(store, silver)[0].order == 0

    def test_moving_category_appends_and_compacts(self, store):
        gold = create_category(store, "Gold").id
        silver = create_category(store, "Silver").id
        a = _sponsor(store, "A", gold)
        _sponsor(store, "B", gold)
        _sponsor(store, "C", silver)

        assert update_sponsor(store, a, {"category_id": silver}).success
        assert [(s.title, s.order) for s in get_sponsors_by_category(store, gold)] == [("B", 0)]
        moved = get_sponsors_by_category(store, silver)
        assert [(s.title, s.order) for s in moved] == [("C", 0), ("A", 1)]
        assert moved[1].category_name == "Silver"

    def test_reorder_within_category(self, store):
        gold = create_category(store, "Gold").id
        a = _sponsor(store, "A", gold)
        b = _sponsor(store, "B", gold)
        assert reorder_sponsors(store, gold, [b, a]).success
        assert [s.title for s in get_sponsors_by_category(store, gold)] == ["B", "A"]
        assert not reorder_sponsors(store, gold, [b]).success

    def test_grouping_skips_empty_categories(self, store):
        gold = create_category(store, "Gold").id
        create_category(store, "Silver")
        _sponsor(store, "A", gold)
        groups = get_sponsors_grouped_by_category(store)
        assert len(groups) == 1
        assert groups[0]["category"].name == "Gold"
        assert [s.title for s in groups[0]["sponsors"]] == ["A"]


class TestPromotions:
    def test_create_and_delete_renumbers(self, store):
        first = create_promotion(store, {"title": "One"}, created_by="SYN-ADMIN-RAV-0001").id
        create_promotion(store, {"title": "Two"}, created_by="SYN-ADMIN-RAV-0001")
        assert delete_promotion(store, first).success
        promos = get_all_promotions(store)
        assert [(p.title, p.order) for p in promos] == [("Two", 0)]
        assert promos[0].created_by == "SYN-ADMIN-RAV-0001"

    def test_promotional_space_is_a_single_document(self, store):
        assert get_promotional_space(store) is None
        update_promotional_space(store, link="https://a.example", images=[], updated_by="x")
        update_promotional_space(
            store, link="https://b.example", images=["data:image/png;base64,AA=="],
            updated_by="y",
        )
        space = get_promotional_space(store)
        assert space.link == "https://b.example"
        assert space.updated_by == "y"
        assert len(space.images) == 1
