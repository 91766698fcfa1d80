"""
synapse.services.sponsor_service — Sponsors, Promotions & Sidebar Space
=======================================================================

Three related pieces of the sponsors page:

* **Categories** (``Title Sponsor``, ``Gold`` …), ordered 0-based.  A
  category cannot be deleted while any sponsor still points at it; the
  check and the delete run in one transaction.
* **Sponsors**, ordered 0-based *within* their category.  The category
  name is copied onto each sponsor for display and kept in step when the
  category is renamed.
* **Promotions** (0-based) and the single ``sidebar_promo`` promotional
  space document.
"""

from __future__ import annotations

import logging

from synapse.constants import (
    PROMOTIONAL_SPACE,
    PROMOTIONS,
    SIDEBAR_PROMO_DOC,
    SPONSOR_CATEGORIES,
    SPONSORS,
)
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import (
    Category,
    Promotion,
    PromotionalSpace,
    Sponsor,
    decode_many,
    decode_one,
)
from synapse.services.audit_service import audited_set, audited_update, log_admin_action
from synapse.services.ordering import (
    compact,
    create_ordered,
    delete_ordered,
    next_order,
    reorder_audited,
)
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

ORDER_START = 0

CATEGORY_IN_USE = "Cannot delete category with sponsors. Remove sponsors first."


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def get_all_categories(store: DocumentStore) -> list[Category]:
    try:
        return decode_many(Category, store.list(SPONSOR_CATEGORIES, order_by="order"))
    except StoreError:
        logger.exception("Error fetching sponsor categories")
        return []


def create_category(store: DocumentStore, name: str, *, actor_id: str | None = None) -> ServiceResult:
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        doc_id = create_ordered(
            store, SPONSOR_CATEGORIES,
            {"name": name, "created_at": SERVER_TIMESTAMP},
            start=ORDER_START, actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error creating sponsor category %r", name)
        return ServiceResult.fail("Failed to create category")
    return ServiceResult.ok(doc_id)


def update_category_name(
    store: DocumentStore, category_id: str, name: str, *, actor_id: str | None = None,
) -> ServiceResult:
    """Rename a category and its sponsors' copy of the name together."""
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        with store.transaction(SPONSOR_CATEGORIES, SPONSORS) as tx:
            before = tx.get(SPONSOR_CATEGORIES, category_id)
            if before is None:
                return ServiceResult.fail("Category not found")
            tx.update(SPONSOR_CATEGORIES, category_id, {"name": name})
            for snap in tx.list(SPONSORS, where={"category_id": category_id}):
                tx.update(SPONSORS, snap.id, {"category_name": name})
            if actor_id is not None:
                log_admin_action(
                    tx, actor_id=actor_id, action_type="UPDATE",
                    collection=SPONSOR_CATEGORIES, target_id=category_id,
                    before=before.data, after={**before.data, "name": name},
                )
    except StoreError:
        logger.exception("Error renaming sponsor category %s", category_id)
        return ServiceResult.fail("Failed to update name")
    return ServiceResult.ok(category_id)


def reorder_categories(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, SPONSOR_CATEGORIES, ordered_ids, start=ORDER_START, actor_id=actor_id,
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering sponsor categories")
        return ServiceResult.fail("Failed to update orders")
    return ServiceResult.ok()


def delete_category(
    store: DocumentStore, category_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    """Delete an empty category.  Refused while sponsors reference it."""
    try:
        with store.transaction(SPONSOR_CATEGORIES, SPONSORS) as tx:
            if tx.count(SPONSORS, where={"category_id": category_id}):
                return ServiceResult.fail(CATEGORY_IN_USE)
            if not delete_ordered(
                tx, SPONSOR_CATEGORIES, category_id, start=ORDER_START, actor_id=actor_id,
            ):
                return ServiceResult.fail("Category not found")
    except StoreError:
        logger.exception("Error deleting sponsor category %s", category_id)
        return ServiceResult.fail("Failed to delete category")
    logger.info("Sponsor category %s deleted", category_id)
    return ServiceResult.ok(category_id)


# ---------------------------------------------------------------------------
# Sponsors
# ---------------------------------------------------------------------------
def get_all_sponsors(store: DocumentStore) -> list[Sponsor]:
    try:
        return decode_many(Sponsor, store.list(SPONSORS, order_by="order"))
    except StoreError:
        logger.exception("Error fetching sponsors")
        return []


def get_sponsors_by_category(store: DocumentStore, category_id: str) -> list[Sponsor]:
    try:
        return decode_many(
            Sponsor, store.list(SPONSORS, where={"category_id": category_id}, order_by="order"),
        )
    except StoreError:
        logger.exception("Error fetching sponsors for category %s", category_id)
        return []


def get_sponsors_grouped_by_category(store: DocumentStore) -> list[dict]:
    """``[{"category": Category, "sponsors": [Sponsor, ...]}, ...]``.

    Categories come in their display order; empty ones are left out.
    """
    sponsors = get_all_sponsors(store)
    groups = []
    for category in get_all_categories(store):
        members = [s for s in sponsors if s.category_id == category.id]
        if members:
            groups.append({"category": category, "sponsors": members})
    return groups


def create_sponsor(store: DocumentStore, data: dict, *, actor_id: str | None = None) -> ServiceResult:
    category_id = data.get("category_id")
    try:
        with store.transaction(SPONSOR_CATEGORIES, SPONSORS) as tx:
            category = decode_one(Category, tx.get(SPONSOR_CATEGORIES, category_id)) if category_id else None
            if category is None:
                return ServiceResult.fail("Category not found")
            body = {
                **{k: v for k, v in data.items() if k not in {"id", "order"}},
                "category_name": category.name,
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            }
            doc_id = create_ordered(
                tx, SPONSORS, body, start=ORDER_START, actor_id=actor_id, scope_key="category_id",
            )
    except StoreError:
        logger.exception("Error creating sponsor")
        return ServiceResult.fail("Failed to create sponsor")
    return ServiceResult.ok(doc_id)


def update_sponsor(
    store: DocumentStore, sponsor_id: str, updates: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    """Partial update.  Moving to another category appends it there."""
    fields = {k: v for k, v in updates.items() if k not in {"id", "order", "created_at"}}
    fields["updated_at"] = SERVER_TIMESTAMP
    try:
        with store.transaction(SPONSOR_CATEGORIES, SPONSORS) as tx:
            before = tx.get(SPONSORS, sponsor_id)
            if before is None:
                return ServiceResult.fail("Sponsor not found")
            old_category = before.data.get("category_id")
            new_category = fields.get("category_id", old_category)
            if new_category != old_category:
                category = decode_one(Category, tx.get(SPONSOR_CATEGORIES, new_category))
                if category is None:
                    return ServiceResult.fail("Category not found")
                fields["category_name"] = category.name
                fields["order"] = next_order(
                    tx, SPONSORS, start=ORDER_START, where={"category_id": new_category},
                )
            tx.update(SPONSORS, sponsor_id, fields)
            if new_category != old_category:
                compact(tx, SPONSORS, start=ORDER_START, where={"category_id": old_category})
            if actor_id is not None:
                log_admin_action(
                    tx, actor_id=actor_id, action_type="UPDATE", collection=SPONSORS,
                    target_id=sponsor_id, before=before.data,
                    after=tx.get(SPONSORS, sponsor_id).data,
                )
    except StoreError:
        logger.exception("Error updating sponsor %s", sponsor_id)
        return ServiceResult.fail("Failed to update sponsor")
    return ServiceResult.ok(sponsor_id)


def reorder_sponsors(
    store: DocumentStore,
    category_id: str,
    ordered_ids: list[str],
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, SPONSORS, ordered_ids, start=ORDER_START, actor_id=actor_id,
            where={"category_id": category_id},
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering sponsors in %s", category_id)
        return ServiceResult.fail("Failed to update orders")
    return ServiceResult.ok()


def delete_sponsor(store: DocumentStore, sponsor_id: str, *, actor_id: str | None = None) -> ServiceResult:
    try:
        if not delete_ordered(
            store, SPONSORS, sponsor_id, start=ORDER_START, actor_id=actor_id,
            scope_key="category_id",
        ):
            return ServiceResult.fail("Sponsor not found")
    except StoreError:
        logger.exception("Error deleting sponsor %s", sponsor_id)
        return ServiceResult.fail("Failed to delete sponsor")
    return ServiceResult.ok(sponsor_id)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------
def get_all_promotions(store: DocumentStore) -> list[Promotion]:
    try:
        return decode_many(Promotion, store.list(PROMOTIONS, order_by="order"))
    except StoreError:
        logger.exception("Error fetching promotions")
        return []


def create_promotion(
    store: DocumentStore, data: dict, *, created_by: str, actor_id: str | None = None,
) -> ServiceResult:
    body = {
        **{k: v for k, v in data.items() if k not in {"id", "order"}},
        "created_by": created_by,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    }
    try:
        doc_id = create_ordered(store, PROMOTIONS, body, start=ORDER_START, actor_id=actor_id)
    except StoreError:
        logger.exception("Error creating promotion")
        return ServiceResult.fail("Failed to create promotion")
    return ServiceResult.ok(doc_id)


def update_promotion(
    store: DocumentStore, promotion_id: str, updates: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    fields = {k: v for k, v in updates.items() if k not in {"id", "order", "created_at", "created_by"}}
    fields["updated_at"] = SERVER_TIMESTAMP
    try:
        audited_update(store, PROMOTIONS, promotion_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Promotion not found")
    except StoreError:
        logger.exception("Error updating promotion %s", promotion_id)
        return ServiceResult.fail("Failed to update promotion")
    return ServiceResult.ok(promotion_id)


def reorder_promotions(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(store, PROMOTIONS, ordered_ids, start=ORDER_START, actor_id=actor_id)
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering promotions")
        return ServiceResult.fail("Failed to update orders")
    return ServiceResult.ok()


def delete_promotion(store: DocumentStore, promotion_id: str, *, actor_id: str | None = None) -> ServiceResult:
    try:
        if not delete_ordered(store, PROMOTIONS, promotion_id, start=ORDER_START, actor_id=actor_id):
            return ServiceResult.fail("Promotion not found")
    except StoreError:
        logger.exception("Error deleting promotion %s", promotion_id)
        return ServiceResult.fail("Failed to delete promotion")
    return ServiceResult.ok(promotion_id)


# ---------------------------------------------------------------------------
# Promotional space
# ---------------------------------------------------------------------------
def get_promotional_space(store: DocumentStore) -> PromotionalSpace | None:
    try:
        return decode_one(PromotionalSpace, store.get(PROMOTIONAL_SPACE, SIDEBAR_PROMO_DOC))
    except StoreError:
        logger.exception("Error fetching promotional space")
        return None


def update_promotional_space(
    store: DocumentStore,
    *,
    link: str,
    images: list[str],
    updated_by: str,
    actor_id: str | None = None,
) -> ServiceResult:
    try:
        audited_set(
            store, PROMOTIONAL_SPACE, SIDEBAR_PROMO_DOC,
            {"link": link, "images": images, "updated_by": updated_by,
             "updated_at": SERVER_TIMESTAMP},
            actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error updating promotional space")
        return ServiceResult.fail("Failed to update promotional space")
    return ServiceResult.ok(SIDEBAR_PROMO_DOC)
