from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from ledgerflow.business.inventory.models import InventoryItem
from ledgerflow.business.inventory.schemas import PendingItem
from ledgerflow.platform.errors import InvalidReference
from ledgerflow.tenancy import TenantContext

logger = logging.getLogger("ledgerflow.inventory")


def _normalize_variants(variant_attributes: dict[str, Any] | None) -> dict[str, str]:
    if not variant_attributes:
        return {}
    return {
        str(key).strip().lower(): str(value).strip().lower()
        for key, value in variant_attributes.items()
        if value is not None and str(value).strip()
    }


def normalize_item_key(code_or_name: str, variant_attributes: dict[str, Any] | None = None) -> str:
    """Legacy lookup key: trimmed lower-case code or name plus sorted variants."""
    base = code_or_name.strip().lower()
    variants = _normalize_variants(variant_attributes)
    if not variants:
        return base
    suffix = "|".join(f"{key}={value}" for key, value in sorted(variants.items()))
    return f"{base}|{suffix}"


@dataclass(slots=True)
class ItemReference:
    inventory_item_id: uuid.UUID | None = None
    barcode: str | None = None
    item_code: str | None = None
    item_name: str | None = None
    variant_attributes: dict[str, Any] | None = None
    hsn_sac_code: str | None = None


@dataclass(slots=True)
class InventoryItemResolver:
    """Finds the inventory item a voucher line refers to.

    Lookup order is exact id, barcode, item code, name with variant attributes
    and finally the legacy normalized key. Only when all of them miss is a new
    item proposed; it is kept in ``pending`` and written at posting time.
    """

    ctx: TenantContext
    pending: dict[str, PendingItem] = field(default_factory=dict)

    def resolve(self, ref: ItemReference) -> uuid.UUID:
        if ref.inventory_item_id is not None:
            item = self.ctx.items.get(ref.inventory_item_id)
            if item is None or not item.is_active:
                raise InvalidReference("inventory item not found", inventory_item_id=ref.inventory_item_id)
            return item.id

        if ref.barcode:
            item = self.ctx.items.by_barcode(ref.barcode.strip())
            if item is not None and item.is_active:
                return item.id

        if ref.item_code:
            item = self.ctx.items.by_item_code(ref.item_code)
            if item is not None and item.is_active:
                return item.id

        if ref.item_name:
            item = self._match_name_and_variants(ref.item_name, ref.variant_attributes)
            if item is not None:
                return item.id

        label = ref.item_code or ref.item_name
        if not label or not label.strip():
            raise InvalidReference("line does not identify an inventory item", barcode=ref.barcode)

        item_key = normalize_item_key(label, ref.variant_attributes)
        item = self.ctx.items.by_item_key(item_key)
        if item is not None and item.is_active:
            return item.id

        pending = self.pending.get(item_key)
        if pending is None:
            pending = PendingItem(
                name=(ref.item_name or label).strip(),
                item_key=item_key,
                item_code=ref.item_code.strip() if ref.item_code else None,
                barcode=ref.barcode.strip() if ref.barcode else None,
                variant_attributes=ref.variant_attributes or None,
                hsn_sac_code=ref.hsn_sac_code,
            )
            self.pending[item_key] = pending
        return pending.id

    def _match_name_and_variants(self, name: str, variant_attributes: dict[str, Any] | None) -> InventoryItem | None:
        wanted = _normalize_variants(variant_attributes)
        for item in self.ctx.items.by_name(name):
            if item.is_active and _normalize_variants(item.variant_attributes) == wanted:
                return item
        return None


def materialize_pending_items(ctx: TenantContext, pending: list[PendingItem]) -> list[InventoryItem]:
    created: list[InventoryItem] = []
    for proposal in pending:
        item = InventoryItem(
            id=proposal.id,
            name=proposal.name,
            item_code=proposal.item_code,
            barcode=proposal.barcode,
            item_key=proposal.item_key,
            variant_attributes=proposal.variant_attributes,
            hsn_sac_code=proposal.hsn_sac_code,
            quantity_on_hand=0,
            avg_cost=0,
        )
        ctx.items.add(item)
        created.append(item)
        logger.info(
            "inventory.item_auto_created",
            extra={"item_id": str(item.id), "item_key": item.item_key, "tenant_id": ctx.tenant_id},
        )
    if created:
        ctx.session.flush()
    return created
