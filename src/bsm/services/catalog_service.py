from __future__ import annotations

import sqlite3
from typing import Optional

from bsm.domain.errors import NotFoundError, ValidationError
from bsm.domain.models import Client, Item, Supplier
from bsm.services import payloads


class CatalogService:
    def __init__(self, repo):
        self.repo = repo

    def add_item(
        self,
        actor_id: str,
        sku: str,
        name: str,
        unit: str = "pcs",
        default_cost_price=0,
        default_selling_price=None,
    ) -> Item:
        sku = (sku or "").strip()
        name = (name or "").strip()
        if not sku or not name:
            raise ValidationError("SKU and Name are required.")
        cost = payloads.non_negative_price(default_cost_price, "Default cost price")
        selling = (
            None
            if default_selling_price is None
            else payloads.non_negative_price(default_selling_price, "Default selling price")
        )
        try:
            item_id = self.repo.add_item(actor_id, sku, name, (unit or "pcs").strip() or "pcs", cost, selling)
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e) and "items.sku" in str(e):
                raise ValidationError(f"SKU already exists: {sku}") from e
            raise
        return self.get_item(actor_id, item_id)

    def get_item(self, actor_id: str, item_id: int) -> Item:
        item = self.repo.get_item(actor_id, int(item_id))
        if not item:
            raise NotFoundError("Item not found.")
        return item

    def get_item_by_sku(self, actor_id: str, sku: str) -> Item:
        item = self.repo.get_item_by_sku(actor_id, (sku or "").strip())
        if not item:
            raise NotFoundError("Item not found.")
        return item

    def list_items(self, actor_id: str) -> list[Item]:
        return self.repo.list_items(actor_id)

    def add_client(
        self,
        actor_id: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Client:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required.")
        client_id = self.repo.add_client(
            actor_id, name, payloads.optional_text(email), payloads.optional_text(phone), payloads.optional_text(address)
        )
        return self.repo.get_client(actor_id, client_id)

    def add_supplier(
        self,
        actor_id: str,
        name: str,
        contact_person: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Supplier:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Supplier name is required.")
        supplier_id = self.repo.add_supplier(
            actor_id,
            name,
            payloads.optional_text(contact_person),
            payloads.optional_text(email),
            payloads.optional_text(phone),
        )
        return self.repo.get_supplier(actor_id, supplier_id)
