from decimal import Decimal

import pytest

from bakery_pos.services import customer_service
from bakery_pos.validation import ConflictError, NotFoundError

from conftest import make_customer


class TestCustomerService:

    def test_create_defaults(self, store):
        customer = make_customer(store)
        assert customer["balance"] == Decimal("0")
        assert customer["is_default"] is False
        assert customer["customer_type"] == "regular"

    def test_update(self, store):
        customer = make_customer(store)
        updated = customer_service.update_customer(store, customer["id"], patch={"email": "asha@example.com"})
        assert updated["email"] == "asha@example.com"
        assert updated["name"] == "Asha Rao"

    def test_update_missing(self, store):
        with pytest.raises(NotFoundError):
            customer_service.update_customer(store, 404, patch={"name": "x"})

    def test_delete(self, store):
        customer = make_customer(store)
        customer_service.delete_customer(store, customer["id"])
        with pytest.raises(NotFoundError):
            customer_service.get_customer(store, customer["id"])

    def test_walk_in_cannot_be_deleted(self, store):
        walk_in = customer_service.ensure_default_customer(store)
        with pytest.raises(ConflictError):
            customer_service.delete_customer(store, walk_in["id"])
        assert customer_service.get_default_customer(store)["id"] == walk_in["id"]

    def test_ensure_default_customer_is_idempotent(self, store):
        first = customer_service.ensure_default_customer(store)
        second = customer_service.ensure_default_customer(store)
        assert first["id"] == second["id"]
        assert first["name"] == "Walk-in Customer"
        assert store.count("customers", is_default=True) == 1


class TestCustomerSearch:

    @pytest.mark.parametrize(
        "search,expected",
        [
            ("sarah", ["Sarah Johnson"]),
            ("CHEN", ["Mike Chen"]),
            ("987654321", ["Sarah Johnson", "Mike Chen", "Emily Davis"]),
            ("3212", ["Emily Davis"]),
            ("EMILY@EMAIL", ["Emily Davis"]),
            ("nobody", []),
        ],
    )
    def test_search(self, seeded_store, search, expected):
        found = customer_service.list_customers(seeded_store, search=search)
        assert [c["name"] for c in found] == expected

    def test_no_search_lists_everyone(self, seeded_store):
        names = [c["name"] for c in customer_service.list_customers(seeded_store)]
        assert names == ["Walk-in Customer", "Sarah Johnson", "Mike Chen", "Emily Davis"]
