from decimal import Decimal

import pytest

from bakery_pos.services import catalog_service
from bakery_pos.services.catalog_service import derive_status, resolve_price
from bakery_pos.validation import ConflictError, NotFoundError, ValidationError

from conftest import make_product


# =============================================================================
# PRICE RESOLUTION
# =============================================================================


class TestResolvePrice:
    product = {
        "counter_price": Decimal("120.00"),
        "wholesale_price": Decimal("100.00"),
        "custom_price": Decimal("95.00"),
    }

    @pytest.mark.parametrize(
        "price_type,expected",
        [
            ("counter", "120.00"),
            ("wholesale", "100.00"),
            ("custom", "95.00"),
            ("bogus", "120.00"),
            (None, "120.00"),
        ],
    )
    def test_tiers(self, price_type, expected):
        assert resolve_price(self.product, price_type) == Decimal(expected)

    def test_custom_falls_back_to_counter(self):
        product = dict(self.product, custom_price=None)
        assert resolve_price(product, "custom") == Decimal("120.00")

    def test_accepts_serialized_products(self):
        product = {"counter_price": "50.00", "wholesale_price": "40.00", "custom_price": None}
        assert resolve_price(product, "wholesale") == Decimal("40.00")

    def test_is_pure(self):
        before = dict(self.product)
        assert resolve_price(self.product, "custom") == resolve_price(self.product, "custom")
        assert self.product == before


class TestDeriveStatus:

    @pytest.mark.parametrize(
        "stock,current,expected",
        [
            (11, "active", "active"),
            (10, "active", "low_stock"),
            (0, None, "low_stock"),
            (50, "low_stock", "active"),
            (50, "inactive", "inactive"),
            (0, "inactive", "inactive"),
        ],
    )
    def test_threshold_and_inactive(self, stock, current, expected):
        assert derive_status(stock, current) == expected


# =============================================================================
# CATALOG OPERATIONS (every backend)
# =============================================================================


class TestCatalogService:

    def test_create_derives_status_and_links_category(self, store):
        category = catalog_service.create_category(store, patch={"name": "Breads"})
        product = make_product(store, stock=5)

        assert product["status"] == "low_stock"
        assert product["category_id"] == category["id"]
        assert product["counter_price"] == Decimal("50.00")

    def test_duplicate_sku_conflicts(self, store):
        make_product(store, sku="DUP1")
        with pytest.raises(ConflictError):
            make_product(store, sku="DUP1", name="Other")

    def test_update_sku_to_existing_conflicts(self, store):
        make_product(store, sku="A1")
        other = make_product(store, sku="B1")
        with pytest.raises(ConflictError):
            catalog_service.update_product(store, other["id"], patch={"sku": "A1"})

    def test_update_stock_recomputes_status(self, store):
        product = make_product(store, stock=20)
        updated = catalog_service.update_product(store, product["id"], patch={"stock": 3})
        assert updated["status"] == "low_stock"

    def test_inactive_survives_stock_change(self, store):
        product = make_product(store, stock=20)
        catalog_service.update_product(store, product["id"], patch={"status": "inactive"})

        adjusted = catalog_service.adjust_stock(store, product["id"], -15)
        assert adjusted["stock"] == 5
        assert adjusted["status"] == "inactive"

        reactivated = catalog_service.update_product(store, product["id"], patch={"status": "active"})
        assert reactivated["status"] == "low_stock"

    def test_update_missing_product(self, store):
        with pytest.raises(NotFoundError):
            catalog_service.update_product(store, 404, patch={"name": "x"})

    def test_delete(self, store):
        product = make_product(store)
        catalog_service.delete_product(store, product["id"])
        with pytest.raises(NotFoundError):
            catalog_service.get_product(store, product["id"])
        with pytest.raises(NotFoundError):
            catalog_service.delete_product(store, product["id"])

    def test_adjust_stock_clamps_at_zero(self, store):
        product = make_product(store, stock=4)
        adjusted = catalog_service.adjust_stock(store, product["id"], -10)
        assert adjusted["stock"] == 0
        assert adjusted["status"] == "low_stock"

    def test_adjust_stock_restock_reactivates(self, store):
        product = make_product(store, stock=2)
        adjusted = catalog_service.adjust_stock(store, product["id"], 30)
        assert adjusted["stock"] == 32
        assert adjusted["status"] == "active"

    def test_adjust_stock_unknown_product(self, store):
        with pytest.raises(NotFoundError):
            catalog_service.adjust_stock(store, 999, -1)

    def test_adjust_stock_rejects_non_integer_delta(self, store):
        product = make_product(store)
        with pytest.raises(ValidationError):
            catalog_service.adjust_stock(store, product["id"], 1.5)

    def test_duplicate_category_conflicts(self, store):
        catalog_service.create_category(store, patch={"name": "Cakes"})
        with pytest.raises(ConflictError):
            catalog_service.create_category(store, patch={"name": "cakes"})


class TestListProducts:

    def test_search_and_category_filter(self, seeded_store):
        store = seeded_store

        everything = catalog_service.list_products(store)
        assert len(everything) == 10
        assert catalog_service.list_products(store, category="All") == everything

        breads = catalog_service.list_products(store, category="Breads")
        assert {p["sku"] for p in breads} == {"WWB001", "WB001"}

        by_name = catalog_service.list_products(store, search="croissant")
        assert {p["sku"] for p in by_name} == {"BC001", "AC001"}

        by_sku = catalog_service.list_products(store, search="rvc")
        assert [p["name"] for p in by_sku] == ["Red Velvet Cake"]

        by_category = catalog_service.list_products(store, search="SWEET")
        assert len(by_category) == 3

        combined = catalog_service.list_products(store, category="Cakes", search="vanilla")
        assert [p["sku"] for p in combined] == ["VC001"]

    def test_seeded_statuses(self, seeded_store):
        products = {p["sku"]: p for p in catalog_service.list_products(seeded_store)}
        assert products["CC001"]["status"] == "active"
        assert products["AC001"]["status"] == "low_stock"
        assert products["RG001"]["status"] == "low_stock"

    def test_low_stock_products(self, seeded_store):
        low = {p["sku"] for p in catalog_service.low_stock_products(seeded_store)}
        assert low == {"AC001", "WWB001", "GJ001", "RG001"}
