# Overview: Startup seeding: default staff accounts, walk-in customer and the sample bakery catalog.

from __future__ import annotations

import logging
from decimal import Decimal

from .auth_service import create_user
from .catalog_service import create_category, create_product
from .customer_service import create_customer, ensure_default_customer

logger = logging.getLogger(__name__)

DEFAULT_USERS = (
    ("admin", "admin123", "admin"),
    ("cashier", "cashier123", "cashier"),
)

SAMPLE_CATEGORIES = (
    ("Cakes", "All types of cakes"),
    ("Pastries", "Fresh pastries and croissants"),
    ("Breads", "Freshly baked breads"),
    ("Sweets", "Traditional and modern sweets"),
)

# name, sku, category, counter, wholesale, stock, unit, gst, image id, barcode
SAMPLE_PRODUCTS = (
    ("Chocolate Cake", "CC001", "Cakes", "120.00", "100.00", 25, "piece", "18.00", "photo-1578985545062-69928b1d9587", "1234567890123"),
    ("Vanilla Cake", "VC001", "Cakes", "110.00", "90.00", 20, "piece", "18.00", "photo-1486427944299-d1955d23e34d", "1234567890124"),
    ("Red Velvet Cake", "RVC001", "Cakes", "150.00", "130.00", 15, "piece", "18.00", "photo-1621303837174-89787a7d4729", "1234567890125"),
    ("Butter Croissant", "BC001", "Pastries", "50.00", "40.00", 12, "piece", "18.00", "photo-1509440159596-0249088772ff", "1234567890126"),
    ("Almond Croissant", "AC001", "Pastries", "60.00", "50.00", 10, "piece", "18.00", "photo-1555507036-ab794f1ec35d", "1234567890127"),
    ("Glazed Donuts", "GD001", "Sweets", "40.00", "35.00", 30, "piece", "18.00", "photo-1551024506-0bccd828d307", "1234567890128"),
    ("Whole Wheat Bread", "WWB001", "Breads", "40.00", "32.00", 8, "loaf", "5.00", "photo-1549931319-a545dcf3bc73", "1234567890129"),
    ("White Bread", "WB001", "Breads", "35.00", "28.00", 15, "loaf", "5.00", "photo-1509440159596-0249088772ff", "1234567890130"),
    ("Gulab Jamun", "GJ001", "Sweets", "80.00", "70.00", 5, "kg", "18.00", "photo-1601050690597-df0568f70950", "1234567890131"),
    ("Rasgulla", "RG001", "Sweets", "90.00", "80.00", 3, "kg", "18.00", "photo-1609501676725-7186f681d32f", "1234567890132"),
)

SAMPLE_CUSTOMERS = (
    ("Sarah Johnson", "9876543210", "sarah@email.com", "regular"),
    ("Mike Chen", "9876543211", "mike@email.com", "wholesale"),
    ("Emily Davis", "9876543212", "emily@email.com", "regular"),
)

IMAGE_BASE_URL = "https://images.unsplash.com/"


def seed_samples(store) -> dict:
    """
    Add the sample categories, products and customers that are not there
    yet (matched by name / SKU). Safe to run repeatedly.
    """
    created = {"categories": 0, "products": 0, "customers": 0}

    with store.transaction():
        existing_categories = {c["name"] for c in store.list("categories")}
        for name, description in SAMPLE_CATEGORIES:
            if name not in existing_categories:
                create_category(store, patch={"name": name, "description": description})
                created["categories"] += 1

        for name, sku, category, counter, wholesale, stock, unit, gst, image, barcode in SAMPLE_PRODUCTS:
            if store.find_one("products", sku=sku) is not None:
                continue
            create_product(store, patch={
                "name": name,
                "sku": sku,
                "category": category,
                "counter_price": Decimal(counter),
                "wholesale_price": Decimal(wholesale),
                "stock": stock,
                "unit": unit,
                "gst_rate": Decimal(gst),
                "image_url": IMAGE_BASE_URL + image,
                "barcode": barcode,
            })
            created["products"] += 1

        existing_customers = {c["name"] for c in store.list("customers")}
        for name, phone, email, customer_type in SAMPLE_CUSTOMERS:
            if name not in existing_customers:
                create_customer(store, patch={
                    "name": name,
                    "phone": phone,
                    "email": email,
                    "customer_type": customer_type,
                })
                created["customers"] += 1

    return created


def seed_defaults(store, include_samples: bool = True) -> bool:
    """
    Seed an empty store: default users, the walk-in customer and (optionally)
    the sample catalog. Returns False without changes when users already exist.
    """
    if store.count("users") > 0:
        return False

    with store.transaction():
        for username, password, role in DEFAULT_USERS:
            create_user(store, username=username, password=password, role=role)
        ensure_default_customer(store)
        if include_samples:
            seed_samples(store)

    logger.info("Seeded default data (samples=%s)", include_samples)
    return True
