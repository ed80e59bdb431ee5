from .auth import User
from .catalog import Category, Product
from .customers import Customer
from .sales import Order, OrderItem, Payment

# Entity kind -> model. Kind names double as table and flat-file names.
MODELS_BY_KIND = {
    "users": User,
    "categories": Category,
    "products": Product,
    "customers": Customer,
    "orders": Order,
    "order_items": OrderItem,
    "payments": Payment,
}

ENTITY_KINDS = tuple(MODELS_BY_KIND)


def model_for(kind: str):
    try:
        return MODELS_BY_KIND[kind]
    except KeyError:
        raise KeyError(f"Unknown entity kind: {kind}")


__all__ = [
    'User', 'Category', 'Product', 'Customer', 'Order', 'OrderItem', 'Payment',
    'MODELS_BY_KIND', 'ENTITY_KINDS', 'model_for',
]
