# Overview: Read-only product catalog lookups used by order fulfillment.

from __future__ import annotations

from ..extensions import db
from ..models import Product
from orderdesk.errors import ProductNotFoundError, ProductInactiveError


DEFAULT_SERVICE_TYPE = "Other"


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_sellable_products(product_ids: list[int]) -> dict[int, Product]:
    """
    Load every product in the cart; missing or inactive products reject the sale.

    Errors are reported for the first offending product in cart order.
    """
    unique_ids = set(product_ids)
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(unique_ids)).all()
    }
    for product_id in product_ids:
        product = products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if not product.is_active:
            raise ProductInactiveError(product.id, product.name)
    return products


def resolve_service_type(product: Product) -> str:
    """Service type stamped on an order: its first item's category name."""
    return product.category_name or DEFAULT_SERVICE_TYPE
