"""Product lookup used by the bundle engine to read live catalog prices and stock."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from catalog.models import Product


@dataclass(frozen=True)
class ProductInfo:
    id: int
    name: str
    price: Decimal
    is_available: bool


class CatalogProductLookup:
    """
    Reads products straight from the catalog table.
    Nothing is cached: bundle prices are computed on demand and must follow catalog price changes.
    """

    def get_product(self, product_id) -> Optional[ProductInfo]:
        return self.get_products([product_id]).get(product_id)

    def get_products(self, product_ids) -> dict:
        ids = {pid for pid in product_ids if pid is not None}
        if not ids:
            return {}
        return {
            product.id: self._to_info(product)
            for product in Product.objects.filter(id__in=ids)
        }

    @staticmethod
    def _to_info(product):
        return ProductInfo(
            id=product.id,
            name=product.name,
            price=product.price,
            is_available=product.is_available,
        )


class InMemoryProductLookup:
    """Lookup over a fixed mapping of ProductInfo, for previews and tests."""

    def __init__(self, products=None):
        self._products = {info.id: info for info in (products or [])}

    def get_product(self, product_id):
        return self._products.get(product_id)

    def get_products(self, product_ids):
        return {pid: self._products[pid] for pid in product_ids if pid in self._products}
