"""SQLAlchemy ORM models.

Models represent database tables:
- brands, categories, sellers, tags: reference entities matched by name
- products: canonical product records matched by sku
- product_variants: variants matched by sku, owned by a product
- media, attributes: append-only rows owned by a product
- inventory, pricing, reviews, audits: auxiliary rows, never reconciled
"""

from marketplace_api.models.attribute import Attribute, AttributeType
from marketplace_api.models.audit import Audit
from marketplace_api.models.brand import Brand
from marketplace_api.models.category import Category
from marketplace_api.models.inventory import Inventory
from marketplace_api.models.media import Media, MediaType
from marketplace_api.models.pricing import Pricing
from marketplace_api.models.product import Product, ProductStatus
from marketplace_api.models.review import Review
from marketplace_api.models.seller import Seller
from marketplace_api.models.tag import Tag
from marketplace_api.models.variant import ProductVariant

__all__ = [
    "Attribute",
    "AttributeType",
    "Audit",
    "Brand",
    "Category",
    "Inventory",
    "Media",
    "MediaType",
    "Pricing",
    "Product",
    "ProductStatus",
    "ProductVariant",
    "Review",
    "Seller",
    "Tag",
]
