"""
Store Catalog

Purchasable items loaded from the `store_items` collection. The cart never
reads the catalog itself; callers pass the loaded list into pricing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from student_services.document_store import DocumentStore

logger = logging.getLogger(__name__)

STORE_ITEMS_COLLECTION = "store_items"


@dataclass
class StoreItem:
    """A purchasable store item."""
    id: str
    name: str
    price: float
    description: str = ""
    original_price: Optional[float] = None
    category: str = ""
    features: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    image: str = ""
    rating: float = 5.0
    reviews: int = 0
    views: int = 0
    in_stock: bool = False
    stock_quantity: int = 0
    discount: Optional[float] = None
    featured: bool = False

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "StoreItem":
        return cls(
            id=doc_id,
            name=data.get("name") or "",
            description=data.get("description") or "",
            price=data.get("price") or 0,
            original_price=data.get("original_price"),
            category=data.get("category") or "",
            features=list(data.get("features") or []),
            tags=list(data.get("tags") or []),
            image=data.get("image_url") or "",
            rating=data.get("rating") or 5.0,
            reviews=data.get("reviews_count") or 0,
            views=data.get("views_count") or 0,
            in_stock=bool(data.get("in_stock")),
            stock_quantity=data.get("stock_quantity") or 0,
            discount=data.get("discount_percentage"),
            featured=bool(data.get("featured")),
        )


class StoreCatalog:
    """Loads store items from the document store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def fetch_items(self) -> List[StoreItem]:
        """Return every store item. Store errors propagate to the caller."""
        documents = await self.store.query(STORE_ITEMS_COLLECTION)
        items = [StoreItem.from_document(doc_id, data) for doc_id, data in documents]
        logger.info(f"✅ [StoreCatalog] Loaded {len(items)} store items")
        return items
