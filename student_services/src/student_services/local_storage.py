"""
Local Device Storage

Key/value string storage standing in for per-device local storage, and the
cart/wishlist persistence built on it. Writes go straight to the backing
storage; there is no batching, so the last writer wins.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CART_KEY = "cart"
WISHLIST_KEY = "wishlist"


class LocalStorage(ABC):
    """String key/value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...


class InMemoryLocalStorage(LocalStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


@dataclass
class CartSnapshot:
    """Cart and wishlist contents as persisted."""
    cart: Dict[str, int] = field(default_factory=dict)
    wishlist: List[str] = field(default_factory=list)


class CartPersistence:
    """Loads and saves cart/wishlist snapshots under the `cart` and `wishlist` keys."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def _load_json(self, key: str):
        raw = self.storage.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"❌ [CartPersistence] Error parsing saved {key}: {e}")
            return None

    def load(self) -> CartSnapshot:
        """Read the saved snapshot; unreadable or malformed entries start empty."""
        cart_data = self._load_json(CART_KEY)
        wishlist_data = self._load_json(WISHLIST_KEY)

        cart: Dict[str, int] = {}
        if isinstance(cart_data, dict):
            for item_id, quantity in cart_data.items():
                if isinstance(quantity, int) and not isinstance(quantity, bool) and quantity > 0:
                    cart[str(item_id)] = quantity

        wishlist: List[str] = []
        if isinstance(wishlist_data, list):
            for item_id in wishlist_data:
                if str(item_id) not in wishlist:
                    wishlist.append(str(item_id))

        return CartSnapshot(cart=cart, wishlist=wishlist)

    def save(self, snapshot: CartSnapshot) -> None:
        self.storage.set(CART_KEY, json.dumps(snapshot.cart))
        self.storage.set(WISHLIST_KEY, json.dumps(snapshot.wishlist))
