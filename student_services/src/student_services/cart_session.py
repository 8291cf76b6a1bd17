"""
Cart Session

Session-scoped cart (item id -> quantity) and wishlist (ordered set of item
ids). The state is loaded once when the session is created and every mutation
is written through to persistence immediately.
"""

from typing import Dict, Iterable, List, Tuple

from student_services.local_storage import CartPersistence, CartSnapshot
from student_services.store_catalog import StoreItem


class CartSession:
    """
    Cart and wishlist for one client session.

    Invariant: no cart entry ever holds a quantity of zero or less.
    """

    def __init__(self, persistence: CartPersistence):
        self.persistence = persistence
        snapshot = persistence.load()
        self._cart: Dict[str, int] = dict(snapshot.cart)
        self._wishlist: List[str] = list(snapshot.wishlist)

    @property
    def cart(self) -> Dict[str, int]:
        return dict(self._cart)

    @property
    def wishlist(self) -> List[str]:
        return list(self._wishlist)

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot(cart=dict(self._cart), wishlist=list(self._wishlist))

    def _persist(self) -> None:
        self.persistence.save(self.snapshot())

    # ==================== Cart ====================

    def add(self, item_id: str) -> None:
        """Increase the quantity by one, creating the entry at 1."""
        self._cart[item_id] = self._cart.get(item_id, 0) + 1
        self._persist()

    def remove(self, item_id: str) -> None:
        """Decrease the quantity by one; an entry at 1 is deleted instead."""
        quantity = self._cart.get(item_id)
        if quantity is None:
            return
        if quantity > 1:
            self._cart[item_id] = quantity - 1
        else:
            del self._cart[item_id]
        self._persist()

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Set an absolute quantity; zero or negative removes the entry."""
        if quantity <= 0:
            self._cart.pop(item_id, None)
        else:
            self._cart[item_id] = int(quantity)
        self._persist()

    def clear(self) -> None:
        self._cart = {}
        self._persist()

    def total_item_count(self) -> int:
        return sum(self._cart.values())

    def line_items(self, items: Iterable[StoreItem]) -> List[Tuple[StoreItem, int]]:
        """Resolve cart entries against the item list; ids not in the list are skipped."""
        by_id = {item.id: item for item in items}
        resolved = []
        for item_id, quantity in self._cart.items():
            item = by_id.get(item_id)
            if item is not None:
                resolved.append((item, quantity))
        return resolved

    def total_price(self, items: Iterable[StoreItem]) -> float:
        """Sum of price * quantity over every entry found in the item list."""
        return sum(item.price * quantity for item, quantity in self.line_items(items))

    # ==================== Wishlist ====================

    def toggle_wishlist(self, item_id: str) -> bool:
        """
        Add the item if absent, remove it if present.

        Returns:
            True if the item is in the wishlist afterwards
        """
        if item_id in self._wishlist:
            self._wishlist = [existing for existing in self._wishlist if existing != item_id]
            added = False
        else:
            self._wishlist.append(item_id)
            added = True
        self._persist()
        return added

    def is_in_wishlist(self, item_id: str) -> bool:
        return item_id in self._wishlist
