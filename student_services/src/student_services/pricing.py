"""
Order Pricing

Subtotal, shipping, VAT, coupon discount and total for a cart.
"""

from dataclasses import dataclass
from typing import Optional

from student_services.config import PricingConfig


@dataclass
class OrderTotals:
    """Derived totals shown on the cart and checkout pages."""
    subtotal: float
    shipping: float
    tax: float
    discount: float
    total: float

    def rounded(self) -> "OrderTotals":
        return OrderTotals(
            subtotal=round(self.subtotal, 2),
            shipping=round(self.shipping, 2),
            tax=round(self.tax, 2),
            discount=round(self.discount, 2),
            total=round(self.total, 2),
        )


def shipping_for(subtotal: float, config: PricingConfig) -> float:
    """Free shipping only strictly above the threshold."""
    return 0.0 if subtotal > config.free_shipping_threshold else config.shipping_cost


def tax_for(subtotal: float, config: PricingConfig) -> float:
    return subtotal * config.vat_rate


def compute_totals(subtotal: float, config: PricingConfig, discount: float = 0.0) -> OrderTotals:
    shipping = shipping_for(subtotal, config)
    tax = tax_for(subtotal, config)
    return OrderTotals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        discount=discount,
        total=subtotal + shipping + tax - discount,
    )


@dataclass
class CouponResult:
    """Outcome of applying a coupon code."""
    discount: float
    error: Optional[str] = None
    success: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.error is None


def apply_coupon(code: str, subtotal: float, current_discount: float, config: PricingConfig) -> CouponResult:
    """
    Apply a coupon against the current subtotal.

    A match (case-insensitive) sets the discount to subtotal * coupon rate.
    Anything else reports an error and leaves the current discount as it was.
    """
    normalized = (code or "").strip()
    if not normalized:
        return CouponResult(discount=current_discount, error="Please enter a coupon code")
    if normalized.upper() == config.coupon_code.upper():
        return CouponResult(
            discount=subtotal * config.coupon_rate,
            success="Discount applied successfully!",
        )
    return CouponResult(discount=current_discount, error="Invalid coupon code")
