"""
Checkout

Checkout form validation and the simulated order submission. Validation runs
the rules in a fixed order and reports only the first violation. Submission
waits out a simulated network call, issues a six-digit display order number
and clears the cart; nothing about the order is persisted.
"""

import asyncio
import logging
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, List, Optional

from student_services.cart_session import CartSession
from student_services.config import PricingConfig
from student_services.pricing import CouponResult, OrderTotals, apply_coupon, compute_totals
from student_services.store_catalog import StoreItem
from student_services.viewer import Viewer

logger = logging.getLogger(__name__)

CREDIT_CARD = "credit-card"
PAYMENT_METHODS = (CREDIT_CARD, "mada", "apple-pay", "cash-on-delivery")

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PHONE_PATTERN = re.compile(r"\d{9,15}")
CARD_NUMBER_PATTERN = re.compile(r"\d{16}")
EXPIRY_PATTERN = re.compile(r"(0[1-9]|1[0-2])/[0-9]{2}")
CVV_PATTERN = re.compile(r"\d{3,4}")

GENERIC_SUBMIT_ERROR = "An error occurred while processing your order. Please try again."


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


@dataclass
class CheckoutForm:
    """Shipping, contact and payment fields collected on the checkout page."""
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "Saudi Arabia"
    notes: str = ""
    save_info: bool = True
    payment_method: str = CREDIT_CARD
    card_number: str = ""
    card_name: str = ""
    card_expiry: str = ""
    card_cvv: str = ""
    agree_to_terms: bool = False

    @classmethod
    def prefilled(cls, user: Optional[Viewer]) -> "CheckoutForm":
        """Start a form with the signed-in user's contact details."""
        if user is None:
            return cls()
        return cls(full_name=user.name or "", email=user.email or "", phone=user.phone or "")


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


def validate_checkout_form(form: CheckoutForm) -> ValidationResult:
    """
    Check the form, stopping at the first failed rule.

    Order: required contact fields, terms agreement, email shape, phone digits
    (9-15 after stripping non-digits), then card details when paying by credit
    card (all present, 16-digit number, MM/YY expiry, 3-4 digit CVV).
    """
    if not all([form.full_name, form.email, form.phone, form.address, form.city]):
        return ValidationResult(False, "Please fill in all required fields")

    if not form.agree_to_terms:
        return ValidationResult(False, "You must agree to the terms and conditions to continue")

    if not EMAIL_PATTERN.fullmatch(form.email):
        return ValidationResult(False, "Please enter a valid email address")

    if not PHONE_PATTERN.fullmatch(_digits(form.phone)):
        return ValidationResult(False, "Please enter a valid phone number")

    if form.payment_method == CREDIT_CARD:
        if not all([form.card_number, form.card_name, form.card_expiry, form.card_cvv]):
            return ValidationResult(False, "Please enter all credit card details")

        if not CARD_NUMBER_PATTERN.fullmatch(_digits(form.card_number)):
            return ValidationResult(False, "Please enter a valid card number (16 digits)")

        if not EXPIRY_PATTERN.fullmatch(form.card_expiry):
            return ValidationResult(False, "Please enter a valid expiry date (MM/YY)")

        if not CVV_PATTERN.fullmatch(form.card_cvv):
            return ValidationResult(False, "Please enter a valid CVV (3-4 digits)")

    return ValidationResult(True)


def format_card_number(value: str) -> str:
    """Group the first 16 digits in blocks of four; fewer than 4 digits are returned as typed."""
    digits = _digits(value)
    match = re.search(r"\d{4,16}", digits)
    if not match:
        return value
    number = match.group(0)
    return " ".join(number[i:i + 4] for i in range(0, len(number), 4))


def format_expiry_date(value: str) -> str:
    digits = _digits(value)
    if len(digits) >= 2:
        return f"{digits[:2]}/{digits[2:4]}"
    return digits


@dataclass
class OrderLine:
    item_id: str
    name: str
    unit_price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass
class Order:
    """In-memory order built at submission time; never persisted."""
    lines: List[OrderLine]
    totals: OrderTotals
    full_name: str
    email: str
    phone: str
    address: str
    city: str
    postal_code: str
    country: str
    notes: str
    payment_method: str
    order_number: Optional[str] = None
    placed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SubmissionResult:
    success: bool
    order: Optional[Order] = None
    error: Optional[str] = None

    @property
    def order_number(self) -> Optional[str]:
        return self.order.order_number if self.order else None


class CheckoutFlow:
    """
    Checkout page state: coupon/discount, form error and the submission outcome.

    `processor` stands in for the order API call; by default it only sleeps for
    the configured latency. There is no retry and no timeout.
    """

    def __init__(
        self,
        cart: CartSession,
        pricing: Optional[PricingConfig] = None,
        latency_seconds: float = 2.0,
        processor: Optional[Callable[[Order], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.cart = cart
        self.pricing = pricing or PricingConfig()
        self.latency_seconds = latency_seconds
        self.processor = processor or self._simulate_processing
        self._rng = rng or random.Random()

        self.discount = 0.0
        self.coupon_error: Optional[str] = None
        self.coupon_success: Optional[str] = None
        self.form_error: Optional[str] = None
        self.is_submitting = False
        self.order_complete = False
        self.order_number: Optional[str] = None

    async def _simulate_processing(self, order: Order) -> None:
        await asyncio.sleep(self.latency_seconds)

    def quote(self, items: Iterable[StoreItem]) -> OrderTotals:
        return compute_totals(self.cart.total_price(items), self.pricing, self.discount)

    def apply_coupon(self, code: str, items: Iterable[StoreItem]) -> CouponResult:
        """Apply a coupon to the current subtotal; a rejected code keeps the previous discount."""
        result = apply_coupon(code, self.cart.total_price(items), self.discount, self.pricing)
        self.discount = result.discount
        self.coupon_error = result.error
        self.coupon_success = result.success
        return result

    def validate(self, form: CheckoutForm) -> ValidationResult:
        result = validate_checkout_form(form)
        self.form_error = result.error
        return result

    def _build_order(self, form: CheckoutForm, items: List[StoreItem]) -> Order:
        lines = [
            OrderLine(item_id=item.id, name=item.name, unit_price=item.price, quantity=quantity)
            for item, quantity in self.cart.line_items(items)
        ]
        return Order(
            lines=lines,
            totals=self.quote(items),
            full_name=form.full_name,
            email=form.email,
            phone=form.phone,
            address=form.address,
            city=form.city,
            postal_code=form.postal_code,
            country=form.country,
            notes=form.notes,
            payment_method=form.payment_method,
        )

    async def submit(self, form: CheckoutForm, items: Iterable[StoreItem]) -> SubmissionResult:
        """
        Validate the form and run the simulated order submission.

        On success the cart is cleared and the flow switches to the
        confirmation state. On a processing error the cart is left untouched
        and a generic message is reported.
        """
        items = list(items)
        validation = self.validate(form)
        if not validation.valid:
            return SubmissionResult(success=False, error=validation.error)

        order = self._build_order(form, items)
        if not order.lines:
            self.form_error = "Your cart is empty"
            return SubmissionResult(success=False, error=self.form_error)

        self.is_submitting = True
        try:
            await self.processor(order)
            order.order_number = str(self._rng.randint(100000, 999999))
        except Exception as e:
            logger.error(f"❌ [CheckoutFlow] Error processing order: {e}", exc_info=True)
            self.form_error = GENERIC_SUBMIT_ERROR
            return SubmissionResult(success=False, error=GENERIC_SUBMIT_ERROR)
        finally:
            self.is_submitting = False

        self.cart.clear()
        self.order_number = order.order_number
        self.order_complete = True
        logger.info(f"✅ [CheckoutFlow] Order {order.order_number} submitted ({len(order.lines)} lines, total {order.totals.total:.2f})")
        return SubmissionResult(success=True, order=order)
