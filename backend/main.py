"""
FastAPI Backend for Student Services - WITH SUPABASE INTEGRATION

Provides REST API endpoints with:
- Bearer-token authentication
- Consultation lifecycle (request, accept, schedule, complete, rate, cancel)
- Consultant directory and analytics
- Store catalog, cart pricing and simulated checkout
"""

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from typing import Optional, Dict
from dataclasses import asdict
from datetime import date
import os
import sys
import json
import logging
import signal

# Add the student_services package to Python path (lib imports it)
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_src = os.path.join(project_root, 'student_services', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

# Setup enhanced logging with pretty formatting
from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")
consultation_logger = get_logger("backend.consultations")
checkout_logger = get_logger("backend.checkout")

from lib.supabase_client import get_document_store
from lib.auth import get_optional_user, require_mentor

from student_services.cart_session import CartSession
from student_services.checkout import CheckoutFlow, CheckoutForm, GENERIC_SUBMIT_ERROR, PAYMENT_METHODS
from student_services.config import Settings, load_settings
from student_services.consultation_manager import ConsultationManager
from student_services.consultation_read_models import (
    consultant_stats,
    consultations_on_day,
    count_by_status,
    count_by_type,
    filter_consultations,
    partition_for_consultant,
    rating_summary,
    scheduled_for,
    sort_reviews,
    upcoming,
)
from student_services.document_store import DocumentStore
from student_services.errors import AuthenticationRequired, ServiceError, StoreFailure
from student_services.local_storage import CART_KEY, CartPersistence, InMemoryLocalStorage
from student_services.store_catalog import StoreCatalog
from student_services.user_directory import UserDirectory
from student_services.viewer import Viewer

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the settings singleton."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_manager(
    user: Optional[dict] = Depends(get_optional_user),
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
) -> ConsultationManager:
    """Build a per-request ConsultationManager for the caller (None when anonymous)."""
    viewer = Viewer.from_auth(user) if user else None
    directory = UserDirectory(store, default_hourly_rate=settings.default_hourly_rate)
    return ConsultationManager(store, directory, viewer)


# Initialize FastAPI app
app = FastAPI(
    title="Student Services API",
    description="Consultations, consultant directory and store checkout backed by Supabase",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Service error code -> HTTP status
ERROR_STATUS = {
    "auth_required": 401,
    "forbidden": 403,
    "not_found": 404,
    "invalid_transition": 409,
    "validation_error": 422,
    "store_failure": 502,
}


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    status = ERROR_STATUS.get(exc.code, 500)
    if status >= 500:
        logger.error("Service error", error=exc, data={"path": request.url.path})
    else:
        logger.warning("Request rejected", data={"path": request.url.path, "code": exc.code, "reason": str(exc)})
    return JSONResponse(status_code=status, content={"detail": {"code": exc.code, "message": exc.user_message}})


# ==================== Pydantic Models ====================

class ConsultationCreate(BaseModel):
    topic: str
    description: str
    type: str
    method: Optional[str] = "video"
    duration: Optional[int] = 60
    status: Optional[str] = None
    mentor_id: Optional[str] = None
    project_id: Optional[str] = None
    scheduledDate: Optional[str] = None
    preferredDate: Optional[str] = None


class ConsultationUpdate(BaseModel):
    status: Optional[str] = None
    mentor_id: Optional[str] = None
    scheduledDate: Optional[str] = None
    completedAt: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None


class AcceptRequest(BaseModel):
    scheduledDate: Optional[str] = None


class CompleteRequest(BaseModel):
    rating: Optional[int] = None
    feedback: Optional[str] = None


class QuoteRequest(BaseModel):
    cart: Dict[str, int] = Field(default_factory=dict)
    coupon_code: Optional[str] = None


class CheckoutFormModel(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "Saudi Arabia"
    notes: str = ""
    save_info: bool = True
    payment_method: str = "credit-card"
    card_number: str = ""
    card_name: str = ""
    card_expiry: str = ""
    card_cvv: str = ""
    agree_to_terms: bool = False


class CheckoutRequest(QuoteRequest):
    form: CheckoutFormModel


# ==================== Helper Functions ====================

def _require_viewer(manager: ConsultationManager) -> Viewer:
    if manager.user is None:
        raise AuthenticationRequired("Anonymous request to a consultation endpoint")
    return manager.user


async def _visible_consultations(manager: ConsultationManager):
    """Fetch the caller's list, turning a recorded read failure into an error response."""
    consultations = await manager.fetch_consultations()
    if manager.error:
        raise StoreFailure("Consultation list could not be loaded", manager.error)
    return consultations


def _cart_session(cart: Dict[str, int]) -> CartSession:
    """Per-request cart session over the posted cart; non-positive quantities are dropped on load."""
    storage = InMemoryLocalStorage({CART_KEY: json.dumps(cart)})
    return CartSession(CartPersistence(storage))


async def _load_items(store: DocumentStore):
    try:
        return await StoreCatalog(store).fetch_items()
    except Exception as e:
        raise StoreFailure(f"Loading store items failed: {e}", cause=e)


# ==================== API Endpoints ====================

@app.get("/")
async def root(settings: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Student Services API",
        "version": "1.0.0",
        "supabase_configured": settings.supabase_configured,
    }


@app.get("/api/consultations")
async def list_consultations(
    type: str = "all",
    status: str = "all",
    q: str = "",
    manager: ConsultationManager = Depends(get_manager),
):
    """List consultations visible to the caller, filtered by type, status and search text."""
    _require_viewer(manager)
    consultations = await _visible_consultations(manager)
    filtered = filter_consultations(consultations, type=type, status=status, search=q)
    return [consultation.to_dict() for consultation in filtered]


@app.get("/api/consultations/summary")
async def consultation_summary(manager: ConsultationManager = Depends(get_manager)):
    """Per-status counts for the dashboard cards."""
    _require_viewer(manager)
    return count_by_status(await _visible_consultations(manager))


@app.get("/api/consultations/pool")
async def consultation_pool(
    user: Optional[dict] = Depends(get_optional_user),
    manager: ConsultationManager = Depends(get_manager),
):
    """Consultant view: own consultations and the unassigned pending pool."""
    require_mentor(user)
    mine, unassigned = partition_for_consultant(await _visible_consultations(manager), user["id"])
    return {
        "mine": [consultation.to_dict() for consultation in mine],
        "unassigned": [consultation.to_dict() for consultation in unassigned],
        "unassigned_by_type": count_by_type(unassigned),
    }


@app.post("/api/consultations", status_code=201)
async def create_consultation(
    payload: ConsultationCreate,
    manager: ConsultationManager = Depends(get_manager),
):
    consultation = await manager.create(payload.model_dump(exclude_none=True))
    consultation_logger.action("Consultation requested", manager.user.id, {"id": consultation.id, "type": consultation.type})
    return consultation.to_dict()


@app.patch("/api/consultations/{consultation_id}")
async def update_consultation(
    consultation_id: str,
    payload: ConsultationUpdate,
    manager: ConsultationManager = Depends(get_manager),
):
    viewer = _require_viewer(manager)
    consultation = await manager.update(consultation_id, payload.model_dump(exclude_none=True))
    consultation_logger.action("Consultation updated", viewer.id, {"id": consultation_id, "status": consultation.status.value})
    return consultation.to_dict()


@app.post("/api/consultations/{consultation_id}/accept")
async def accept_consultation(
    consultation_id: str,
    payload: Optional[AcceptRequest] = None,
    user: Optional[dict] = Depends(get_optional_user),
    manager: ConsultationManager = Depends(get_manager),
):
    if user is not None:
        require_mentor(user)
    scheduled_date = payload.scheduledDate if payload else None
    consultation = await manager.accept(consultation_id, scheduled_date)
    consultation_logger.action("Consultation accepted", manager.user.id, {"id": consultation_id})
    return consultation.to_dict()


@app.post("/api/consultations/{consultation_id}/cancel")
async def cancel_consultation(
    consultation_id: str,
    manager: ConsultationManager = Depends(get_manager),
):
    viewer = _require_viewer(manager)
    consultation = await manager.cancel(consultation_id)
    consultation_logger.action("Consultation cancelled", viewer.id, {"id": consultation_id})
    return consultation.to_dict()


@app.post("/api/consultations/{consultation_id}/complete")
async def complete_consultation(
    consultation_id: str,
    payload: Optional[CompleteRequest] = None,
    manager: ConsultationManager = Depends(get_manager),
):
    viewer = _require_viewer(manager)
    payload = payload or CompleteRequest()
    consultation = await manager.complete(consultation_id, rating=payload.rating, feedback=payload.feedback)
    consultation_logger.action("Consultation completed", viewer.id, {"id": consultation_id, "rating": consultation.rating})
    return consultation.to_dict()


@app.get("/api/consultants")
async def list_consultants(manager: ConsultationManager = Depends(get_manager)):
    consultants = await manager.fetch_consultants()
    if manager.error:
        raise StoreFailure("Consultant directory could not be loaded", manager.error)
    return [asdict(consultant) for consultant in consultants]


@app.get("/api/consultants/me/stats")
async def my_consultant_stats(
    sort: str = "latest",
    user: Optional[dict] = Depends(get_optional_user),
    manager: ConsultationManager = Depends(get_manager),
    settings: Settings = Depends(get_settings),
):
    """Analytics for the calling consultant: counts, earnings and review breakdown."""
    require_mentor(user)
    consultations = await _visible_consultations(manager)
    try:
        profile = await manager.directory.get_by_id(user["id"]) or {}
    except Exception as e:
        raise StoreFailure(f"Loading consultant profile failed: {e}", cause=e)

    stats = consultant_stats(
        consultations,
        user["id"],
        hourly_rate=profile.get("hourly_rate"),
        default_rate=settings.default_hourly_rate,
    )
    mine, _ = partition_for_consultant(consultations, user["id"])
    reviews = rating_summary(mine)
    return {
        "stats": asdict(stats),
        "reviews": {**asdict(reviews), "positive_percentage": reviews.positive_percentage},
        "recent_reviews": [consultation.to_dict() for consultation in sort_reviews(mine, sort)],
    }


@app.get("/api/consultants/me/schedule")
async def my_schedule(
    day: Optional[date] = None,
    user: Optional[dict] = Depends(get_optional_user),
    manager: ConsultationManager = Depends(get_manager),
):
    """Scheduled sessions of the calling consultant, the next few upcoming ones and an optional single day."""
    require_mentor(user)
    scheduled = scheduled_for(await _visible_consultations(manager), user["id"])
    response = {
        "scheduled": [consultation.to_dict() for consultation in scheduled],
        "upcoming": [consultation.to_dict() for consultation in upcoming(scheduled)],
    }
    if day is not None:
        response["day"] = [consultation.to_dict() for consultation in consultations_on_day(scheduled, day)]
    return response


@app.get("/api/store/items")
async def list_store_items(store: DocumentStore = Depends(get_document_store)):
    return [asdict(item) for item in await _load_items(store)]


@app.post("/api/store/quote")
async def quote_cart(
    payload: QuoteRequest,
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
):
    """Price a cart: subtotal, shipping, VAT, coupon discount and total."""
    items = await _load_items(store)
    cart = _cart_session(payload.cart)
    flow = CheckoutFlow(cart, settings.pricing, settings.checkout_latency_seconds)
    if payload.coupon_code is not None:
        flow.apply_coupon(payload.coupon_code, items)

    return {
        "item_count": cart.total_item_count(),
        "lines": [
            {"item_id": item.id, "name": item.name, "unit_price": item.price, "quantity": quantity}
            for item, quantity in cart.line_items(items)
        ],
        "totals": asdict(flow.quote(items).rounded()),
        "coupon_error": flow.coupon_error,
        "coupon_success": flow.coupon_success,
    }


@app.post("/api/store/checkout")
async def checkout(
    payload: CheckoutRequest,
    store: DocumentStore = Depends(get_document_store),
    settings: Settings = Depends(get_settings),
):
    """Validate the checkout form and run the simulated order submission."""
    if payload.form.payment_method not in PAYMENT_METHODS:
        raise HTTPException(status_code=422, detail={"code": "validation_error", "message": "Please choose a payment method"})

    items = await _load_items(store)
    cart = _cart_session(payload.cart)
    flow = CheckoutFlow(cart, settings.pricing, settings.checkout_latency_seconds)
    if payload.coupon_code:
        flow.apply_coupon(payload.coupon_code, items)

    result = await flow.submit(CheckoutForm(**payload.form.model_dump()), items)
    if not result.success:
        checkout_logger.warning("Checkout rejected", data={"reason": result.error})
        if result.error == GENERIC_SUBMIT_ERROR:
            raise HTTPException(status_code=502, detail={"code": "store_failure", "message": result.error})
        raise HTTPException(status_code=422, detail={"code": "validation_error", "message": result.error})

    checkout_logger.success("Order placed", data={"order_number": result.order_number, "total": round(result.order.totals.total, 2)})
    return {
        "order_number": result.order_number,
        "lines": [asdict(line) for line in result.order.lines],
        "totals": asdict(result.order.totals.rounded()),
        "payment_method": result.order.payment_method,
    }


@app.on_event("startup")
async def startup_event():
    """Startup event - resolve the document store once so its choice is logged."""
    logger.section("SERVER STARTUP", {"supabase_configured": get_settings().supabase_configured})
    get_document_store()
    logger.end_section()


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
