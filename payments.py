import json
import logging
from typing import Any, Dict, List, Optional

import stripe
from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from config import CLIENT_URL, GIFT_COUPON_THRESHOLD, STRIPE_SECRET_KEY
from coupons import deactivate_coupon, find_active_coupon, issue_coupon
from database import create_document, get_db
from schemas import Order, OrderItem

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

stripe.api_key = STRIPE_SECRET_KEY


class StripeGateway:
    """Stripe Checkout wrapper: hosted sessions plus one-time percentage coupons."""

    currency = "usd"

    def create_discount(self, percent_off: float) -> str:
        coupon = stripe.Coupon.create(percent_off=percent_off, duration="once")
        return coupon["id"]

    def create_session(self, line_items: List[dict], metadata: Dict[str, str],
                       discount_percentage: Optional[float] = None):
        discounts = [{"coupon": self.create_discount(discount_percentage)}] if discount_percentage else []
        return stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=line_items,
            mode="payment",
            success_url=f"{CLIENT_URL}/purchase-success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{CLIENT_URL}/purchase-cancel",
            discounts=discounts,
            metadata=metadata,
        )

    def retrieve_session(self, session_id: str):
        return stripe.checkout.Session.retrieve(session_id)


_gateway = StripeGateway()


def get_payment_gateway() -> StripeGateway:
    return _gateway


# Request models
class CheckoutProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None

    @field_validator("id")
    @classmethod
    def valid_object_id(cls, v):
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid product id")
        return v


class CheckoutRequest(BaseModel):
    products: List[CheckoutProduct] = Field(default_factory=list)
    couponCode: Optional[str] = None


class CheckoutSuccessRequest(BaseModel):
    sessionId: str


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def build_line_items(products: List[CheckoutProduct], currency: str) -> List[Dict[str, Any]]:
    return [
        {
            "price_data": {
                "currency": currency,
                "product_data": {"name": p.name, "images": [p.image] if p.image else []},
                "unit_amount": to_cents(p.price),
            },
            "quantity": p.quantity,
        }
        for p in products
    ]


def build_metadata(user_id, coupon_code: Optional[str], products: List[CheckoutProduct]) -> Dict[str, str]:
    return {
        "userId": str(user_id),
        "couponCode": coupon_code or "",
        "products": json.dumps([{"id": p.id, "price": p.price, "quantity": p.quantity} for p in products]),
    }


# Checkout
@router.post("/create-checkout-session")
def create_checkout_session(payload: CheckoutRequest, user: dict = Depends(get_current_user),
                            db=Depends(get_db), gateway: StripeGateway = Depends(get_payment_gateway)):
    """Start a hosted checkout.

    Line-item prices come from the client and are not re-checked against the catalog.
    """
    if not payload.products:
        raise HTTPException(status_code=400, detail="Please provide products")

    total = sum(p.price * p.quantity for p in payload.products)

    coupon = None
    if payload.couponCode:
        coupon = find_active_coupon(db, user["_id"], payload.couponCode)
        if coupon:
            total -= total * (coupon["discount_percentage"] / 100)

    session = gateway.create_session(
        build_line_items(payload.products, gateway.currency),
        build_metadata(user["_id"], payload.couponCode, payload.products),
        discount_percentage=coupon["discount_percentage"] if coupon else None,
    )

    if total >= GIFT_COUPON_THRESHOLD:
        issue_coupon(db, user["_id"])
    return {"id": session["id"], "totalAmount": total}


@router.post("/checkout-success")
def checkout_success(payload: CheckoutSuccessRequest, user: dict = Depends(get_current_user),
                     db=Depends(get_db), gateway: StripeGateway = Depends(get_payment_gateway)):
    existing = db["order"].find_one({"stripe_session_id": payload.sessionId})
    if existing:
        return {"success": True, "message": "Order already recorded for this session.", "orderId": str(existing["_id"])}

    session = gateway.retrieve_session(payload.sessionId)
    if session["payment_status"] != "paid":
        raise HTTPException(status_code=400, detail="Payment not completed")

    metadata = session["metadata"]
    user_id = ObjectId(metadata["userId"])
    if metadata["couponCode"]:
        deactivate_coupon(db, user_id, metadata["couponCode"])

    order = Order(
        user=user_id,
        products=[
            OrderItem(product=ObjectId(p["id"]), quantity=p["quantity"], price=p["price"])
            for p in json.loads(metadata["products"])
        ],
        total_amount=session["amount_total"] / 100,
        stripe_session_id=payload.sessionId,
    )
    try:
        order_id = create_document(db, "order", order)
    except DuplicateKeyError:
        order_id = db["order"].find_one({"stripe_session_id": payload.sessionId})["_id"]
    else:
        logger.info(f"Order {order_id} created for session {payload.sessionId}")

    return {
        "success": True,
        "message": "Payment successful, order created, and coupon deactivated if used.",
        "orderId": str(order_id),
    }
