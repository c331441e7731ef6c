import logging
import secrets
import string
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth import get_current_user
from config import GIFT_COUPON_DISCOUNT, GIFT_COUPON_VALIDITY
from database import create_document, get_db, serialize
from schemas import Coupon

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


class CouponValidateRequest(BaseModel):
    code: str


def generate_coupon_code() -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "GIFT" + "".join(secrets.choice(alphabet) for _ in range(8))


def issue_coupon(db, user_id) -> Coupon:
    """Replace the user's coupon with a fresh gift coupon.

    Delete and create are separate writes; concurrent calls for one user may race.
    """
    db["coupon"].delete_one({"user_id": user_id})
    coupon = Coupon(
        code=generate_coupon_code(),
        discount_percentage=GIFT_COUPON_DISCOUNT,
        expiration_date=datetime.utcnow() + GIFT_COUPON_VALIDITY,
        user_id=user_id,
    )
    create_document(db, "coupon", coupon)
    logger.info(f"Issued coupon {coupon.code} to user {user_id}")
    return coupon


def find_active_coupon(db, user_id, code: str):
    return db["coupon"].find_one({"code": code, "user_id": user_id, "is_active": True})


def deactivate_coupon(db, user_id, code: str) -> None:
    db["coupon"].update_one(
        {"code": code, "user_id": user_id},
        {"$set": {"is_active": False, "updated_at": datetime.utcnow()}},
    )


# Coupons
@router.get("")
def get_coupon(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return serialize(db["coupon"].find_one({"user_id": user["_id"], "is_active": True}))


@router.post("/validate")
def validate_coupon(payload: CouponValidateRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    coupon = find_active_coupon(db, user["_id"], payload.code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    if coupon["expiration_date"] < datetime.utcnow():
        deactivate_coupon(db, user["_id"], payload.code)
        raise HTTPException(status_code=404, detail="Coupon expired")
    return {
        "message": "Coupon is valid",
        "code": coupon["code"],
        "discountPercentage": coupon["discount_percentage"],
    }
