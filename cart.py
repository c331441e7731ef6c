from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import get_current_user
from database import get_db, oid, serialize

router = APIRouter(prefix="/api/cart", tags=["cart"])


class CartItemIn(BaseModel):
    product_id: str


class QuantityUpdate(BaseModel):
    quantity: int = Field(..., ge=0)


def save_cart(db, user: dict, items: List[dict]) -> List[dict]:
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"cart_items": items, "updated_at": datetime.utcnow()}})
    return [serialize(it) for it in items]


def cart_products(db, user: dict) -> List[dict]:
    """Join the stored cart lines with the catalog; lines for deleted products are dropped."""
    items = user.get("cart_items", [])
    quantities = {it["product"]: it["quantity"] for it in items}
    products = {p["_id"]: p for p in db["product"].find({"_id": {"$in": list(quantities)}})}
    merged = []
    for it in items:
        product = products.get(it["product"])
        if product is not None:
            merged.append({**serialize(product), "quantity": it["quantity"]})
    return merged


# Cart
@router.get("")
def get_cart(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return cart_products(db, user)


@router.post("")
def add_to_cart(item: CartItemIn, user: dict = Depends(get_current_user), db=Depends(get_db)):
    product_id = oid(item.product_id)
    items = user.get("cart_items", [])
    for it in items:
        if it["product"] == product_id:
            it["quantity"] += 1
            break
    else:
        items.append({"product": product_id, "quantity": 1})
    return save_cart(db, user, items)


@router.delete("")
def clear_cart(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return save_cart(db, user, [])


@router.delete("/{product_id}")
def remove_from_cart(product_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    pid = oid(product_id)
    items = [it for it in user.get("cart_items", []) if it["product"] != pid]
    return save_cart(db, user, items)


@router.put("/{product_id}")
def update_quantity(product_id: str, update: QuantityUpdate, user: dict = Depends(get_current_user),
                    db=Depends(get_db)):
    pid = oid(product_id)
    items = user.get("cart_items", [])
    existing = next((it for it in items if it["product"] == pid), None)
    if existing is None:
        raise HTTPException(status_code=404, detail="Product not found in cart")

    if update.quantity == 0:
        items = [it for it in items if it["product"] != pid]
    else:
        existing["quantity"] = update.quantity
    return save_cart(db, user, items)
