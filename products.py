import json
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from auth import require_admin
from cache import FEATURED_PRODUCTS_KEY, Cache, get_cache
from config import RECOMMENDATION_SIZE
from database import create_document, get_db, oid, serialize
from media import ImageHost, get_image_host
from schemas import Product

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    image: Optional[str] = Field(None, description="Base64 data URI or remote URL to upload")
    category: str = Field(..., min_length=1)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)


# Catalog helpers
def find_featured(db) -> List[dict]:
    return jsonable_encoder([serialize(p) for p in db["product"].find({"is_featured": True})])


def refresh_featured_cache(db, cache: Cache) -> List[dict]:
    featured = find_featured(db)
    cache.set(FEATURED_PRODUCTS_KEY, json.dumps(featured))
    logger.info(f"Featured products cache rebuilt ({len(featured)} items)")
    return featured


def list_featured(db, cache: Cache) -> List[dict]:
    """Cache-aside read of the featured products snapshot.

    An empty featured set is a valid answer and is cached like any other.
    """
    cached = cache.get(FEATURED_PRODUCTS_KEY)
    if cached is not None:
        return json.loads(cached)
    return refresh_featured_cache(db, cache)


def get_product_or_404(db, product_id: str) -> dict:
    product = db["product"].find_one({"_id": oid(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


# Products
@router.get("")
def list_products(db=Depends(get_db), user: dict = Depends(require_admin)):
    return {"products": [serialize(p) for p in db["product"].find()]}


@router.get("/featured")
def get_featured_products(db=Depends(get_db), cache: Cache = Depends(get_cache)):
    return list_featured(db, cache)


@router.get("/recommendations")
def get_recommended_products(db=Depends(get_db)):
    products = db["product"].aggregate([
        {"$sample": {"size": RECOMMENDATION_SIZE}},
        {"$project": {"_id": 1, "name": 1, "description": 1, "price": 1, "image": 1}},
    ])
    return [serialize(p) for p in products]


@router.get("/category/{category}")
def get_products_by_category(category: str, db=Depends(get_db)):
    return {"products": [serialize(p) for p in db["product"].find({"category": category})]}


@router.post("", status_code=201)
def create_product(payload: ProductIn, db=Depends(get_db), images: ImageHost = Depends(get_image_host),
                   user: dict = Depends(require_admin)):
    image_url = images.upload(payload.image) if payload.image else ""
    product = Product(
        name=payload.name,
        description=payload.description,
        price=payload.price,
        image=image_url,
        category=payload.category,
    )
    product_id = create_document(db, "product", product)
    logger.info(f"Product created: {product_id}")
    return serialize(db["product"].find_one({"_id": product_id}))


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, db=Depends(get_db),
                   cache: Cache = Depends(get_cache), images: ImageHost = Depends(get_image_host),
                   user: dict = Depends(require_admin)):
    product = get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_none=True, exclude={"image"})
    # The previously hosted image is left in place.
    if payload.image:
        changes["image"] = images.upload(payload.image)
    changes["updated_at"] = datetime.utcnow()
    db["product"].update_one({"_id": product["_id"]}, {"$set": changes})

    if product.get("is_featured"):
        refresh_featured_cache(db, cache)
    return serialize(db["product"].find_one({"_id": product["_id"]}))


@router.delete("/{product_id}")
def delete_product(product_id: str, db=Depends(get_db), cache: Cache = Depends(get_cache),
                   images: ImageHost = Depends(get_image_host), user: dict = Depends(require_admin)):
    product = db["product"].find_one_and_delete({"_id": oid(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    if product.get("image"):
        try:
            images.delete(product["image"])
        except Exception as e:
            logger.warning(f"Error deleting image for product {product_id}: {e}")
    if product.get("is_featured"):
        refresh_featured_cache(db, cache)
    return {"message": "Product deleted successfully"}


@router.patch("/{product_id}")
def toggle_featured_product(product_id: str, db=Depends(get_db), cache: Cache = Depends(get_cache),
                            user: dict = Depends(require_admin)):
    product = get_product_or_404(db, product_id)
    is_featured = not product.get("is_featured", False)
    db["product"].update_one(
        {"_id": product["_id"]},
        {"$set": {"is_featured": is_featured, "updated_at": datetime.utcnow()}},
    )
    refresh_featured_cache(db, cache)
    return serialize(db["product"].find_one({"_id": product["_id"]}))
