import logging
from datetime import datetime, timedelta
from typing import Optional

import jwt
from bson import ObjectId
from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from cache import Cache, get_cache, refresh_token_key
from config import (
    ACCESS_TOKEN_SECRET,
    ACCESS_TOKEN_TTL,
    REFRESH_TOKEN_SECRET,
    REFRESH_TOKEN_TTL,
    SECURE_COOKIES,
)
from database import create_document, get_db, serialize
from schemas import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


# Request models
class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    password: Optional[str] = Field(None, min_length=8)


# Utilities
def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return password_ctx.verify(password, hashed)


def create_token(user_id, secret: str, ttl: timedelta) -> str:
    now = datetime.utcnow()
    payload = {"sub": str(user_id), "iat": now, "exp": now + ttl}
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_token(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=["HS256"])


def generate_tokens(user_id):
    access_token = create_token(user_id, ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TTL)
    refresh_token = create_token(user_id, REFRESH_TOKEN_SECRET, REFRESH_TOKEN_TTL)
    return access_token, refresh_token


def store_refresh_token(cache: Cache, user_id, refresh_token: str) -> None:
    cache.set(refresh_token_key(user_id), refresh_token, ttl=REFRESH_TOKEN_TTL)


def set_access_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=int(ACCESS_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="strict",
    )


def set_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=int(REFRESH_TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=SECURE_COOKIES,
        samesite="strict",
    )


def start_session(response: Response, cache: Cache, user_id) -> None:
    access_token, refresh_token = generate_tokens(user_id)
    store_refresh_token(cache, user_id, refresh_token)
    set_cookies(response, access_token, refresh_token)


def public_user(user: dict) -> dict:
    return {
        "_id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "role": user.get("role", "customer"),
    }


# Guards
def get_current_user(access_token: Optional[str] = Cookie(None), db=Depends(get_db)) -> dict:
    if not access_token:
        raise HTTPException(status_code=401, detail="No access token provided")
    try:
        payload = decode_token(access_token, ACCESS_TOKEN_SECRET)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token expired, please login again")
    except jwt.ImmatureSignatureError:
        raise HTTPException(status_code=401, detail="Access token not yet valid, please login again")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token")

    uid = payload.get("sub")
    if not uid or not ObjectId.is_valid(uid):
        raise HTTPException(status_code=401, detail="Invalid access token")
    user = db["user"].find_one({"_id": ObjectId(uid)}, {"password": 0})
    if not user:
        raise HTTPException(status_code=401, detail="Invalid access token, user not found")
    return user


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Access denied - Admin only")
    return user


# Auth
@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, response: Response, db=Depends(get_db), cache: Cache = Depends(get_cache)):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=409, detail="User already exists")
    user = User(name=payload.name, email=email, password=hash_password(payload.password))
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User already exists")

    start_session(response, cache, user_id)
    logger.info(f"New user signed up: {user_id}")
    return public_user({"_id": user_id, **user.model_dump()})


@router.post("/login")
def login(payload: LoginRequest, response: Response, db=Depends(get_db), cache: Cache = Depends(get_cache)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    start_session(response, cache, user["_id"])
    logger.info(f"User logged in: {user['_id']}")
    return public_user(user)


@router.post("/logout")
def logout(response: Response, refresh_token: Optional[str] = Cookie(None), cache: Cache = Depends(get_cache)):
    if refresh_token:
        try:
            payload = decode_token(refresh_token, REFRESH_TOKEN_SECRET)
        except jwt.InvalidTokenError:
            payload = {}
        if payload.get("sub"):
            cache.delete(refresh_token_key(payload["sub"]))

    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return {"message": "Logged out successfully"}


@router.post("/refresh-token")
def refresh_access_token(response: Response, refresh_token: Optional[str] = Cookie(None),
                         cache: Cache = Depends(get_cache)):
    """Mint a new access token. The refresh token itself is not rotated."""
    if not refresh_token:
        raise HTTPException(status_code=401, detail="No refresh token provided")
    try:
        payload = decode_token(refresh_token, REFRESH_TOKEN_SECRET)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Refresh token expired, please login again")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user_id = payload.get("sub")
    stored = cache.get(refresh_token_key(user_id)) if user_id else None
    if not stored or stored != refresh_token:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    set_access_cookie(response, create_token(user_id, ACCESS_TOKEN_SECRET, ACCESS_TOKEN_TTL))
    return {"message": "Access token refreshed successfully"}


@router.get("/profile")
def profile(user: dict = Depends(get_current_user)):
    return serialize(user)


@router.put("/profile")
def update_profile(update: ProfileUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    changes = {}
    if update.name is not None:
        changes["name"] = update.name
    if update.password is not None:
        changes["password"] = hash_password(update.password)
    if changes:
        changes["updated_at"] = datetime.utcnow()
        db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
    return serialize(db["user"].find_one({"_id": user["_id"]}, {"password": 0}))
