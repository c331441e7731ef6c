import os
from datetime import timedelta

# Database / cache
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "ecommerce")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Security/JWT setup
ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "dev-access-secret-change-me")
REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "dev-refresh-secret-change-me")
ACCESS_TOKEN_TTL = timedelta(minutes=15)
REFRESH_TOKEN_TTL = timedelta(days=7)
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
SECURE_COOKIES = ENVIRONMENT == "production"

# Payments / media
CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:5173")
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")

# Business rules
GIFT_COUPON_THRESHOLD = 200
GIFT_COUPON_DISCOUNT = 10
GIFT_COUPON_VALIDITY = timedelta(days=30)
RECOMMENDATION_SIZE = 4

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", CLIENT_URL).split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))
