import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

import database
from analytics import router as analytics_router
from auth import router as auth_router
from cart import router as cart_router
from config import CORS_ORIGINS, LOG_LEVEL, PORT
from coupons import router as coupons_router
from database import get_db
from payments import router as payments_router
from products import router as products_router

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        try:
            database.ensure_indexes(database.db)
        except Exception as e:
            logger.error(f"Could not create indexes: {e}")
    yield


# App setup
app = FastAPI(title="E-commerce API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(products_router)
app.include_router(cart_router)
app.include_router(coupons_router)
app.include_router(payments_router)
app.include_router(analytics_router)


@app.exception_handler(Exception)
async def server_fault(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# Health and helpers
@app.get("/")
def root():
    return {"message": "E-commerce API running"}


@app.get("/api/health")
def health(db=Depends(get_db)):
    try:
        db.list_collection_names()
    except PyMongoError as e:
        logger.error(f"Health check could not reach the database: {e}")
        return JSONResponse(status_code=503, content={"backend": "running", "database": "unavailable"})
    return {"backend": "running", "database": "connected"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
