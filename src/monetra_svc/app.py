import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn

from monetra_svc.config import get_settings
from monetra_svc.errors import AppError
from monetra_svc.models.base import SessionLocal, init_db
from monetra_svc.routers import auth_router, expense_router, premium_router
from monetra_svc.seeder import seed_membership_plans

# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    with SessionLocal() as db:
        seed_membership_plans(db)
    yield


app = FastAPI(title="Monetra API", lifespan=lifespan)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/")
def home():
    return {"status": "success", "message": "Welcome to Monetra API."}


@app.get("/test")
def health():
    return {"status": "success", "message": "Test endpoint working", "timestamp": datetime.now(timezone.utc).isoformat()}


# Auth and expense routes share the '/user' prefix
app.include_router(auth_router.router, prefix="/user", tags=["authentication"])
app.include_router(expense_router.router, prefix="/user", tags=["expenses"])
app.include_router(premium_router.router, prefix="/premium", tags=["premium"])


def main() -> None:
    uvicorn.run("monetra_svc.app:app", host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
