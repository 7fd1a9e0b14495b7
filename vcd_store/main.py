from datetime import datetime

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.exceptions import HTTPException as StarletteHTTPException

from vcd_store import __version__
from vcd_store.shared.utils import get_db_client, settings, ErrorResponse, HealthResponse
from vcd_store.shared.logging_config import setup_logging, RequestLoggingMiddleware
from vcd_store.shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware
from vcd_store.auth.access import AdminGate
from vcd_store.auth.routes import router as auth_router
from vcd_store.catalog.routes import router as catalog_router
from vcd_store.cart.routes import router as cart_router
from vcd_store.orders.routes import router as orders_router

SERVICE_NAME = "vcd-store"

# Setup Logging
logger = setup_logging(SERVICE_NAME, settings.LOG_LEVEL)

app = FastAPI(title="VCD Store API", version=__version__)

# Security Setup
setup_rate_limiting(app)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Request-ID"],
)

app.state.admin_gate = AdminGate(
    settings.ADMIN_EMAIL,
    settings.ADMIN_PASSWORD,
    allow_legacy=settings.LEGACY_ADMIN_AUTH,
)

app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(catalog_router, prefix=settings.API_PREFIX)
app.include_router(cart_router, prefix=settings.API_PREFIX)
app.include_router(orders_router, prefix=settings.API_PREFIX)


async def create_unique_indexes(db: AsyncIOMotorDatabase):
    await db.users.create_index("email", unique=True)
    await db.vcds.create_index("item_ref", unique=True)

async def create_query_indexes(db: AsyncIOMotorDatabase):
    await db.vcds.create_index([("name", "text"), ("summary", "text")])
    await db.vcds.create_index("genre.tags")
    await db.vcds.create_index("cast.leads")
    await db.vcds.create_index([("year", -1)])
    await db.orders.create_index([("email", 1), ("placed_at", -1)])
    await db.revoked_tokens.create_index("jti")
    # Revoked entries expire together with the token they block
    await db.revoked_tokens.create_index("exp", expireAfterSeconds=0)


@app.on_event("startup")
async def startup_db_client():
    app.mongodb_client = get_db_client()
    app.mongodb = app.mongodb_client[settings.DATABASE_NAME]
    await create_unique_indexes(app.mongodb)
    await create_query_indexes(app.mongodb)

@app.on_event("shutdown")
async def shutdown_db_client():
    app.mongodb_client.close()


# --- Error rendering ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).dict(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    summary = "; ".join(f"{d['field']}: {d['message']}" if d["field"] else d["message"] for d in details)
    logger.warning("Request validation failed", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error=summary or "Invalid request", details=details).dict(),
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    try:
        await app.mongodb_client.admin.command('ping')
        db_status = "connected"
    except Exception:
        logger.exception("Health check: database ping failed")
        db_status = "disconnected"

    if db_status != "connected":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service Unhealthy"
        )

    return HealthResponse(
        service=SERVICE_NAME,
        status="healthy",
        timestamp=datetime.utcnow(),
        version=__version__,
        database=db_status
    )


def run():
    import uvicorn
    uvicorn.run("vcd_store.main:app", host="0.0.0.0", port=5000)


if __name__ == "__main__":
    run()
