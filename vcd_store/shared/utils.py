from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional, Generic, TypeVar, Any, List
import logging
import uuid

from fastapi import HTTPException, Request, status, Header
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from passlib.context import CryptContext
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from jose import JWTError, jwt

logger = logging.getLogger("vcd-store.auth")

# --- Configuration ---
class Settings(BaseSettings):
    MONGO_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "vcd_store"
    SECRET_KEY: str = "dev-secret"
    REFRESH_SECRET_KEY: str = "dev-refresh-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30

    ADMIN_EMAIL: str = "admin@vcdstore.com"
    ADMIN_PASSWORD: str = "admin123"
    LEGACY_ADMIN_AUTH: bool = True

    CHECKOUT_COMPENSATE: bool = False
    CHECKOUT_USE_CATALOG_PRICES: bool = False

    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "5/minute"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()

# --- Database ---
def get_db_client(url: str = settings.MONGO_URL) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(url)

def get_database(request: Request) -> AsyncIOMotorDatabase:
    return request.app.mongodb

# --- Response Models ---
T = TypeVar("T")

class SuccessResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None

class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[Any] = None

class HealthResponse(BaseModel):
    service: str
    status: str
    timestamp: datetime
    version: str
    database: Optional[str] = None


# --- Exceptions ---
class AppException(HTTPException):
    def __init__(
        self,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        detail: str = "An error occurred",
        headers: Optional[dict] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

class ValidationException(AppException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

class UnauthorizedException(AppException):
    def __init__(self, detail: str = "Unauthorized"):
         super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )

class ForbiddenException(AppException):
    def __init__(self, detail: str = "Access denied. Admin only."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class NotFoundException(AppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class ServerErrorException(AppException):
    def __init__(self, detail: str = "Internal Server Error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@contextmanager
def error_boundary(log: logging.Logger, operation: str, detail: str = "Internal Server Error"):
    """
    Map unexpected failures inside an operation to ServerErrorException.

    AppException subclasses are already client-safe and pass through untouched.
    Anything else is logged with its traceback and replaced by a short message.
    """
    try:
        yield
    except AppException:
        raise
    except Exception:
        log.exception("%s failed", operation)
        raise ServerErrorException(detail)


# --- Passwords ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- Tokens ---
class Identity(BaseModel):
    id: str
    email: str
    role: str = "user"

    def claims(self) -> dict:
        return {"sub": self.id, "email": self.email, "role": self.role}

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    if "jti" not in to_encode:
        to_encode.update({"jti": str(uuid.uuid4())})

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.REFRESH_SECRET_KEY, algorithm=settings.ALGORITHM)

def verify_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("Token verification failed: invalid or expired (%s)", e)
        raise UnauthorizedException("Invalid or expired token")

def verify_refresh_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.REFRESH_SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning("Refresh token verification failed (%s)", e)
        raise UnauthorizedException("Invalid or expired refresh token")

def extract_bearer_token(authorization: Optional[str]) -> str:
    # Accepts "Bearer <token>" as well as a bare token.
    value = (authorization or "").strip()
    scheme, _, param = value.partition(" ")
    if scheme.lower() == "bearer":
        return param.strip()
    return value

async def is_token_revoked(db: AsyncIOMotorDatabase, payload: dict) -> bool:
    jti = payload.get("jti")
    if not jti:
        return False
    return await db.revoked_tokens.find_one({"jti": jti}) is not None


# --- Dependencies ---
async def require_auth(request: Request, authorization: Optional[str] = Header(None)) -> Identity:
    token = extract_bearer_token(authorization)
    if not token:
        logger.warning("Token verification failed: missing token", extra={"path": request.url.path})
        raise UnauthorizedException("No token provided")

    payload = verify_token(token)
    if await is_token_revoked(get_database(request), payload):
        logger.warning("Token verification failed: revoked jti %s", payload.get("jti"))
        raise UnauthorizedException("Token has been revoked")

    identity = Identity(
        id=str(payload.get("sub") or ""),
        email=payload.get("email") or "",
        role=payload.get("role") or "user",
    )
    request.state.user = identity
    request.state.token_claims = payload
    return identity

async def optional_auth(request: Request, authorization: Optional[str] = Header(None)) -> Optional[Identity]:
    # A present but invalid token is still rejected.
    if not extract_bearer_token(authorization):
        return None
    return await require_auth(request, authorization)
