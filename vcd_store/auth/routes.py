import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from vcd_store.shared.utils import (
    settings, get_database, get_password_hash, verify_password,
    create_access_token, create_refresh_token, verify_refresh_token,
    is_token_revoked, require_auth, error_boundary,
    Identity, ValidationException, UnauthorizedException,
)
from vcd_store.shared.security_config import limiter, normalize_email
from vcd_store.auth.schemas import (
    SignupRequest, LoginRequest, RefreshTokenRequest,
    AuthResponse, UserResponse, TokenPair,
)
from vcd_store.auth.models import AccountDB

logger = logging.getLogger("vcd-store.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def issue_tokens(identity: Identity) -> TokenPair:
    claims = identity.claims()
    return TokenPair(
        token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
    )


def user_response(account: dict) -> UserResponse:
    account = dict(account)
    account["id"] = str(account.pop("_id"))
    account.pop("password_hash", None)
    return UserResponse(**account)


async def revoke(db: AsyncIOMotorDatabase, payload: dict):
    if "jti" not in payload:
        return
    await db.revoked_tokens.update_one(
        {"jti": payload["jti"]},
        {"$set": {"jti": payload["jti"], "exp": datetime.utcfromtimestamp(payload["exp"])}},
        upsert=True,
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, db: AsyncIOMotorDatabase = Depends(get_database)):
    email = normalize_email(payload.email)
    with error_boundary(logger, "signup"):
        if await db.users.find_one({"email": email}):
            raise ValidationException("Email already registered")

        account = AccountDB(
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
            email=email,
            password_hash=get_password_hash(payload.password),
        )
        try:
            result = await db.users.insert_one(account.dict(by_alias=True, exclude={"id"}))
        except DuplicateKeyError:
            raise ValidationException("Email already registered")
        created = await db.users.find_one({"_id": result.inserted_id})

    user = user_response(created)
    tokens = issue_tokens(Identity(id=user.id, email=user.email, role=user.role))
    logger.info("Account created", extra={"user_id": user.id})
    return AuthResponse(message="User created", user=user, token=tokens.token, refresh_token=tokens.refresh_token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(credentials: LoginRequest, request: Request, db: AsyncIOMotorDatabase = Depends(get_database)):
    email = normalize_email(credentials.email)

    # Configured admin account, not stored in the users collection
    if email == normalize_email(settings.ADMIN_EMAIL) and credentials.password == settings.ADMIN_PASSWORD:
        identity = Identity(id="admin", email=settings.ADMIN_EMAIL, role="admin")
        tokens = issue_tokens(identity)
        return AuthResponse(
            message="Admin login successful",
            user=UserResponse(email=identity.email, role=identity.role),
            token=tokens.token,
            refresh_token=tokens.refresh_token,
        )

    with error_boundary(logger, "login"):
        account = await db.users.find_one({"email": email})
        if not account:
            raise ValidationException("User not found")
        if not verify_password(credentials.password, account["password_hash"]):
            logger.warning("Login rejected: incorrect password", extra={"user_id": str(account["_id"])})
            raise ValidationException("Incorrect password")
        user = user_response(account)

    tokens = issue_tokens(Identity(id=user.id, email=user.email, role=user.role))
    return AuthResponse(message="Login successful", user=user, token=tokens.token, refresh_token=tokens.refresh_token)


@router.post("/refresh", response_model=TokenPair)
async def refresh(body: RefreshTokenRequest, db: AsyncIOMotorDatabase = Depends(get_database)):
    payload = verify_refresh_token(body.refresh_token)
    if await is_token_revoked(db, payload):
        raise UnauthorizedException("Refresh token has been revoked")

    # Rotate: the presented refresh token cannot be used twice
    await revoke(db, payload)
    identity = Identity(id=payload["sub"], email=payload.get("email", ""), role=payload.get("role", "user"))
    return issue_tokens(identity)


@router.post("/logout")
async def logout(
    body: RefreshTokenRequest,
    request: Request,
    identity: Identity = Depends(require_auth),
    db: AsyncIOMotorDatabase = Depends(get_database),
):
    access_payload = request.state.token_claims
    refresh_payload = verify_refresh_token(body.refresh_token)
    with error_boundary(logger, "logout"):
        await revoke(db, access_payload)
        await revoke(db, refresh_payload)
    logger.info("Logged out", extra={"user_id": identity.id})
    return {"message": "Logged out successfully"}

