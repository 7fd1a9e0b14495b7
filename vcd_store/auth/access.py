"""
Access control for administrative catalog mutations.

An identity is an administrator when its role claim is ``admin`` or its email
matches the configured admin email. Deployments that still send admin
credentials in the request body are served by the legacy path, which can be
switched off with ``LEGACY_ADMIN_AUTH=false``.
"""
import logging
from typing import Optional

from fastapi import Depends, Request
from pydantic import BaseModel

from vcd_store.shared.security_config import normalize_email
from vcd_store.shared.utils import (
    Identity, ForbiddenException, error_boundary, optional_auth
)

logger = logging.getLogger("vcd-store.access")


class LegacyAdminCredentials(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AdminGate:
    def __init__(self, admin_email: str, admin_password: str, allow_legacy: bool = True):
        self.admin_email = normalize_email(admin_email)
        self.admin_password = admin_password
        self.allow_legacy = allow_legacy

    def is_admin_identity(self, identity: Optional[Identity]) -> bool:
        if identity is None:
            return False
        role = (identity.role or "").strip().lower()
        return role == "admin" or normalize_email(identity.email) == self.admin_email

    def matches_legacy_credentials(self, credentials: Optional[LegacyAdminCredentials]) -> bool:
        if not self.allow_legacy or credentials is None:
            return False
        if not credentials.email or not credentials.password:
            return False
        return (
            normalize_email(credentials.email) == self.admin_email
            and credentials.password == self.admin_password
        )

    def authorize(
        self,
        identity: Optional[Identity],
        credentials: Optional[LegacyAdminCredentials] = None,
    ) -> None:
        with error_boundary(logger, "admin authorization", "Server error in admin check"):
            if self.is_admin_identity(identity):
                return
            if self.matches_legacy_credentials(credentials):
                logger.info("Admin access granted through legacy body credentials")
                return
            logger.warning(
                "Admin access denied",
                extra={"user_id": identity.id if identity else None},
            )
            raise ForbiddenException()


async def read_legacy_credentials(request: Request) -> Optional[LegacyAdminCredentials]:
    body = await request.body()
    if not body:
        return None
    try:
        payload = await request.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return LegacyAdminCredentials(
        email=payload.get("email") if isinstance(payload.get("email"), str) else None,
        password=payload.get("password") if isinstance(payload.get("password"), str) else None,
    )


async def require_admin(
    request: Request, identity: Optional[Identity] = Depends(optional_auth)
) -> Optional[Identity]:
    gate: AdminGate = request.app.state.admin_gate
    credentials = await read_legacy_credentials(request)
    gate.authorize(identity, credentials)
    return identity
