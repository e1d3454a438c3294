from __future__ import annotations

import enum
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ot_admin.errors import ApiError
from ot_admin.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)


class AdminPermission(str, enum.Enum):
    OT_READ = "ot.read"
    OT_CREATE = "ot.create"
    OT_UPDATE = "ot.update"
    OT_APPROVE = "ot.approve"
    OT_REJECT = "ot.reject"
    OT_STATS_READ = "ot.stats.read"
    TRIPLE_OT_READ = "tripleOt.read"
    TRIPLE_OT_WRITE = "tripleOt.write"
    REASONS_READ = "reasons.read"
    REASONS_WRITE = "reasons.write"
    EMPLOYEES_READ = "employees.read"
    EMPLOYEES_WRITE = "employees.write"
    AUDIT_READ = "audit.read"


def validate_permission_tags(raw: Iterable[str]) -> frozenset[AdminPermission]:
    tags: set[AdminPermission] = set()
    unknown: list[str] = []
    for item in raw:
        try:
            tags.add(AdminPermission(item))
        except ValueError:
            unknown.append(str(item))
    if unknown:
        raise ValueError(f"Unknown permission tags: {', '.join(sorted(unknown))}")
    return frozenset(tags)


ROLE_CAPABILITIES: dict[str, frozenset[AdminPermission]] = {}


def declare_role(name: str, permissions: Iterable[str]) -> frozenset[AdminPermission]:
    capabilities = validate_permission_tags(permissions)
    ROLE_CAPABILITIES[name] = capabilities
    return capabilities


declare_role("admin", (permission.value for permission in AdminPermission))
declare_role(
    "supervisor",
    (
        "ot.read",
        "ot.create",
        "ot.update",
        "employees.read",
        "tripleOt.read",
        "reasons.read",
    ),
)
declare_role(
    "approver",
    (
        "ot.read",
        "ot.approve",
        "ot.reject",
        "ot.stats.read",
        "employees.read",
        "tripleOt.read",
        "reasons.read",
    ),
)
declare_role("viewer", ("ot.read", "ot.stats.read", "employees.read", "tripleOt.read", "reasons.read"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def has_permission(claims: Mapping[str, Any], permission: AdminPermission) -> bool:
    if bool(claims.get("is_super_admin")):
        return True
    capabilities = ROLE_CAPABILITIES.get(str(claims.get("role") or ""))
    if capabilities is None:
        return False
    return permission in capabilities


def actor_id_from_claims(claims: Mapping[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


def create_access_token(
    *,
    sub: str,
    username: str,
    role: str,
    is_super_admin: bool = False,
) -> tuple[str, dict[str, Any]]:
    if role not in ROLE_CAPABILITIES and not is_super_admin:
        raise ValueError(f"Unknown role: {role}")
    settings = get_settings()
    now = _utcnow()
    claims = {
        "sub": sub,
        "username": username,
        "role": role,
        "is_super_admin": is_super_admin,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.access_token_minutes)).timestamp()),
        "jti": str(uuid4()),
        "typ": "access",
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, claims


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("typ") != "access":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token type is invalid.")

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.")

    if not payload.get("is_super_admin") and payload.get("role") not in ROLE_CAPABILITIES:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")

    return payload


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    payload = decode_token(credentials.credentials)

    request.state.actor = str(payload.get("role"))
    request.state.actor_id = actor_id_from_claims(payload)
    return payload


def require_permission(permission: AdminPermission | str) -> Callable[..., dict[str, Any]]:
    # Raises ValueError at import time for a tag outside the closed set.
    required = AdminPermission(permission)

    def _dependency(claims: dict[str, Any] = Depends(require_admin)) -> dict[str, Any]:
        if not has_permission(claims, required):
            raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
        return claims

    return _dependency
