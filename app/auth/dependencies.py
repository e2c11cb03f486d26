import logging
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from app.auth.schemas import CallerScope
from app.auth.security import LONG, SHORT, TokenIssuer, get_token_issuer
from app.core.enums import AdminRole

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/admins/login", auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_raw_token(
    bearer: Optional[str] = Depends(oauth2_scheme),
    token: Optional[str] = Header(None),
) -> str:
    """Token from `Authorization: Bearer <t>`, falling back to a plain `token` header."""
    raw = bearer or token
    if not raw:
        raise _unauthenticated("Authentication required")
    return raw


async def require_long_token(
    raw_token: str = Depends(get_raw_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Dict[str, Any]:
    """Guard for the short-token mint endpoint: a valid long token and nothing else."""
    claims = issuer.verify(raw_token, LONG)
    if not claims or not claims.get("user_id"):
        raise _unauthenticated("Invalid or expired token")
    return claims


def scope_from_claims(claims: Dict[str, Any]) -> Optional[CallerScope]:
    try:
        role = AdminRole(claims.get("role"))
        user_id = UUID(claims["user_id"])
        school_id = UUID(claims["school_id"]) if claims.get("school_id") else None
    except (KeyError, TypeError, ValueError):
        return None
    if role == AdminRole.SCHOOL_ADMIN and school_id is None:
        return None
    return CallerScope(
        user_id=user_id,
        role=role,
        school_id=school_id if role == AdminRole.SCHOOL_ADMIN else None,
        session_id=claims.get("session_id"),
    )


async def get_caller_scope(
    raw_token: str = Depends(get_raw_token),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> CallerScope:
    """Resolve the caller's authorization scope from a valid short token."""
    claims = issuer.verify(raw_token, SHORT)
    scope = scope_from_claims(claims) if claims else None
    if scope is None:
        raise _unauthenticated("Invalid or expired token")
    return scope


async def require_school_admin(
    scope: CallerScope = Depends(get_caller_scope),
) -> CallerScope:
    """Require school_admin or superadmin. Per-resource school checks happen in the services."""
    if scope.role not in (AdminRole.SCHOOL_ADMIN, AdminRole.SUPERADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="School admin access required",
        )
    return scope


async def require_superadmin(
    scope: CallerScope = Depends(get_caller_scope),
) -> CallerScope:
    if not scope.is_superadmin:
        logger.warning("Superadmin-only endpoint refused for admin %s", scope.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Superadmin access required",
        )
    return scope
