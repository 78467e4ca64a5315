"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from portal_chat.application.dto.principal import Principal
from portal_chat.application.ports.auth import TokenVerifier
from portal_chat.application.ports.bus import FanoutRelay
from portal_chat.application.uow import UnitOfWork, UoWFactory
from portal_chat.config import settings
from portal_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from portal_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from portal_chat.infrastructure.db.uow import sql_uow_scope
from portal_chat.infrastructure.ws.registry import ConnectionRegistry

_bearer_scheme = HTTPBearer()


def get_uow_factory() -> UoWFactory:
    return sql_uow_scope


UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


async def get_uow(factory: UoWFactoryDep) -> AsyncIterator[UnitOfWork]:
    async with factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def get_registry(conn: HTTPConnection) -> ConnectionRegistry:
    return conn.app.state.registry


def get_relay(conn: HTTPConnection) -> FanoutRelay:
    return conn.app.state.relay


RegistryDep = Annotated[ConnectionRegistry, Depends(get_registry)]
RelayDep = Annotated[FanoutRelay, Depends(get_relay)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
