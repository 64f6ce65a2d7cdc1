"""
FastAPI dependencies: container lookup, request fingerprint, admin gate.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional

from fastapi import Depends, Header, Request

from dodgeboard.core.services.container import ServiceContainer
from dodgeboard.modules.admin import AdminService
from dodgeboard.modules.identity import request_fingerprint


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_fingerprint(request: Request) -> str:
    peer = request.client.host if request.client else None
    return request_fingerprint(request.headers.get("x-forwarded-for"), peer)


async def get_admin_code(
    request: Request,
    x_admin_code: Optional[str] = Header(None),
) -> Optional[str]:
    """X-Admin-Code header, else `code` in the query string, else `code` in a JSON body."""
    if x_admin_code:
        return x_admin_code

    code = request.query_params.get("code")
    if code:
        return code

    if request.method in ("POST", "PATCH", "PUT", "DELETE"):
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("code"), str):
            return body["code"]
    return None


def require_admin(action: str) -> Callable[..., Awaitable[AdminService]]:
    async def _verified(
        code: Optional[str] = Depends(get_admin_code),
        container: ServiceContainer = Depends(get_container),
    ) -> AdminService:
        container.admin.verify(code, action)
        return container.admin

    return _verified
