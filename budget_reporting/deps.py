"""Common FastAPI dependencies for consistent type annotations.

Usage:
    from budget_reporting.deps import CurrentContext, DbSession

    async def my_endpoint(db: DbSession, ctx: CurrentContext):
        # db is AsyncSession with get_db dependency injected
        # ctx is the caller's RequestContext built from request headers
        ...
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from budget_reporting.context import RequestContext, UserRole
from budget_reporting.database import get_db
from budget_reporting.utils import raise_bad_request, raise_unauthorized


async def get_request_context(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Resolve the caller from identity headers set by the upstream gateway."""
    if not x_user_id:
        raise_unauthorized("Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError as e:
        raise_unauthorized("Invalid X-User-Id header", cause=e)

    try:
        role = UserRole((x_user_role or UserRole.ACCOUNTANT.value).lower())
    except ValueError as e:
        raise_bad_request(f"Unknown role: {x_user_role}", cause=e)

    return RequestContext(user_id=user_id, role=role)


DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentContext = Annotated[RequestContext, Depends(get_request_context)]

__all__ = ["CurrentContext", "DbSession"]
