"""
DarkMode Backend — Route Dependencies
=======================================

What:  Authentication dependencies shared by the routers.
How:
    get_current_account   Bearer access token, or X-API-Key as a fallback
    require_subscription  403 unless the account's status is in the allow-list

Both raise UnauthorizedError / ForbiddenError; the global handler renders them.
"""

from typing import Callable, Iterable, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.exceptions import ForbiddenError, UnauthorizedError
from app.models.account import Account
from app.models.enums import SubscriptionStatus
from app.services.security import access_token_signer
from app.services.user_service import user_service

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Account:
    if credentials is None:
        api_key = request.headers.get("X-API-Key")
        if api_key:
            account = await user_service.authenticate_api_key(db, api_key)
            request.state.account_id = account.id
            return account
        raise UnauthorizedError("No token provided")

    payload = access_token_signer.verify(credentials.credentials)
    try:
        account_id = UUID(payload["uid"])
    except (ValueError, TypeError):
        raise UnauthorizedError("Invalid token")

    account = await db.get(Account, account_id)
    if account is None:
        raise UnauthorizedError("User not found")
    request.state.account_id = account.id
    return account


def require_subscription(allowed: Iterable[SubscriptionStatus]) -> Callable:
    allowed_set = frozenset(allowed)

    async def dependency(account: Account = Depends(get_current_account)) -> Account:
        if account.subscription_status not in allowed_set:
            raise ForbiddenError("Subscription required for this feature")
        return account

    return dependency


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
