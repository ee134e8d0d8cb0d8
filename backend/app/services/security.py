"""
DarkMode Backend — Credential Primitives
==========================================

What:  Password hashing and the stateless access-token signer.
How:   werkzeug.security for salted password hashes; itsdangerous
       URLSafeTimedSerializer for signed, time-limited access tokens.

Hashing is CPU-bound (scrypt), so it runs in Starlette's threadpool to keep
the event loop responsive during login bursts.
"""

from typing import Any, Dict, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from starlette.concurrency import run_in_threadpool
from werkzeug.security import check_password_hash, generate_password_hash

from app.config import settings
from app.exceptions import UnauthorizedError

ACCESS_TOKEN_SALT = "access-token"


async def hash_password(password: str) -> str:
    return await run_in_threadpool(generate_password_hash, password)


async def verify_password(password_hash: str, password: str) -> bool:
    return await run_in_threadpool(check_password_hash, password_hash, password)


class AccessTokenSigner:
    """
    Issues and verifies access tokens.

    The token carries the account id and email, signed with SECRET_KEY and
    timestamped. There is no revocation list: a token stays valid until
    its max age passes, even after logout.
    """

    def __init__(self, secret_key: str, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._serializer = URLSafeTimedSerializer(secret_key, salt=ACCESS_TOKEN_SALT)

    def issue(self, account_id: str, email: str) -> str:
        return self._serializer.dumps({"uid": account_id, "email": email})

    def verify(self, token: str, max_age: Optional[int] = None) -> Dict[str, Any]:
        """
        Returns the token payload.

        Raises:
            UnauthorizedError: "Token expired" or "Invalid token"
        """
        try:
            payload = self._serializer.loads(token, max_age=max_age or self.ttl_seconds)
        except SignatureExpired:
            raise UnauthorizedError("Token expired")
        except BadSignature:
            raise UnauthorizedError("Invalid token")
        if not isinstance(payload, dict) or "uid" not in payload:
            raise UnauthorizedError("Invalid token")
        return payload


access_token_signer = AccessTokenSigner(settings.secret_key, settings.access_token_ttl_seconds)
