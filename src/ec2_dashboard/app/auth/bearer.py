from __future__ import annotations

from fastapi import Header, HTTPException, status

BEARER_PREFIX = "bearer "


class BearerTokenAuth:
    """Rejects requests whose ``Authorization`` header is missing or unknown.

    Accepts the raw token or ``Bearer <token>``. With no tokens configured the
    endpoint is open, matching a gateway method without an authorizer.
    """

    def __init__(self, valid_tokens: set[str]) -> None:
        self.valid_tokens = valid_tokens

    def __call__(self, authorization: str | None = Header(default=None)) -> None:
        if not self.valid_tokens:
            return
        token = (authorization or "").strip()
        if token.lower().startswith(BEARER_PREFIX):
            token = token[len(BEARER_PREFIX):].strip()
        if not token or token not in self.valid_tokens:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
