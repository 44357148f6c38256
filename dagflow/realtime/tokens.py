"""Short-lived subscription tokens scoped to one channel and its topics."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import JWTError, jwt
from pydantic import BaseModel

from ..core.config import settings
from ..core.exceptions import SubscriptionDenied

ALGORITHM = "HS256"
TOKEN_TYPE = "subscribe"


class SubscriptionClaims(BaseModel):
    channel: str
    topics: list[str]
    exp: datetime
    type: str
    jti: str


class TokenIssuer:
    """Issues and verifies subscription tokens."""

    def __init__(self, secret: str | None = None, ttl_seconds: int | None = None) -> None:
        self.secret = secret or settings.realtime_secret
        self.ttl_seconds = ttl_seconds or settings.realtime_token_ttl_seconds

    def issue(self, channel: str, topics: Iterable[str]) -> str:
        """
        Create a token granting ``channel`` and exactly ``topics``.

        Returns:
            JWT as a string
        """
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        to_encode = {
            "channel": channel,
            "topics": sorted(set(topics)),
            "exp": expire,
            "type": TOKEN_TYPE,
            "jti": secrets.token_hex(8),
        }
        return jwt.encode(to_encode, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str, channel: str, topics: Iterable[str] | None = None) -> SubscriptionClaims:
        """
        Check that ``token`` grants ``channel`` and every requested topic.

        Raises:
            SubscriptionDenied: If the token is invalid, expired or scoped elsewhere
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError as e:
            raise SubscriptionDenied(f"invalid token ({e})") from e

        claims = SubscriptionClaims(**payload)
        if claims.type != TOKEN_TYPE:
            raise SubscriptionDenied("not a subscription token")
        if claims.channel != channel:
            raise SubscriptionDenied(f"token is not valid for channel {channel}")

        missing = set(topics or claims.topics) - set(claims.topics)
        if missing:
            raise SubscriptionDenied(f"token does not grant topics {sorted(missing)}")
        return claims
