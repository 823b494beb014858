import uuid
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError


def create_access_token(
    *,
    user_id: uuid.UUID,
    secret: str,
    algorithm: str = "HS256",
    audience: str = "authenticated",
    expires_delta: timedelta | None = None,
) -> str:
    """Mint a token shaped like the platform's access tokens (tests, local development)."""
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(hours=1))
    payload = {"sub": str(user_id), "aud": audience, "role": "authenticated", "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
    audience: str,
) -> uuid.UUID:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms), audience=audience)
    except InvalidTokenError as exc:  # includes ExpiredSignatureError and InvalidAudienceError
        raise ValueError("invalid token") from exc

    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        return uuid.UUID(str(sub))
    except ValueError as exc:
        raise ValueError("token sub is not a uuid") from exc
