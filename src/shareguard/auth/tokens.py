"""Bearer tokens - HS256 JWTs carrying the (user, device) binding."""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from jose import JWTError, jwt

from shareguard.common.exceptions import InvalidToken


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    device_id: str
    email: str
    expires_at: int


class TokenService:
    """Issues and verifies session tokens.

    Expiry is checked against the injected clock rather than by the JWT
    library so tests can run at a fixed time.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiry_minutes: int = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self.expiry_seconds = expiry_minutes * 60
        self._clock = clock or time.time

    def issue(self, user_id: str, device_id: str, email: str) -> str:
        claims = {
            "userId": user_id,
            "deviceId": device_id,
            "email": email,
            "exp": int(self._clock()) + self.expiry_seconds,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            InvalidToken: If the token is malformed, tampered with or expired
        """
        if not token:
            raise InvalidToken("No token provided")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise InvalidToken("Invalid token") from e

        try:
            parsed = TokenClaims(
                user_id=str(claims["userId"]),
                device_id=str(claims["deviceId"]),
                email=str(claims.get("email", "")),
                expires_at=int(claims["exp"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken("Invalid token format") from e

        if parsed.expires_at <= self._clock():
            raise InvalidToken("Token expired")
        return parsed
