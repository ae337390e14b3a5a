"""Проверка bearer-токенов.

- HS256 подписан `SECRET_KEY` (внутренние клиенты); без `SECRET_KEY` HS256 не принимается;
- остальное проверяется публичными ключами из `JWKS_URL` (Keycloak).
  Ключи кэшируются по `kid` на `SIGNING_KEY_TTL_SECONDS` (по умолчанию 8 часов),
  JWKS перечитывается не чаще раза в `JWKS_MIN_REFRESH_SECONDS`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
from jose import JWTError, jwt

from glusterapi.log import outgoing_headers
from portal.core.cache import TTLCache
from portal.core.config import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
# Ключ подписи Keycloak
JWKS_ALGORITHMS = ["RS256"]


class SigningKeyStore:
    """Публичные ключи из JWKS, закэшированные по `kid`."""

    def __init__(
        self,
        jwks_url: str,
        ttl_seconds: float,
        *,
        min_refresh_seconds: float = 60,
        timeout: Optional[float] = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: TTLCache[dict] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.jwks_url = jwks_url
        self.min_refresh_seconds = min_refresh_seconds
        self.timeout = timeout
        self.transport = transport
        self.cache: TTLCache[dict] = cache or TTLCache(ttl_seconds, clock)
        self._clock = clock
        self._refreshed_at: Optional[float] = None

    async def get(self, kid: str) -> dict:
        key = self.cache.get(kid)
        if key is not None:
            return key

        if not self.jwks_url:
            raise JWTError("JWKS_URL не задан")
        # Неизвестный kid не должен каждый раз ходить в Keycloak
        if self._refreshed_at is not None and self._clock() - self._refreshed_at < self.min_refresh_seconds:
            logger.info("Skipping JWKS refresh for unknown kid=%s", kid)
            raise JWTError(f"Неизвестный ключ подписи: {kid}")
        self._refreshed_at = self._clock()
        await self._refresh()

        key = self.cache.get(kid)
        if key is None:
            raise JWTError(f"Неизвестный ключ подписи: {kid}")
        return key

    async def _refresh(self) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                resp = await client.get(self.jwks_url, headers=outgoing_headers())
            except httpx.HTTPError as exc:
                logger.warning("Cannot download JWKS url=%s error=%s", self.jwks_url, exc)
                raise JWTError("Не удалось получить ключи подписи") from exc
        if resp.status_code != 200:
            logger.warning("Error downloading JWKS url=%s status=%s", self.jwks_url, resp.status_code)
            raise JWTError("Не удалось получить ключи подписи")

        keys = resp.json().get("keys") or []
        for key in keys:
            if key.get("kid"):
                self.cache.set(key["kid"], key)
        logger.info("Signing keys refreshed count=%s", len(keys))


async def verify_token(token: str, settings: Settings, keys: SigningKeyStore) -> Dict[str, Any]:
    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") == ALGORITHM:
            if not settings.secret_key:
                raise JWTError("HS256 не принимается: SECRET_KEY не задан")
            return jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])

        key = await keys.get(header.get("kid") or "")
        return jwt.decode(token, key, algorithms=JWKS_ALGORITHMS, options={"verify_aud": False, "verify_at_hash": False})
    except JWTError as error:
        raise JWTError("Невалидный токен") from error
