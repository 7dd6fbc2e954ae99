from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp


logger = logging.getLogger(__name__)


class HttpClient:
    """Thin JSON client: bounded concurrency, one attempt per call, None on any failure."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        semaphore: asyncio.Semaphore,
        user_agent: str,
        timeout_seconds: float,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._session = session
        self._sem = semaphore
        self._ua = user_agent
        self._headers = {str(k): str(v) for k, v in (headers or {}).items()}
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def post_json(self, url: str, payload: dict[str, Any]) -> Optional[Any]:
        headers: dict[str, str] = {
            "User-Agent": self._ua,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        headers.update(self._headers)

        async with self._sem:
            try:
                async with self._session.post(url, json=payload, headers=headers, timeout=self._timeout) as r:
                    if r.status >= 400:
                        logger.debug("POST %s returned status %d", url, r.status)
                        return None
                    return await r.json(content_type=None)
            except asyncio.CancelledError:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                logger.debug("POST %s failed: %s", url, exc)
                return None
