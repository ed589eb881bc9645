"""
osu! API v1 match source.
Endpoints: /get_match (mp=<match id>) and /get_beatmaps (b=<beatmap id>).
The key is sent as the `k` query parameter; a missing match is reported as
`{"match": 0, "games": []}` and a missing beatmap as an empty list.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from shared.config import Settings, get_settings
from shared.utils.http_client import ApiHTTPClient
from shared.utils.logging import get_logger
from shared.utils.rate_limiter import TokenBucket

from ingest.sources.base import FetchStatus, MatchSource, SourceResult

logger = get_logger(__name__)


class OsuApiSource(MatchSource):
    """osu! API v1 connector; every request, retries included, takes a token from the bucket."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rate_limiter: Optional[TokenBucket] = None,
    ) -> None:
        settings = settings or get_settings()
        self._api_key = settings.osu_api_key
        self._rate_limiter = rate_limiter or TokenBucket(settings.osu_api_rpm_limit, settings.osu_api_burst)
        self._http = ApiHTTPClient(
            source_name="osu",
            base_url=settings.osu_api_base_url,
            timeout_s=settings.source_request_timeout_s,
            max_retries=settings.source_max_retries,
            transport=transport,
            rate_limiter=self._rate_limiter,
        )
        super().__init__(name="osu")

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def _fetch_match(self, osu_match_id: int) -> SourceResult:
        resp = await self._http.get("/get_match", params={"k": self._api_key, "mp": osu_match_id})
        data: Any = resp.json()
        if not isinstance(data, dict) or not data.get("match"):
            logger.info("osu_match_not_found", osu_match_id=osu_match_id)
            return SourceResult.not_found()
        return SourceResult(status=FetchStatus.FOUND, data=data)

    async def _fetch_beatmap(self, osu_beatmap_id: int) -> SourceResult:
        resp = await self._http.get("/get_beatmaps", params={"k": self._api_key, "b": osu_beatmap_id})
        data: Any = resp.json()
        if not isinstance(data, list) or not data:
            logger.info("osu_beatmap_not_found", osu_beatmap_id=osu_beatmap_id)
            return SourceResult.not_found()
        return SourceResult(status=FetchStatus.FOUND, data=data[0])
