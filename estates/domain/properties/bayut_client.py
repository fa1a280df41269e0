"""Bayut listings client - paginated property search over RapidAPI"""

import logging
import time
from typing import Any, Optional

import httpx

from ...config import BAYUT_API_HOST, BAYUT_REQUEST_TIMEOUT, RAPIDAPI_KEY, SYNC_HITS_PER_PAGE

logger = logging.getLogger(__name__)


class BayutAPIError(Exception):
    """Non-2xx response from the listings API"""

    def __init__(self, status_code: int, details: str = ""):
        self.status_code = status_code
        self.details = details
        self.issue, self.recommendation = diagnose_status(status_code)
        super().__init__(f"Bayut API error {status_code}: {self.issue}")

    def to_diagnosis(self) -> dict:
        return {
            "httpStatus": self.status_code,
            "responseBody": self.details[:500],
            "issue": self.issue,
            "recommendation": self.recommendation,
        }


def diagnose_status(status_code: int) -> tuple[str, str]:
    """Human readable cause and fix for a failed API call"""
    if status_code == 401:
        return (
            "Invalid or expired API key",
            "Update RAPIDAPI_KEY with a key subscribed to the Bayut API on rapidapi.com.",
        )
    if status_code == 403:
        return (
            "API access forbidden - subscription may have expired or quota exceeded",
            "Check the RapidAPI subscription status and quota limits.",
        )
    if status_code == 429:
        return (
            "Rate limit exceeded",
            "Wait a few minutes or upgrade the RapidAPI plan.",
        )
    if status_code in (500, 502, 503):
        return (
            "RapidAPI server error",
            "The RapidAPI server is experiencing issues. Try again in a few minutes.",
        )
    return f"HTTP {status_code} error", "Check the RapidAPI dashboard for more details."


class BayutClient:
    """Thin async wrapper over the RapidAPI Bayut endpoints.

    A transport can be injected (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        host: str = BAYUT_API_HOST,
        timeout: float = BAYUT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else RAPIDAPI_KEY
        self.host = host
        self.base_url = f"https://{host}"
        self.timeout = timeout
        self.transport = transport
        self.api_calls = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "X-RapidAPI-Key": self.api_key or "",
            "X-RapidAPI-Host": self.host,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def list_properties(
        self,
        location_id: str,
        purpose: str = "for-sale",
        page: int = 0,
        hits_per_page: int = SYNC_HITS_PER_PAGE,
    ) -> dict[str, Any]:
        """
        Fetch one page of listings for a location

        Returns:
            {"hits": [...raw records], "nbPages": int}
        """
        params = {
            "locationExternalIDs": location_id,
            "purpose": purpose,
            "hitsPerPage": hits_per_page,
            "page": page,
            "lang": "en",
            "sort": "date-desc",
            "rentFrequency": "yearly",
        }
        logger.debug(f"📡 GET /properties/list {params}")

        async with self._client() as client:
            response = await client.get("/properties/list", params=params)
        self.api_calls += 1

        if response.status_code != 200:
            logger.error(f"❌ Bayut list failed ({response.status_code}): {response.text[:200]}")
            raise BayutAPIError(response.status_code, response.text)

        data = response.json()
        return {"hits": data.get("hits") or [], "nbPages": data.get("nbPages") or 0}

    async def test_connection(self) -> dict[str, Any]:
        """Cheapest possible call, used to validate the API key"""
        diagnosis: dict[str, Any] = {
            "keyExists": bool(self.api_key),
            "keyLength": len(self.api_key or ""),
            "apiHost": self.host,
        }
        if not self.api_key:
            diagnosis["recommendation"] = "Set RAPIDAPI_KEY in the environment"
            return {"success": False, "error": "RAPIDAPI_KEY not configured", "diagnosis": diagnosis}

        diagnosis["keyPrefix"] = self.api_key[:8] + "..."
        start = time.monotonic()
        try:
            async with self._client() as client:
                response = await client.get("/auto-complete", params={"query": "dubai", "hitsPerPage": 1})
        except httpx.HTTPError as e:
            logger.error(f"❌ Bayut connection test failed: {e}")
            diagnosis["recommendation"] = "Check network connectivity and RapidAPI status."
            return {"success": False, "error": "Connection failed", "details": str(e), "diagnosis": diagnosis}
        self.api_calls += 1
        response_time_ms = int((time.monotonic() - start) * 1000)
        diagnosis["responseTime"] = response_time_ms

        if response.status_code != 200:
            error = BayutAPIError(response.status_code, response.text)
            diagnosis.update(error.to_diagnosis())
            logger.warning(f"⚠️ Bayut connection test: {error}")
            return {"success": False, "error": f"API Error: {response.status_code}", "diagnosis": diagnosis}

        logger.info(f"✅ Bayut API connection OK ({response_time_ms}ms)")
        return {
            "success": True,
            "message": "API connection successful",
            "apiCallsUsed": 1,
            "diagnosis": diagnosis,
        }
