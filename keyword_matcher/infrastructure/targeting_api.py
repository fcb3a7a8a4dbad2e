"""Meta Marketing targeting search HTTP client.

Searches ad interests for a keyword through the Graph API `search` endpoint
(`type=adinterest`). When the token is missing or the API is unreachable the
client can return deterministic offline candidates instead, flagged with
provider="fallback" so they are never mistaken for real audience data.
"""

import asyncio
import json
import logging
import random
import re
import zlib
from typing import Optional

import httpx

from keyword_matcher.config import Settings, get_settings
from keyword_matcher.core.exceptions import ProviderErrorException, ProviderUnavailableException
from keyword_matcher.domain.schemas.suggestion import PROVIDER_FALLBACK, PROVIDER_META, Suggestion

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)

# Rough French → English word map for the offline candidates
FALLBACK_DICTIONARY = {
    "marketing": "marketing",
    "digital": "digital",
    "réseaux": "networks",
    "sociaux": "social",
    "médias": "media",
    "vente": "sales",
    "en": "online",
    "ligne": "online",
    "commerce": "commerce",
    "publicité": "advertising",
    "annonce": "ad",
    "campagne": "campaign",
}

_PLAIN_ENGLISH = re.compile(r"^[a-zA-Z\s]+$")


def audience_from_payload(item: dict) -> int:
    """Midpoint of the audience bounds, else the single size, else whichever bound is present."""
    lower = item.get("audience_size_lower_bound")
    upper = item.get("audience_size_upper_bound")
    # Zero is a real bound
    if lower is not None and upper is not None:
        return (int(lower) + int(upper)) // 2
    size = item.get("audience_size")
    if size is not None:
        return int(size)
    if lower is not None:
        return int(lower)
    if upper is not None:
        return int(upper)
    return 0


def _english_simulation(keyword: str) -> str:
    words = keyword.lower().split()
    translated = " ".join(FALLBACK_DICTIONARY.get(word, word) for word in words)
    return translated[:1].upper() + translated[1:]


def fallback_suggestions(keyword: str, limit: int = 10) -> list[Suggestion]:
    """Offline candidates for a keyword; the same keyword always yields the same list."""
    rng = random.Random(zlib.crc32(keyword.encode("utf-8")))
    seed = f"{zlib.crc32(keyword.encode('utf-8')):08x}"

    # (value, audience base, audience spread)
    variants = [
        (keyword, 10_000_000, 50_000_000),
        (f"{keyword} Marketing", 5_000_000, 20_000_000),
        (f"Digital {keyword}", 8_000_000, 30_000_000),
        (f"{keyword} Social Media", 12_000_000, 40_000_000),
        (f"Online {keyword}", 7_000_000, 25_000_000),
    ]
    if not _PLAIN_ENGLISH.match(keyword):
        english = _english_simulation(keyword)
        variants += [
            (english, 15_000_000, 60_000_000),
            (f"{english} Trends", 9_000_000, 35_000_000),
        ]

    suggestions = []
    for position, (value, base, spread) in enumerate(variants[:limit], start=1):
        interest_id = f"fallback-{seed}-{position}"
        suggestions.append(
            Suggestion(
                id=interest_id,
                value=value,
                audience_size=base + int(rng.random() * spread),
                provider=PROVIDER_FALLBACK,
                targeting_spec=json.dumps({"interests": [interest_id]}),
            )
        )
    return suggestions


class TargetingSearchClient:
    """Client for the Meta Marketing ad-interest search.

    Transient failures (429/5xx, connection errors) are retried with a linear
    backoff before the fallback or error path is taken.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ):
        self.settings = settings or get_settings()
        self.base_url = f"{self.settings.META_API_URL.rstrip('/')}/{self.settings.META_API_VERSION}"
        self.access_token = self.settings.META_ACCESS_TOKEN
        self.fallback_enabled = self.settings.SUGGESTION_FALLBACK_ENABLED
        self.transport = transport
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)

    async def suggest(self, keyword: str, limit: int = 10) -> list[Suggestion]:
        """
        Search targeting interests for a keyword.

        Args:
            keyword: Non-empty keyword text
            limit: Maximum number of candidates to return

        Raises:
            ProviderUnavailableException: no access token and fallback disabled
            ProviderErrorException: API failure with fallback disabled, or a malformed payload
        """
        keyword = keyword.strip()
        if not self.is_configured:
            if self.fallback_enabled:
                logger.warning("META_ACCESS_TOKEN not set, using fallback suggestions")
                return fallback_suggestions(keyword, limit)
            raise ProviderUnavailableException("Meta access token is not configured")

        try:
            payload = await self._search(keyword, limit)
        except httpx.HTTPError as e:
            if self.fallback_enabled:
                logger.warning(f"Meta search failed for '{keyword}', using fallback suggestions: {e}")
                return fallback_suggestions(keyword, limit)
            raise ProviderErrorException(f"Meta search failed: {e}") from e

        return self._parse(payload, limit)

    async def _search(self, keyword: str, limit: int) -> dict:
        params = {
            "q": keyword,
            "type": "adinterest",
            "limit": limit,
            "access_token": self.access_token,
        }
        url = f"{self.base_url}/search"

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 2):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.get(url, params=params)
                    response.raise_for_status()
                    try:
                        return response.json()
                    except ValueError as e:
                        raise ProviderErrorException("Malformed Meta search response: invalid JSON") from e
            except httpx.HTTPStatusError as e:
                last_error = e
                error_text = e.response.text[:200] if e.response.text else "No response body"
                logger.warning(
                    f"Meta API error (attempt {attempt}/{self.max_retries + 1}): "
                    f"{e.response.status_code} - {error_text}"
                )
                if e.response.status_code not in RETRYABLE_STATUS:
                    raise
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"Meta API connection error (attempt {attempt}/{self.max_retries + 1}): {e}")

            if attempt <= self.max_retries:
                await asyncio.sleep(self.retry_delay * attempt)

        raise last_error

    def _parse(self, payload, limit: int) -> list[Suggestion]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ProviderErrorException("Malformed Meta search response: missing 'data' list")

        suggestions = []
        seen_ids: set[str] = set()
        for position, item in enumerate(data[:limit], start=1):
            if not isinstance(item, dict) or not item.get("name"):
                continue
            interest_id = str(item.get("id") or f"meta-{position}")
            unique_id, n = interest_id, 1
            while unique_id in seen_ids:
                n += 1
                unique_id = f"{interest_id}-{n}"
            seen_ids.add(unique_id)

            suggestions.append(
                Suggestion(
                    id=unique_id,
                    value=str(item["name"]),
                    audience_size=audience_from_payload(item),
                    provider=PROVIDER_META,
                    targeting_spec=json.dumps({"interests": [interest_id]}),
                )
            )
        return suggestions

    def health(self) -> dict:
        """Configuration state of the search client; never calls the API."""
        if self.is_configured:
            return {
                "status": "connected",
                "configured": True,
                "fallback_enabled": self.fallback_enabled,
                "message": "Meta Marketing API token configured",
            }
        return {
            "status": "unconfigured",
            "configured": False,
            "fallback_enabled": self.fallback_enabled,
            "message": "Meta Marketing API token not configured",
        }
