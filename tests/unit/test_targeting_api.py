from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from keyword_matcher.config import Settings
from keyword_matcher.core.exceptions import ProviderErrorException, ProviderUnavailableException
from keyword_matcher.infrastructure.targeting_api import (
    TargetingSearchClient,
    audience_from_payload,
    fallback_suggestions,
)


def _settings(**overrides) -> Settings:
    values = {"META_ACCESS_TOKEN": "token", "SUGGESTION_FALLBACK_ENABLED": False}
    values.update(overrides)
    return Settings(**values)


def _client(handler, **overrides) -> TargetingSearchClient:
    return TargetingSearchClient(
        settings=_settings(**overrides),
        transport=httpx.MockTransport(handler),
        retry_delay=0,
    )


def test_search_request_and_payload_mapping():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "id": "6003139266461",
                        "name": "Shoes",
                        "audience_size_lower_bound": 100,
                        "audience_size_upper_bound": 201,
                    },
                    {"id": "6003", "name": "Footwear", "audience_size": 5000},
                ]
            },
        )

    suggestions = asyncio.run(_client(handler).suggest("shoes", limit=5))

    assert seen["path"] == "/v18.0/search"
    assert seen["params"] == {
        "q": "shoes",
        "type": "adinterest",
        "limit": "5",
        "access_token": "token",
    }
    assert [s.value for s in suggestions] == ["Shoes", "Footwear"]
    assert suggestions[0].audience_size == 150
    assert suggestions[0].provider == "meta"
    assert json.loads(suggestions[0].targeting_spec) == {"interests": ["6003139266461"]}
    assert all(s.score is None and not s.is_selected for s in suggestions)


def test_duplicate_ids_are_made_unique():
    def handler(request):
        return httpx.Response(200, json={"data": [{"id": "1", "name": "A"}, {"id": "1", "name": "B"}]})

    suggestions = asyncio.run(_client(handler).suggest("a"))
    assert [s.id for s in suggestions] == ["1", "1-2"]


@pytest.mark.parametrize(
    "item, expected",
    [
        ({"audience_size_lower_bound": 10, "audience_size_upper_bound": 21}, 15),
        ({"audience_size": 42}, 42),
        ({"audience_size_lower_bound": 7}, 7),
        ({"audience_size_lower_bound": 0, "audience_size_upper_bound": 1000}, 500),
        ({"audience_size_upper_bound": 40}, 40),
        ({"audience_size": 0, "audience_size_lower_bound": 9}, 0),
        ({}, 0),
    ],
)
def test_audience_size_rules(item, expected):
    assert audience_from_payload(item) == expected


def test_missing_data_list_is_a_provider_error_even_with_fallback():
    def handler(request):
        return httpx.Response(200, json={"error": "nope"})

    with pytest.raises(ProviderErrorException):
        asyncio.run(_client(handler, SUGGESTION_FALLBACK_ENABLED=True).suggest("shoes"))


def test_http_error_without_fallback_raises():
    def handler(request):
        return httpx.Response(500, text="server down")

    with pytest.raises(ProviderErrorException):
        asyncio.run(_client(handler).suggest("shoes"))


def test_http_error_with_fallback_returns_fallback_candidates():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    suggestions = asyncio.run(_client(handler, SUGGESTION_FALLBACK_ENABLED=True).suggest("shoes"))

    assert len(calls) == 3  # first try plus two retries
    assert suggestions[0].value == "shoes"
    assert all(s.provider == "fallback" for s in suggestions)


def test_client_error_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "bad token"}})

    with pytest.raises(ProviderErrorException):
        asyncio.run(_client(handler).suggest("shoes"))
    assert len(calls) == 1


def test_missing_token_without_fallback_is_unavailable():
    client = TargetingSearchClient(settings=_settings(META_ACCESS_TOKEN=""))
    with pytest.raises(ProviderUnavailableException):
        asyncio.run(client.suggest("shoes"))


def test_missing_token_with_fallback_never_calls_the_api():
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(handler, META_ACCESS_TOKEN="", SUGGESTION_FALLBACK_ENABLED=True)
    suggestions = asyncio.run(client.suggest("Marketing"))

    assert [s.value for s in suggestions] == [
        "Marketing",
        "Marketing Marketing",
        "Digital Marketing",
        "Marketing Social Media",
        "Online Marketing",
    ]


def test_fallback_is_deterministic_and_adds_english_variants():
    first = fallback_suggestions("publicité en ligne")
    second = fallback_suggestions("publicité en ligne")

    assert [s.model_dump() for s in first] == [s.model_dump() for s in second]
    assert len(first) == 7
    assert first[5].value == "Advertising online online"
    assert first[6].value == "Advertising online online Trends"
    assert len({s.id for s in first}) == len(first)
    assert all(s.audience_size > 0 for s in first)


def test_health_reports_configuration():
    assert TargetingSearchClient(settings=_settings()).health()["configured"] is True
    assert TargetingSearchClient(settings=_settings(META_ACCESS_TOKEN="")).health()["status"] == "unconfigured"
