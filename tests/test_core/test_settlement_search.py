"""Tests for free-text settlement search."""

import httpx
import pytest
import respx
from httpx import Response

from listing_location.core.geocoding import SettlementSearchClient
from listing_location.models import CoordinateSource

GEOCODER_URL = "https://geo.test"


def place(name: str, kind: str, lat: str = "49.0", lon: str = "25.0") -> dict:
    return {
        "name": name,
        "addresstype": kind,
        "lat": lat,
        "lon": lon,
        "address": {"state": "Тернопільська область", "country": "Україна"},
    }


@pytest.fixture
def client() -> SettlementSearchClient:
    return SettlementSearchClient(base_url=GEOCODER_URL)


@pytest.mark.asyncio
async def test_search_returns_settlements(client: SettlementSearchClient) -> None:
    """Test only populated places are returned, as geocoded points."""
    payload = [
        place("Теребовля", "town", "49.3003", "25.6989"),
        place("Теребовлянська вулиця", "road"),
        place("Острівець", "village"),
    ]
    with respx.mock:
        route = respx.get(f"{GEOCODER_URL}/search").mock(
            return_value=Response(200, json=payload)
        )

        results = await client.search("Тереб", country_code="UA")

    assert [c.name for c in results] == ["Теребовля", "Острівець"]
    first = results[0]
    assert first.kind == "town"
    assert first.region == "Тернопільська область"
    assert first.display_name == "Теребовля, Тернопільська область, Україна"
    assert first.point.as_tuple() == (49.3003, 25.6989)
    assert first.point.source == CoordinateSource.GEOCODED

    params = route.calls.last.request.url.params
    assert params["q"] == "Тереб"
    assert params["countrycodes"] == "ua"
    assert params["addressdetails"] == "1"


@pytest.mark.asyncio
async def test_search_caps_results(client: SettlementSearchClient) -> None:
    payload = [place(f"Село {i}", "village") for i in range(8)]
    with respx.mock:
        respx.get(f"{GEOCODER_URL}/search").mock(
            return_value=Response(200, json=payload)
        )

        results = await client.search("Село")

    assert len(results) == 6


@pytest.mark.asyncio
async def test_short_query_skips_request(client: SettlementSearchClient) -> None:
    with respx.mock:
        route = respx.get(f"{GEOCODER_URL}/search").mock(
            return_value=Response(200, json=[])
        )

        assert await client.search(" Т ") == []

    assert not route.called


@pytest.mark.asyncio
async def test_search_skips_bad_items(client: SettlementSearchClient) -> None:
    payload = [
        {"addresstype": "village", "lat": "49", "lon": "25"},
        place("Бучач", "town", lat="north"),
        "garbage",
        place("Бучач", "town"),
    ]
    with respx.mock:
        respx.get(f"{GEOCODER_URL}/search").mock(
            return_value=Response(200, json=payload)
        )

        results = await client.search("Бучач")

    assert [c.name for c in results] == ["Бучач"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mock_kwargs",
    [
        {"return_value": Response(503)},
        {"return_value": Response(200, text="not json")},
        {"return_value": Response(200, json={"error": "bad"})},
        {"side_effect": httpx.ReadTimeout("slow")},
    ],
)
async def test_search_failure_returns_empty(
    client: SettlementSearchClient, mock_kwargs
) -> None:
    with respx.mock:
        respx.get(f"{GEOCODER_URL}/search").mock(**mock_kwargs)

        assert await client.search("Бучач") == []


@pytest.mark.asyncio
async def test_search_tolerates_malformed_address(
    client: SettlementSearchClient,
) -> None:
    """Test a non-object address or odd name never aborts the search."""
    payload = [
        {
            "name": "Бучач",
            "addresstype": "town",
            "lat": "49.06",
            "lon": "25.39",
            "address": "Тернопільська область",
        },
        {"name": ["Бучач"], "addresstype": "town", "lat": "49", "lon": "25"},
        {"addresstype": "village", "lat": "49", "lon": "25", "address": ["x"]},
    ]
    with respx.mock:
        respx.get(f"{GEOCODER_URL}/search").mock(
            return_value=Response(200, json=payload)
        )

        results = await client.search("Бучач")

    assert [c.name for c in results] == ["Бучач"]
    assert results[0].display_name == "Бучач"
    assert results[0].region is None
