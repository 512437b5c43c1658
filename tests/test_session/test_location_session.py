"""Tests for the end-to-end location session."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from listing_location.core.errors import GeoErrorKind
from listing_location.models import CoordinateSource, GeoPoint, RawAddress
from listing_location.reconciler.coordinates import CoordinateState
from listing_location.session import LocationSession

LVIV = (49.8419, 24.0315)

TERNOPIL_ADDRESS = RawAddress(
    country="Україна",
    country_code="ua",
    state="Тернопільська область",
    municipality="Тернопільська міська громада",
    city="Тернопіль",
)

LVIV_ADDRESS = RawAddress(
    country="Україна",
    country_code="ua",
    state="Львівська область",
    municipality="Львівська міська громада",
    city="Львів",
)


async def lookup(point: GeoPoint) -> RawAddress:
    return LVIV_ADDRESS if point.longitude < 25 else TERNOPIL_ADDRESS


@pytest.fixture
def geocoder() -> AsyncMock:
    geocoder = AsyncMock()
    geocoder.lookup.side_effect = lookup
    return geocoder


@pytest.fixture
def platform(make_platform):
    return make_platform()


@pytest.fixture
def session(hierarchy_client, platform, geocoder) -> LocationSession:
    return LocationSession(
        hierarchy_client=hierarchy_client,
        platform=platform,
        geocoder=geocoder,
        search_client=AsyncMock(),
        session_id="test-session",
    )


@pytest.mark.asyncio
async def test_device_location_fills_whole_hierarchy(session):
    """Test a device fix in Ternopil selects every level down to the city."""
    await session.start(request_device_location=True)

    selection = session.selection
    assert session.coordinate_state == CoordinateState.USING_DEVICE
    assert selection.coordinates.source == CoordinateSource.DEVICE
    assert selection.country_id == 1
    assert selection.region_id == 10
    assert selection.community_id == 100
    assert selection.settlement_id == 1000
    assert selection.settlement_name == "Тернопіль"
    assert session.is_resolved()
    assert session.last_match.country.iso_code == "UA"


@pytest.mark.asyncio
async def test_unmatched_region_is_left_for_manual_selection(session, geocoder):
    geocoder.lookup.side_effect = None
    geocoder.lookup.return_value = RawAddress(
        country_code="ua", state="Ternopil Oblast", city="Ternopil"
    )

    await session.start(request_device_location=True)

    assert session.selection.country_id == 1
    assert session.selection.region_id is None
    assert session.selection.settlement_name == "Ternopil"
    assert not session.is_resolved()

    await session.select_region(10)
    assert session.is_resolved()


@pytest.mark.asyncio
async def test_start_without_device_request(session, platform):
    await session.start(request_device_location=False)

    assert session.store.countries.items
    assert platform.calls == []
    assert session.coordinate_state == CoordinateState.UNSET


@pytest.mark.asyncio
async def test_denied_permission_then_map_pick(make_platform, session):
    session.reconciler.provider.platform = make_platform(
        error=GeoErrorKind.PERMISSION_DENIED
    )
    await session.start(request_device_location=True)

    assert session.selection.coordinates is None
    assert session.selection.use_device_location is False
    assert session.reconciler.location_error.name == "permission_denied"

    await session.choose_map_point(49.84, 25.93)

    assert session.coordinate_state == CoordinateState.USING_MANUAL
    assert session.selection.region_id == 10
    assert session.is_resolved()


@pytest.mark.asyncio
async def test_manual_region_is_preserved(session):
    await session.start(request_device_location=False)
    await session.select_country(1)
    await session.select_region(11)

    await session.choose_map_point(49.55, 25.59)

    assert session.selection.country_id == 1
    assert session.selection.region_id == 11
    assert session.selection.community_id is None
    assert session.selection.settlement_name == "Тернопіль"
    assert session.selection.settlement_id is None


@pytest.mark.asyncio
async def test_typed_settlement_name_is_replaced_after_country_fill(session):
    await session.start(request_device_location=False)
    session.set_settlement_name("Хутір Вільховий")

    await session.choose_map_point(49.55, 25.59)

    assert session.selection.region_id == 10
    # The region change cleared the typed name, so auto-fill may set it
    assert session.selection.settlement_name == "Тернопіль"


@pytest.mark.asyncio
async def test_newer_point_updates_autofilled_levels(session):
    await session.start(request_device_location=False)
    await session.choose_map_point(49.55, 25.59)
    assert session.selection.region_id == 10

    await session.choose_map_point(*LVIV)

    assert session.selection.region_id == 11
    assert session.selection.community_id == 110
    assert session.selection.settlement_id == 1100


@pytest.mark.asyncio
async def test_point_in_other_country_flags_selection(session):
    """Test a manual country is kept and the mismatch is only flagged."""
    await session.start(request_device_location=False)
    await session.select_country(2)

    await session.choose_map_point(49.55, 25.59)

    assert session.selection.country_id == 2
    assert session.selection.region_id is None
    assert session.selection.coordinates.as_tuple() == (49.55, 25.59)
    assert session.reconciler.coordinates_outside_selection is True

    await session.select_country(1)
    assert session.reconciler.coordinates_outside_selection is False


@pytest.mark.asyncio
async def test_manual_country_change_voids_pending_autofill(session, geocoder):
    release = asyncio.Event()

    async def slow_lookup(point: GeoPoint) -> RawAddress:
        await release.wait()
        return TERNOPIL_ADDRESS

    geocoder.lookup.side_effect = slow_lookup
    await session.start(request_device_location=False)

    pick = asyncio.create_task(session.choose_map_point(49.55, 25.59))
    await asyncio.sleep(0.01)
    regions = session.select_country(2)
    release.set()
    await pick
    await regions

    assert session.selection.country_id == 2
    assert [r.country_id for r in session.store.regions.items] == [2, 2]
    assert session.last_match is None


@pytest.mark.asyncio
async def test_manual_region_change_stops_pending_autofill(
    session, hierarchy_client
):
    """Test the old address is not written under a region picked mid-fill."""
    await session.start(request_device_location=False)
    release = asyncio.Event()
    get_communities = hierarchy_client.get_communities

    async def parked_communities(region_id: int):
        if region_id == 10:
            await release.wait()
        return await get_communities(region_id)

    hierarchy_client.get_communities = parked_communities

    pick = asyncio.create_task(session.choose_map_point(49.55, 25.59))
    for _ in range(50):
        if session.selection.region_id == 10:
            break
        await asyncio.sleep(0)
    assert session.selection.region_id == 10

    await session.select_region(11)
    release.set()
    await pick

    assert session.selection.region_id == 11
    assert session.selection.community_id is None
    assert session.selection.settlement_id is None
    assert session.selection.settlement_name == ""
    assert [c.id for c in session.store.communities.items] == [110]


@pytest.mark.asyncio
async def test_failed_lookup_leaves_selection(session, geocoder):
    geocoder.lookup.side_effect = None
    geocoder.lookup.return_value = None
    await session.start(request_device_location=False)

    point = await session.choose_map_point(49.55, 25.59)

    assert point.source == CoordinateSource.MANUAL
    assert session.selection.country_id is None
    assert session.last_match is None


@pytest.mark.asyncio
async def test_map_pick_without_autofill(session, geocoder):
    await session.start(request_device_location=False)

    await session.choose_map_point(49.55, 25.59, autofill=False)

    geocoder.lookup.assert_not_awaited()
    assert session.selection.country_id is None


@pytest.mark.asyncio
async def test_retry_device_location(make_platform, session):
    failing = make_platform(error=GeoErrorKind.POSITION_UNAVAILABLE)
    session.reconciler.provider.platform = failing
    await session.start(request_device_location=True)
    assert session.selection.coordinates is None

    session.reconciler.provider.platform = make_platform()
    state = await session.retry_device_location()

    assert state == CoordinateState.USING_DEVICE
    assert session.selection.region_id == 10
    assert len(failing.calls) == 1


@pytest.mark.asyncio
async def test_map_center(session):
    await session.start(request_device_location=False)
    assert session.map_center is None

    await session.select_country(1)
    assert session.map_center == (48.3794, 31.1656)

    await session.choose_map_point(49.55, 25.59, autofill=False)
    assert session.map_center == (49.55, 25.59)


@pytest.mark.asyncio
async def test_snapshot_is_a_copy(session):
    await session.start(request_device_location=True)

    snapshot = session.snapshot()
    session.select_country(None)

    assert snapshot.country_id == 1
    assert snapshot.region_id == 10
    assert session.selection.region_id is None
