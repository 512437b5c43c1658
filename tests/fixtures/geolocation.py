"""Device geolocation fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from listing_location.core.errors import GeoErrorKind
from listing_location.core.geolocation import (
    ErrorCallback,
    PositionOptions,
    SuccessCallback,
)

TERNOPIL = (49.8397, 25.9332)


class FakeGeolocationPlatform:
    """Scriptable device position source.

    Answers after ``delay`` seconds with ``position`` or ``error``.
    """

    def __init__(
        self,
        position: tuple[float, float] | None = TERNOPIL,
        error: GeoErrorKind | None = None,
        delay: float = 0.0,
    ) -> None:
        self.position = position
        self.error = error
        self.delay = delay
        self.calls: list[PositionOptions] = []
        self.delivered = 0

    def get_current_position(
        self,
        on_success: SuccessCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> None:
        self.calls.append(options)

        def deliver() -> None:
            self.delivered += 1
            if self.error is not None:
                on_error(self.error, self.error.name)
            elif self.position is not None:
                on_success(*self.position)

        asyncio.get_running_loop().call_later(self.delay, deliver)


@pytest.fixture
def make_platform() -> Callable[..., FakeGeolocationPlatform]:
    """Factory for fake geolocation platforms."""
    return FakeGeolocationPlatform
