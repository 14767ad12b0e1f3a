from datetime import datetime, timezone

import pytest

from satguard.schemas import DebrisElement, UserOrbit

# Element epoch of both catalogue entries below: 2023-01-01T00:00:00Z
EPOCH = datetime(2023, 1, 1, tzinfo=timezone.utc)

# Same plane as the user orbit in the close-approach scenario, about 6688 km.
# Eccentricity and perigee are set so that after the J2/J3 mean-element terms
# the object crosses the ascending node at epoch at the user perigee radius.
NEAR_TWIN = DebrisElement(
    name="COSMOS-1408 DEB",
    line1="1 49863U 21117A   23001.00000000  .00000000  00000+0  00000+0 0  9999",
    line2="2 49863  82.5000   0.0000 0011653 252.1480 107.8520 15.87400000    09",
    norad_id=49863,
)

LEO_DEBRIS = DebrisElement(
    name="SL-16 R/B DEB",
    line1="1 25544U 98067A   23001.00000000  .00000000  00000+0  00000+0 0  9999",
    line2="2 25544  51.6000  45.0000 0005000  90.0000 180.0000 15.54000000    09",
    norad_id=25544,
)

BROKEN = DebrisElement(name="BROKEN", line1="1 garbage", line2="2 garbage")

CATALOG_TEXT = f"""{NEAR_TWIN.name}
{NEAR_TWIN.line1}
{NEAR_TWIN.line2}
{LEO_DEBRIS.name}
{LEO_DEBRIS.line1}
{LEO_DEBRIS.line2}
"""


@pytest.fixture
def epoch():
    return EPOCH


@pytest.fixture
def near_twin():
    return NEAR_TWIN


@pytest.fixture
def leo_debris():
    return LEO_DEBRIS


@pytest.fixture
def catalog_text():
    return CATALOG_TEXT


@pytest.fixture
def scenario_orbit():
    return UserOrbit(
        name="THREAT-TEST", semi_major_axis_km=6700.0, eccentricity=0.001, inclination_deg=82.5
    )


@pytest.fixture
def geo_orbit():
    return UserOrbit(
        name="GEO-1", semi_major_axis_km=42164.0, eccentricity=0.0001, inclination_deg=0.0
    )


@pytest.fixture
def broken_element():
    return BROKEN
