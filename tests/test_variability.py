import numpy as np
import pytest

from PyITM import ITM
from PyITM.ITM import Climate, ModeVariability, WarningFlag


def geometry(d_km=50.0, delta_h_meter=90.0):
    return ITM.LinkGeometry(d_meter=d_km * 1e3,
                            h_meter=np.array([10.0, 10.0]),
                            h_e_meter=np.array([10.0, 10.0]),
                            delta_h_meter=delta_h_meter)


def test_iccdf():
    iccdf = ITM.inverse_complementary_cumulative_distribution_function
    assert iccdf(0.5) == pytest.approx(0.0, abs=5e-4)
    assert iccdf(0.1) == pytest.approx(1.2816, abs=5e-4)
    assert iccdf(0.9) == pytest.approx(-iccdf(0.1))
    assert iccdf(0.01) > iccdf(0.1) > iccdf(0.9) > iccdf(0.99)


@pytest.mark.parametrize("mdvar, expected", [
    (0, (ModeVariability.SINGLE_MESSAGE, False, False)),
    (3, (ModeVariability.BROADCAST, False, False)),
    (12, (ModeVariability.MOBILE, True, False)),
    (21, (ModeVariability.ACCIDENTAL, False, True)),
    (33, (ModeVariability.BROADCAST, True, True)),
])
def test_split_mdvar(mdvar, expected):
    assert ITM.split_mdvar(mdvar) == expected


def test_climate_curves_cover_all_climates():
    for name, values in ITM.data_climate_curves().items():
        assert values.shape == (len(Climate),), name


@pytest.mark.parametrize("climate", list(Climate))
def test_median_broadcast_is_reference_minus_v_med(climate):
    A_db, warnings = ITM.variability(50.0, 50.0, 50.0, geometry(), 100.0, 40.0, climate, 3)
    assert warnings == WarningFlag.NO_WARNINGS
    # all z values are ~0, only the climate median correction remains
    A_only_v_med, _ = ITM.variability(50.0, 50.0, 50.0, geometry(), 100.0, 40.0, climate, 33)
    assert A_db == pytest.approx(A_only_v_med, abs=0.05)


@pytest.mark.parametrize("mdvar", [0, 1, 2, 3])
def test_time_ordering(mdvar):
    g = geometry()
    A_db = [ITM.variability(t, 50.0, 50.0, g, 100.0, 40.0, Climate.CONTINENTAL_TEMPERATE, mdvar)[0]
            for t in (10.0, 50.0, 90.0)]
    if mdvar == ModeVariability.SINGLE_MESSAGE:
        # time percentage is replaced by the situation percentage
        assert A_db[0] == A_db[1] == A_db[2]
    else:
        assert A_db[0] < A_db[1] < A_db[2]


def test_eliminating_location_variability():
    g = geometry(delta_h_meter=200.0)
    with_location, _ = ITM.variability(50.0, 90.0, 50.0, g, 100.0, 40.0, Climate.DESERT, 3)
    without_location, _ = ITM.variability(50.0, 90.0, 50.0, g, 100.0, 40.0, Climate.DESERT, 13)
    assert with_location > without_location


def test_eliminating_situation_variability():
    g = geometry()
    with_situation, _ = ITM.variability(50.0, 50.0, 90.0, g, 100.0, 40.0, Climate.DESERT, 1)
    without_situation, _ = ITM.variability(50.0, 50.0, 90.0, g, 100.0, 40.0, Climate.DESERT, 21)
    assert with_situation > without_situation


def test_extreme_percentiles_flagged():
    _, warnings = ITM.variability(50.0, 50.0, 0.05, geometry(), 100.0, 40.0, Climate.EQUATORIAL, 1)
    assert warnings & WarningFlag.EXTREME_VARIABILITIES

    _, warnings = ITM.variability(99.95, 50.0, 50.0, geometry(), 100.0, 40.0, Climate.EQUATORIAL, 1)
    assert warnings & WarningFlag.EXTREME_VARIABILITIES


def test_negative_attenuation_compressed():
    A_db, _ = ITM.variability(1.0, 50.0, 50.0, geometry(), 100.0, 0.0,
                              Climate.CONTINENTAL_TEMPERATE, 3)
    assert A_db < 0.0
    # uncompressed value is about -10 dB here
    assert A_db > -5.0


def test_curve_vanishes_at_zero_distance():
    assert ITM.curve(2.0, 5.0, 100e3, 150e3, 100e3, 0.0) == 0.0
