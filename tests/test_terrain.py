import numpy as np
import pytest

from PyITM import ITM
from PyITM.ITM import ReturnCode, TerrainProfile


def gamma_e_sea_level():
    _, gamma_e, _ = ITM.initialize_point_to_point(100.0, 0.0, 301.0, 0, 15.0, 0.005)
    return gamma_e


def test_profile_from_pfl(ntia_pfl):
    profile = TerrainProfile.from_pfl(ntia_pfl)
    assert profile.np_ == 142
    assert profile.step_meter == 25.6
    assert profile.d_meter == pytest.approx(3635.2)
    assert profile.z_meter[0] == 1692.0
    assert profile.z_meter[-1] == 1709.0


def test_profile_is_read_only(ntia_pfl):
    profile = TerrainProfile.from_pfl(ntia_pfl)
    with pytest.raises(ValueError):
        profile.z_meter[0] = 0.0


def test_profile_needs_two_samples():
    with pytest.raises(ValueError):
        TerrainProfile(step_meter=10.0, z_meter=np.array([1.0]))
    with pytest.raises(ValueError):
        TerrainProfile(step_meter=0.0, z_meter=np.array([1.0, 2.0]))


@pytest.mark.parametrize("pfl", [
    [1, 10.0, 5.0],                    # one sample
    [3, 10.0, 5.0, 5.0],               # interval count does not match
    [1, 0.0, 5.0, 5.0],                # zero step
    [1, -10.0, 5.0, 5.0],              # negative step
    [1, 10.0, 5.0, np.nan],            # missing elevation
    [1.5, 10.0, 5.0, 5.0],             # fractional interval count
    [],
])
def test_validate_terrain_rejects_malformed(pfl):
    assert ITM.validate_terrain(pfl) == ReturnCode.ERROR__TERRAIN_PROFILE
    with pytest.raises(ValueError):
        TerrainProfile.from_pfl(pfl)


def test_pack_pfl():
    pfl = ITM.pack_pfl(10.0, [1.0, 2.0, 3.0])
    assert list(pfl) == [2.0, 10.0, 1.0, 2.0, 3.0]
    assert ITM.validate_terrain(pfl) == ReturnCode.SUCCESS


def test_average_terrain_height_ignores_ends():
    profile = TerrainProfile(step_meter=10.0, z_meter=np.arange(11.0) ** 2)
    # samples 1..9 only
    assert ITM.average_terrain_height(profile) == pytest.approx(np.mean(np.arange(1.0, 10.0) ** 2))


def test_least_squares_fit_recovers_line():
    z = 2.0 + 0.5 * np.arange(21)
    z0, zn = ITM.linear_least_squares_fit(z, 10.0, 0.0, 200.0)
    assert z0 == pytest.approx(2.0)
    assert zn == pytest.approx(12.0)


def test_delta_h_flat_and_short():
    flat = TerrainProfile(step_meter=100.0, z_meter=np.zeros(101))
    assert ITM.compute_delta_h(flat, 0.0, 10e3) == 0.0

    # fewer than two intervals between the end points
    assert ITM.compute_delta_h(flat, 0.0, 150.0) == 0.0


def test_delta_h_grows_with_roughness():
    x = np.arange(401)
    gentle = TerrainProfile(step_meter=100.0, z_meter=10.0 * np.sin(x / 7.0))
    rough = TerrainProfile(step_meter=100.0, z_meter=100.0 * np.sin(x / 7.0))

    dh_gentle = ITM.compute_delta_h(gentle, 0.0, 40e3)
    dh_rough = ITM.compute_delta_h(rough, 0.0, 40e3)

    assert dh_gentle > 0.0
    assert dh_rough == pytest.approx(10.0 * dh_gentle, rel=1e-6)


def test_horizons_line_of_sight_flat():
    profile = TerrainProfile(step_meter=100.0, z_meter=np.zeros(101))
    theta, d_hzn = ITM.find_horizons(profile, gamma_e_sea_level(), np.array([10.0, 10.0]))
    assert list(d_hzn) == [10e3, 10e3]
    assert theta[0] == pytest.approx(theta[1])


def test_horizons_single_ridge():
    z = np.zeros(101)
    z[30] = 100.0
    profile = TerrainProfile(step_meter=100.0, z_meter=z)
    theta, d_hzn = ITM.find_horizons(profile, gamma_e_sea_level(), np.array([10.0, 10.0]))
    assert d_hzn[0] == pytest.approx(3000.0)
    assert d_hzn[1] == pytest.approx(7000.0)
    assert theta[0] > 0.0
    assert theta[1] > 0.0


def test_quick_pfl_flat_line_of_sight():
    profile = TerrainProfile(step_meter=100.0, z_meter=np.zeros(101))
    gamma_e = gamma_e_sea_level()
    geometry = ITM.quick_pfl(profile, gamma_e, np.array([10.0, 20.0]))

    assert geometry.d_meter == pytest.approx(10e3)
    assert geometry.delta_h_meter == 0.0
    assert list(geometry.h_e_meter) == [10.0, 20.0]
    # smooth earth horizons
    assert geometry.d_hzn_meter[0] == pytest.approx(np.sqrt(2.0 * 10.0 / gamma_e))
    assert geometry.d_hzn_meter[1] == pytest.approx(np.sqrt(2.0 * 20.0 / gamma_e))


def test_quick_pfl_effective_height_never_below_structural(ntia_pfl):
    profile = TerrainProfile.from_pfl(ntia_pfl)
    geometry = ITM.quick_pfl(profile, gamma_e_sea_level(), np.array([15.0, 3.0]))
    assert geometry.h_e_meter[0] >= 15.0
    assert geometry.h_e_meter[1] >= 3.0
