# -*- coding: utf-8 -*-
# pylint: disable=invalid-name,line-too-long,too-many-lines,too-many-arguments,too-many-locals,too-many-statements
"""
Created on 18 Oct 2026

Longley-Rice Irregular Terrain Model (ITM), point-to-point mode.
"""
import logging
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)


# Constants class
class Const:
    gamma_a = 157e-9             # Curvature of the actual earth, 1/meter
    N_1 = 179.3                  # Refractivity scaling, N-Units
    z_1_meter = 9460.0           # Scale height for surface refractivity, meters
    THIRD = 1.0 / 3.0
    D_SCAT_DISABLED_METER = 10e6 # Crossover distance used when scatter is not available

    # Half-width of the blend windows around d_sML and d_x, as a fraction of
    # the boundary distance
    TRANSITION_HALF_WIDTH = 0.01
    TRANSITION_SAMPLES = 257     # Quadrature points across a transition window

    # Advisory envelopes
    H_WARN_METER = (1.0, 1000.0)
    H_ERROR_METER = (0.5, 3000.0)
    F_WARN_MHZ = (40.0, 10000.0)
    F_ERROR_MHZ = (20.0, 20000.0)
    N_0_RANGE = (250.0, 400.0)
    N_S_ERROR = (150.0, 400.0)
    N_S_WARN = 250.0
    GAMMA_E_RANGE = (75e-9, 250e-9)
    DELTA_H_WARN_METER = 500.0
    Z_EXTREME = 3.1


class Climate(IntEnum):
    EQUATORIAL = 1
    CONTINENTAL_SUBTROPICAL = 2
    MARITIME_SUBTROPICAL = 3
    DESERT = 4
    CONTINENTAL_TEMPERATE = 5
    MARITIME_TEMPERATE_OVER_LAND = 6
    MARITIME_TEMPERATE_OVER_SEA = 7


class Polarization(IntEnum):
    HORIZONTAL = 0
    VERTICAL = 1


class ModeVariability(IntEnum):
    SINGLE_MESSAGE = 0
    ACCIDENTAL = 1
    MOBILE = 2
    BROADCAST = 3


# Modifiers added on top of ModeVariability
MDVAR__ELIMINATE_LOCATION = 10
MDVAR__ELIMINATE_SITUATION = 20


class PropagationMode(IntEnum):
    NOT_SET = 0
    LINE_OF_SIGHT = 1
    DIFFRACTION = 2
    TROPOSCATTER = 3


class WarningFlag(IntFlag):
    NO_WARNINGS = 0x0000
    TX_TERMINAL_HEIGHT = 0x0001
    RX_TERMINAL_HEIGHT = 0x0002
    FREQUENCY = 0x0004
    PATH_DISTANCE_TOO_BIG_1 = 0x0008
    PATH_DISTANCE_TOO_BIG_2 = 0x0010
    PATH_DISTANCE_TOO_SMALL_1 = 0x0020
    PATH_DISTANCE_TOO_SMALL_2 = 0x0040
    TX_HORIZON_ANGLE = 0x0080
    RX_HORIZON_ANGLE = 0x0100
    TX_HORIZON_DISTANCE_1 = 0x0200
    RX_HORIZON_DISTANCE_1 = 0x0400
    TX_HORIZON_DISTANCE_2 = 0x0800
    RX_HORIZON_DISTANCE_2 = 0x1000
    EXTREME_VARIABILITIES = 0x2000
    SURFACE_REFRACTIVITY = 0x4000
    TERRAIN_IRREGULARITY = 0x8000
    NEGATIVE_LOSS_CLAMPED = 0x10000


class ReturnCode(IntEnum):
    SUCCESS = 0
    SUCCESS_WITH_WARNINGS = 1
    ERROR__TX_TERMINAL_HEIGHT = 1000
    ERROR__RX_TERMINAL_HEIGHT = 1001
    ERROR__INVALID_RADIO_CLIMATE = 1002
    ERROR__INVALID_TIME = 1003
    ERROR__INVALID_LOCATION = 1004
    ERROR__INVALID_SITUATION = 1005
    ERROR__INVALID_CONFIDENCE = 1006
    ERROR__INVALID_RELIABILITY = 1007
    ERROR__REFRACTIVITY = 1008
    ERROR__FREQUENCY = 1009
    ERROR__POLARIZATION = 1010
    ERROR__EPSILON = 1011
    ERROR__SIGMA = 1012
    ERROR__GROUND_IMPEDANCE = 1013
    ERROR__MDVAR = 1014
    ERROR__EFFECTIVE_EARTH = 1016
    ERROR__PATH_DISTANCE = 1017
    ERROR__DELTA_H = 1018
    ERROR__TX_SITING_CRITERIA = 1019
    ERROR__RX_SITING_CRITERIA = 1020
    ERROR__SURFACE_REFRACTIVITY_SMALL = 1021
    ERROR__SURFACE_REFRACTIVITY_LARGE = 1022
    ERROR__TERRAIN_PROFILE = 1023


ERROR_MESSAGES = {
    ReturnCode.SUCCESS: "Successful execution",
    ReturnCode.SUCCESS_WITH_WARNINGS: "Successful execution, but warning flags set",
    ReturnCode.ERROR__TX_TERMINAL_HEIGHT: "TX terminal height is out of range",
    ReturnCode.ERROR__RX_TERMINAL_HEIGHT: "RX terminal height is out of range",
    ReturnCode.ERROR__INVALID_RADIO_CLIMATE: "Invalid value for radio climate",
    ReturnCode.ERROR__INVALID_TIME: "Time percentage is out of range",
    ReturnCode.ERROR__INVALID_LOCATION: "Location percentage is out of range",
    ReturnCode.ERROR__INVALID_SITUATION: "Situation percentage is out of range",
    ReturnCode.ERROR__INVALID_CONFIDENCE: "Confidence percentage is out of range",
    ReturnCode.ERROR__INVALID_RELIABILITY: "Reliability percentage is out of range",
    ReturnCode.ERROR__REFRACTIVITY: "Refractivity is out of range",
    ReturnCode.ERROR__FREQUENCY: "Frequency is out of range",
    ReturnCode.ERROR__POLARIZATION: "Invalid value for polarization",
    ReturnCode.ERROR__EPSILON: "Epsilon is out of range",
    ReturnCode.ERROR__SIGMA: "Sigma is out of range",
    ReturnCode.ERROR__GROUND_IMPEDANCE: "The imaginary portion of the complex impedance is larger than the real portion",
    ReturnCode.ERROR__MDVAR: "Invalid value for mode of variability",
    ReturnCode.ERROR__EFFECTIVE_EARTH: "Internally computed effective earth radius is invalid",
    ReturnCode.ERROR__PATH_DISTANCE: "Path distance is out of range",
    ReturnCode.ERROR__DELTA_H: "Delta H (terrain irregularity parameter) is out of range",
    ReturnCode.ERROR__TX_SITING_CRITERIA: "Invalid value for TX siting criteria",
    ReturnCode.ERROR__RX_SITING_CRITERIA: "Invalid value for RX siting criteria",
    ReturnCode.ERROR__SURFACE_REFRACTIVITY_SMALL: "Internally computed surface refractivity value is too small",
    ReturnCode.ERROR__SURFACE_REFRACTIVITY_LARGE: "Internally computed surface refractivity value is too large",
    ReturnCode.ERROR__TERRAIN_PROFILE: "Terrain profile is malformed or has fewer than two samples",
}


# Suggested ground electrical constants, (epsilon, sigma [S/m])
GROUND_CONSTANTS = {
    "poor": (4.0, 0.001),
    "average": (15.0, 0.005),
    "good": (25.0, 0.02),
    "fresh_water": (25.0, 0.01),
    "sea_water": (25.0, 5.0),
}


@dataclass(frozen=True)
class TerrainProfile:
    """Uniformly sampled terrain elevations, read-only once built"""
    step_meter: float
    z_meter: np.ndarray

    def __post_init__(self):
        z = np.array(self.z_meter, dtype=float)
        if z.ndim != 1 or z.size < 2:
            raise ValueError("Terrain profile needs at least two elevation samples")
        if not self.step_meter > 0:
            raise ValueError("Terrain step distance must be positive")
        z.flags.writeable = False
        object.__setattr__(self, "z_meter", z)

    @classmethod
    def from_pfl(cls, pfl: Sequence[float]) -> "TerrainProfile":
        pfl = np.asarray(pfl, dtype=float)
        if validate_terrain(pfl) != ReturnCode.SUCCESS:
            raise ValueError("Malformed PFL terrain profile")
        return cls(step_meter=float(pfl[1]), z_meter=pfl[2:])

    @property
    def np_(self) -> int:
        """Number of intervals"""
        return self.z_meter.size - 1

    @property
    def d_meter(self) -> float:
        return self.np_ * self.step_meter


@dataclass
class LinkGeometry:
    d_meter: float = 0.0
    h_meter: np.ndarray = field(default_factory=lambda: np.zeros(2))        # Structural heights
    h_e_meter: np.ndarray = field(default_factory=lambda: np.zeros(2))      # Effective heights
    d_hzn_meter: np.ndarray = field(default_factory=lambda: np.zeros(2))    # Horizon distances
    theta_hzn: np.ndarray = field(default_factory=lambda: np.zeros(2))      # Horizon angles, rad
    delta_h_meter: float = 0.0                                              # Terrain irregularity


@dataclass
class DiffractionParams:
    """Distance-independent terms of the diffraction loss"""
    wd1: float = 0.0
    xd1: float = 0.0
    A_fo_db: float = 0.0         # Clutter factor
    qk: float = 0.0
    aht: float = 0.0
    xht: float = 0.0


@dataclass
class TropoParams:
    """Troposcatter parameters structure"""
    ad_meter: float = 0.0
    rr: float = 0.0
    etq: float = 0.0
    h0s: float = -15.0           # Previous frequency gain, carried between evaluations


@dataclass
class PathParams:
    d_ls_meter: np.ndarray = field(default_factory=lambda: np.zeros(2))     # Smooth earth horizon distances
    d_sML_meter: float = 0.0     # Smooth earth line-of-sight distance
    d_ML_meter: float = 0.0      # Sum of the terrain horizon distances
    theta_los: float = 0.0
    d_min_meter: float = 0.0
    xae: float = 0.0

    # Diffraction line
    M_d: float = 0.0
    A_d0_db: float = 0.0

    # Line-of-sight curve
    w_los: float = 0.0           # Two-ray weighting against the diffraction line
    A_el_db: float = 0.0
    K_1: float = 0.0
    K_2: float = 0.0

    # Scatter line
    M_s: float = 0.0
    A_s0_db: float = 0.0
    d_x_meter: float = Const.D_SCAT_DISABLED_METER

    diffraction: DiffractionParams = field(default_factory=DiffractionParams)
    tropo: TropoParams = field(default_factory=TropoParams)


@dataclass(frozen=True)
class BlendWeights:
    w_los: float = 0.0
    w_diff: float = 0.0
    w_scat: float = 0.0


@dataclass(frozen=True)
class IntermediateValues:
    theta_hzn: Tuple[float, float] = (0.0, 0.0)
    d_hzn_meter: Tuple[float, float] = (0.0, 0.0)
    h_e_meter: Tuple[float, float] = (0.0, 0.0)
    N_s: float = 0.0
    delta_h_meter: float = 0.0
    A_ref_db: float = 0.0
    A_fs_db: float = 0.0
    d_km: float = 0.0
    mode: PropagationMode = PropagationMode.NOT_SET
    weights: BlendWeights = field(default_factory=BlendWeights)


@dataclass(frozen=True)
class Result:
    A_db: float = np.nan
    warnings: int = WarningFlag.NO_WARNINGS
    rtn: int = ReturnCode.SUCCESS
    intermediate: Optional[IntermediateValues] = None

    @property
    def ok(self) -> bool:
        return self.rtn in (ReturnCode.SUCCESS, ReturnCode.SUCCESS_WITH_WARNINGS)

    @property
    def message(self) -> str:
        return error_message(self.rtn)



"""
p2p_tls - Computes basic transmission loss with the Longley-Rice Irregular
Terrain Model in point-to-point mode, with variability specified as time,
location and situation percentages.

Usage:
    result = p2p_tls(h_tx_meter, h_rx_meter, pfl, climate, N_0, f_mhz, pol,
                     epsilon, sigma, mdvar, time, location, situation)

Input:
    h_tx_meter      - Structural height of the TX, in meters
    h_rx_meter      - Structural height of the RX, in meters
    pfl             - Terrain profile [intervals, step (m), z_0, ..., z_N (m)]
    climate         - Radio climate (1..7, see Climate)
    N_0             - Refractivity, in N-Units
    f_mhz           - Frequency, in MHz
    pol             - Polarization (0: horizontal, 1: vertical)
    epsilon         - Relative permittivity
    sigma           - Conductivity, in S/m
    mdvar           - Mode of variability (0..3, +10 no location, +20 no situation)
    time            - Time percentage, 0 < time < 100
    location        - Location percentage, 0 < location < 100
    situation       - Situation percentage, 0 < situation < 100

Output:
    result          - Result with A_db (basic transmission loss, in dB),
                      warnings (WarningFlag bitmask), rtn (ReturnCode) and
                      intermediate values
"""


def p2p_tls(h_tx_meter: float, h_rx_meter: float, pfl: Sequence[float],
            climate: int, N_0: float, f_mhz: float, pol: int, epsilon: float,
            sigma: float, mdvar: int, time: float, location: float,
            situation: float) -> Result:
    """
    Compute basic transmission loss over a terrain profile (ITM, point-to-point)

    Parameters:
    -----------
    h_tx_meter, h_rx_meter : float
        Structural heights of the terminals, in meters
    pfl : sequence of float
        Terrain profile in PFL format
    climate : int
        Radio climate, 1..7
    N_0 : float
        Refractivity, in N-Units
    f_mhz : float
        Frequency, in MHz
    pol : int
        Polarization (0: horizontal, 1: vertical)
    epsilon : float
        Relative permittivity
    sigma : float
        Conductivity, in S/m
    mdvar : int
        Mode of variability
    time, location, situation : float
        Percentages, in (0, 100)

    Returns:
    --------
    Result
        Immutable result; A_db is NaN when rtn is an error code
    """
    rtn, warnings = validate_inputs(h_tx_meter, h_rx_meter, climate, time, location,
                                    situation, N_0, f_mhz, pol, epsilon, sigma, mdvar)
    if rtn == ReturnCode.SUCCESS:
        rtn = validate_terrain(pfl)

    if rtn != ReturnCode.SUCCESS:
        logger.debug("ITM input rejected: %s", error_message(rtn))
        return Result(warnings=warnings, rtn=rtn)

    climate = Climate(int(climate))
    pol = Polarization(int(pol))
    profile = TerrainProfile.from_pfl(pfl)
    h_meter = np.array([h_tx_meter, h_rx_meter], dtype=float)

    h_sys_meter = average_terrain_height(profile)
    Z_g, gamma_e, N_s = initialize_point_to_point(f_mhz, h_sys_meter, N_0, pol, epsilon, sigma)

    rtn, w = validate_surface(N_s, gamma_e, Z_g)
    warnings |= w
    if rtn != ReturnCode.SUCCESS:
        logger.debug("ITM input rejected: %s", error_message(rtn))
        return Result(warnings=warnings, rtn=rtn)

    geometry = quick_pfl(profile, gamma_e, h_meter)
    if geometry.delta_h_meter > Const.DELTA_H_WARN_METER:
        warnings |= WarningFlag.TERRAIN_IRREGULARITY

    path, w = longley_rice(geometry, f_mhz, Z_g, gamma_e, N_s)
    warnings |= w

    mode, weights = select_propagation_mode(geometry.d_meter, path)
    logger.debug("d = %.1f m, d_sML = %.1f m, d_x = %.1f m, mode = %s",
                 geometry.d_meter, path.d_sML_meter, path.d_x_meter, mode.name)

    A_ref_db, w = reference_attenuation(geometry.d_meter, path)
    warnings |= w

    A_var_db, w = variability(time, location, situation, geometry, f_mhz,
                              A_ref_db, climate, mdvar)
    warnings |= w

    A_fs_db = free_space_loss(geometry.d_meter, f_mhz)
    A_db = A_var_db + A_fs_db

    intermediate = IntermediateValues(
        theta_hzn=(float(geometry.theta_hzn[0]), float(geometry.theta_hzn[1])),
        d_hzn_meter=(float(geometry.d_hzn_meter[0]), float(geometry.d_hzn_meter[1])),
        h_e_meter=(float(geometry.h_e_meter[0]), float(geometry.h_e_meter[1])),
        N_s=float(N_s),
        delta_h_meter=float(geometry.delta_h_meter),
        A_ref_db=float(A_ref_db),
        A_fs_db=float(A_fs_db),
        d_km=geometry.d_meter / 1000.0,
        mode=mode,
        weights=weights)

    if warnings != WarningFlag.NO_WARNINGS:
        rtn = ReturnCode.SUCCESS_WITH_WARNINGS

    return Result(A_db=float(A_db), warnings=warnings, rtn=rtn, intermediate=intermediate)


def p2p_cr(h_tx_meter: float, h_rx_meter: float, pfl: Sequence[float],
           climate: int, N_0: float, f_mhz: float, pol: int, epsilon: float,
           sigma: float, mdvar: int, confidence: float,
           reliability: float) -> Result:
    """Point-to-point loss with variability given as confidence/reliability"""
    rtn, warnings = validate_inputs(h_tx_meter, h_rx_meter, climate, 50.0, 50.0, 50.0,
                                    N_0, f_mhz, pol, epsilon, sigma, mdvar)
    if rtn != ReturnCode.SUCCESS:
        return Result(warnings=warnings, rtn=rtn)

    if not 0.0 < confidence < 100.0:
        return Result(warnings=warnings, rtn=ReturnCode.ERROR__INVALID_CONFIDENCE)
    if not 0.0 < reliability < 100.0:
        return Result(warnings=warnings, rtn=ReturnCode.ERROR__INVALID_RELIABILITY)

    return p2p_tls(h_tx_meter, h_rx_meter, pfl, climate, N_0, f_mhz, pol, epsilon,
                   sigma, mdvar, reliability, 50.0, confidence)


def pack_pfl(step_meter: float, terrain: Sequence[float]) -> np.ndarray:
    """Pack raw elevation samples into PFL format"""
    terrain = np.asarray(terrain, dtype=float)
    pfl = np.empty(terrain.size + 2)
    pfl[0] = terrain.size - 1
    pfl[1] = step_meter
    pfl[2:] = terrain
    return pfl


def p2p(h_tx_meter: float, h_rx_meter: float, step_meter: float,
        terrain: Sequence[float], climate: int, N_0: float, f_mhz: float,
        pol: int, epsilon: float, sigma: float, mdvar: int, time: float,
        location: float, situation: float) -> Result:
    """Same as p2p_tls, with the terrain given as raw samples and a step distance"""
    if len(terrain) < 2:
        return Result(rtn=ReturnCode.ERROR__TERRAIN_PROFILE)
    return p2p_tls(h_tx_meter, h_rx_meter, pack_pfl(step_meter, terrain), climate,
                   N_0, f_mhz, pol, epsilon, sigma, mdvar, time, location, situation)


def p2p_path(h_tx_meter: float, h_rx_meter: float, step_meter: float,
             terrain: Sequence[float], climate: int, N_0: float, f_mhz: float,
             pol: int, epsilon: float, sigma: float, mdvar: int, time: float,
             location: float, situation: float) -> List[Result]:
    """
    Loss with the receiver placed at every sample along the profile.

    Returns one Result per receiver position, starting with the first
    sample after the transmitter.
    """
    results = []
    for end_idx in range(1, len(terrain)):
        results.append(p2p(h_tx_meter, h_rx_meter, step_meter, terrain[:end_idx + 1],
                           climate, N_0, f_mhz, pol, epsilon, sigma, mdvar,
                           time, location, situation))
    return results


def error_message(rtn: int) -> str:
    try:
        return ERROR_MESSAGES[ReturnCode(rtn)]
    except ValueError:
        return "Unknown return code"


def validate_inputs(h_tx_meter: float, h_rx_meter: float, climate: int,
                    time: float, location: float, situation: float, N_0: float,
                    f_mhz: float, pol: int, epsilon: float, sigma: float,
                    mdvar: int) -> Tuple[int, int]:
    """Validate the model input values, returns (rtn, warnings)"""
    warnings = WarningFlag.NO_WARNINGS

    if not Const.H_WARN_METER[0] <= h_tx_meter <= Const.H_WARN_METER[1]:
        warnings |= WarningFlag.TX_TERMINAL_HEIGHT
    if not Const.H_ERROR_METER[0] <= h_tx_meter <= Const.H_ERROR_METER[1]:
        return ReturnCode.ERROR__TX_TERMINAL_HEIGHT, warnings

    if not Const.H_WARN_METER[0] <= h_rx_meter <= Const.H_WARN_METER[1]:
        warnings |= WarningFlag.RX_TERMINAL_HEIGHT
    if not Const.H_ERROR_METER[0] <= h_rx_meter <= Const.H_ERROR_METER[1]:
        return ReturnCode.ERROR__RX_TERMINAL_HEIGHT, warnings

    if climate not in range(1, 8):
        return ReturnCode.ERROR__INVALID_RADIO_CLIMATE, warnings

    if not Const.N_0_RANGE[0] <= N_0 <= Const.N_0_RANGE[1]:
        return ReturnCode.ERROR__REFRACTIVITY, warnings

    if not Const.F_WARN_MHZ[0] <= f_mhz <= Const.F_WARN_MHZ[1]:
        warnings |= WarningFlag.FREQUENCY
    if not Const.F_ERROR_MHZ[0] <= f_mhz <= Const.F_ERROR_MHZ[1]:
        return ReturnCode.ERROR__FREQUENCY, warnings

    if pol not in (Polarization.HORIZONTAL, Polarization.VERTICAL):
        return ReturnCode.ERROR__POLARIZATION, warnings

    if not epsilon >= 1:
        return ReturnCode.ERROR__EPSILON, warnings

    if not sigma > 0:
        return ReturnCode.ERROR__SIGMA, warnings

    if mdvar not in range(0, 34) or mdvar % 10 > ModeVariability.BROADCAST:
        return ReturnCode.ERROR__MDVAR, warnings

    if not 0.0 < situation < 100.0:
        return ReturnCode.ERROR__INVALID_SITUATION, warnings

    if not 0.0 < time < 100.0:
        return ReturnCode.ERROR__INVALID_TIME, warnings

    if not 0.0 < location < 100.0:
        return ReturnCode.ERROR__INVALID_LOCATION, warnings

    return ReturnCode.SUCCESS, warnings


def validate_terrain(pfl: Sequence[float]) -> int:
    """Check that pfl is a well formed [intervals, step, z_0, ..., z_N] sequence"""
    try:
        pfl = np.asarray(pfl, dtype=float)
    except (TypeError, ValueError):
        return ReturnCode.ERROR__TERRAIN_PROFILE

    if pfl.ndim != 1 or pfl.size < 4 or not np.all(np.isfinite(pfl)):
        return ReturnCode.ERROR__TERRAIN_PROFILE

    intervals = pfl[0]
    if intervals < 1 or intervals != int(intervals) or int(intervals) + 3 != pfl.size:
        return ReturnCode.ERROR__TERRAIN_PROFILE

    if pfl[1] <= 0:
        return ReturnCode.ERROR__TERRAIN_PROFILE

    return ReturnCode.SUCCESS


def validate_surface(N_s: float, gamma_e: float, Z_g: complex) -> Tuple[int, int]:
    """Validate the internally computed surface parameters"""
    warnings = WarningFlag.NO_WARNINGS

    if N_s < Const.N_S_ERROR[0]:
        return ReturnCode.ERROR__SURFACE_REFRACTIVITY_SMALL, warnings
    if N_s > Const.N_S_ERROR[1]:
        return ReturnCode.ERROR__SURFACE_REFRACTIVITY_LARGE, warnings
    if N_s < Const.N_S_WARN:
        warnings |= WarningFlag.SURFACE_REFRACTIVITY

    if not Const.GAMMA_E_RANGE[0] <= gamma_e <= Const.GAMMA_E_RANGE[1]:
        return ReturnCode.ERROR__EFFECTIVE_EARTH, warnings

    if Z_g.real <= abs(Z_g.imag):
        return ReturnCode.ERROR__GROUND_IMPEDANCE, warnings

    return ReturnCode.SUCCESS, warnings


def initialize_point_to_point(f_mhz: float, h_sys_meter: float, N_0: float,
                              pol: int, epsilon: float, sigma: float
                              ) -> Tuple[complex, float, float]:
    """
    Initialize parameters for point-to-point mode.

    Parameters:
    -----------
    f_mhz : float
        Frequency, in MHz
    h_sys_meter : float
        Average height of the path above mean sea level, in meters
    N_0 : float
        Refractivity, in N-Units
    pol : int
        Polarization
    epsilon : float
        Relative permittivity
    sigma : float
        Conductivity, in S/m

    Returns:
    --------
    Z_g : complex
        Complex ground impedance
    gamma_e : float
        Curvature of the effective earth, 1/meter
    N_s : float
        Surface refractivity, in N-Units
    """
    if h_sys_meter == 0.0:
        N_s = N_0
    else:
        N_s = N_0 * np.exp(-h_sys_meter / Const.z_1_meter)

    gamma_e = Const.gamma_a * (1.0 - 0.04665 * np.exp(N_s / Const.N_1))

    ep_r = complex(epsilon, 18000.0 * sigma / f_mhz)

    Z_g = np.sqrt(ep_r - 1.0)

    if pol == Polarization.VERTICAL:
        Z_g = Z_g / ep_r

    return Z_g, gamma_e, N_s


def average_terrain_height(profile: TerrainProfile) -> float:
    """Mean elevation ignoring the first and last 10% of the profile"""
    z = profile.z_meter
    np_ = profile.np_
    p10 = int(0.1 * np_)

    h_sys_meter = 0.0
    for i in range(p10, np_ - p10 + 1):
        h_sys_meter += z[i]

    return h_sys_meter / (np_ - 2 * p10 + 1)


def fdim(x: float, y: float) -> float:
    """Positive difference, max(x - y, 0)"""
    return x - y if x > y else 0.0


def find_horizons(profile: TerrainProfile, gamma_e: float, h_meter: np.ndarray
                  ) -> Tuple[np.ndarray, np.ndarray]:
    """
    Find the radio horizons of the two terminals.

    Returns:
    --------
    theta_hzn : np.ndarray
        Horizon angles, in rad
    d_hzn_meter : np.ndarray
        Horizon distances, in meters
    """
    z = profile.z_meter
    np_ = profile.np_
    step = profile.step_meter
    d_meter = profile.d_meter

    z_tx = z[0] + h_meter[0]
    z_rx = z[np_] + h_meter[1]

    qc = 0.5 * gamma_e
    q = qc * d_meter

    theta_hzn = np.zeros(2)
    theta_hzn[1] = (z_rx - z_tx) / d_meter
    theta_hzn[0] = theta_hzn[1] - q
    theta_hzn[1] = -theta_hzn[1] - q

    d_hzn_meter = np.array([d_meter, d_meter])

    if np_ < 2:
        return theta_hzn, d_hzn_meter

    sa = 0.0
    sb = d_meter
    wq = True
    for i in range(1, np_):
        sa += step
        sb -= step

        q = z[i] - (qc * sa + theta_hzn[0]) * sa - z_tx
        if q > 0.0:
            theta_hzn[0] += q / sa
            d_hzn_meter[0] = sa
            wq = False

        if not wq:
            q = z[i] - (qc * sb + theta_hzn[1]) * sb - z_rx
            if q > 0.0:
                theta_hzn[1] += q / sb
                d_hzn_meter[1] = sb

    return theta_hzn, d_hzn_meter


def linear_least_squares_fit(z: np.ndarray, step: float, d_start: float,
                             d_end: float) -> Tuple[float, float]:
    """
    Least squares line through the samples of z between d_start and d_end.

    Returns the fitted heights at the first and last sample of z.
    """
    xn = z.size - 1
    xa = int(fdim(d_start / step, 0.0))
    xb = xn - int(fdim(xn, d_end / step))

    if xb <= xa:
        xa = int(fdim(xa, 1.0))
        xb = xn - int(fdim(xn, xb + 1.0))

    ja = xa
    jb = xb
    n = jb - ja
    xa = xb - xa
    x = -0.5 * xa
    xb += x

    a = 0.5 * (z[ja] + z[jb])
    b = 0.5 * (z[ja] - z[jb]) * x

    for _ in range(2, n + 1):
        ja += 1
        x += 1.0
        a += z[ja]
        b += z[ja] * x

    a /= xa
    b = b * 12.0 / ((xa * xa + 2.0) * xa)

    z0 = a - b * xb
    zn = a + b * (xn - xb)

    return z0, zn


def compute_delta_h(profile: TerrainProfile, d_start_meter: float,
                    d_end_meter: float) -> float:
    """
    Terrain irregularity parameter, the interdecile range of the detrended
    terrain between d_start_meter and d_end_meter.

    Returns 0 when the span covers fewer than two intervals.
    """
    z = profile.z_meter
    np_ = profile.np_
    step = profile.step_meter

    xa = d_start_meter / step
    xb = d_end_meter / step

    if xb - xa < 2.0:
        return 0.0

    ka = int(0.1 * (xb - xa + 8.0))
    ka = min(max(4, ka), 25)
    n = 10 * ka - 5
    kb = n - ka + 1
    sn = n - 1

    s = np.zeros(n)
    xb = (xb - xa) / sn
    k = int(xa + 1.0)
    xa -= k

    for j in range(n):
        while xa > 0.0 and k < np_:
            xa -= 1.0
            k += 1
        s[j] = z[k] + (z[k] - z[k - 1]) * xa
        xa += xb

    s0, sn_fit = linear_least_squares_fit(s, 1.0, 0.0, sn)
    xb = (sn_fit - s0) / sn

    for j in range(n):
        s[j] -= s0
        s0 += xb

    s_sorted = np.sort(s)[::-1]
    delta_h_meter = s_sorted[ka - 1] - s_sorted[kb - 1]

    return delta_h_meter / (1.0 - 0.8 * np.exp(-(d_end_meter - d_start_meter) / 50.0e3))


def quick_pfl(profile: TerrainProfile, gamma_e: float, h_meter: np.ndarray) -> LinkGeometry:
    """
    Derive the link geometry from the terrain profile: horizons, terrain
    irregularity and effective heights.
    """
    z = profile.z_meter
    np_ = profile.np_
    step = profile.step_meter

    geometry = LinkGeometry()
    geometry.d_meter = profile.d_meter
    geometry.h_meter = np.array(h_meter, dtype=float)

    theta_hzn, d_hzn_meter = find_horizons(profile, gamma_e, geometry.h_meter)

    xl = np.zeros(2)
    for i in range(2):
        xl[i] = min(15.0 * geometry.h_meter[i], 0.1 * d_hzn_meter[i])
    xl[1] = geometry.d_meter - xl[1]

    geometry.delta_h_meter = compute_delta_h(profile, xl[0], xl[1])

    h_e_meter = np.zeros(2)
    if d_hzn_meter[0] + d_hzn_meter[1] > 1.5 * geometry.d_meter:
        # Line-of-sight path
        fit_tx, fit_rx = linear_least_squares_fit(z, step, xl[0], xl[1])
        h_e_meter[0] = geometry.h_meter[0] + fdim(z[0], fit_tx)
        h_e_meter[1] = geometry.h_meter[1] + fdim(z[np_], fit_rx)

        for i in range(2):
            d_hzn_meter[i] = np.sqrt(2.0 * h_e_meter[i] / gamma_e) * \
                np.exp(-0.07 * np.sqrt(geometry.delta_h_meter / max(h_e_meter[i], 5.0)))

        q = d_hzn_meter[0] + d_hzn_meter[1]
        if q <= geometry.d_meter:
            q = (geometry.d_meter / q)**2
            for i in range(2):
                h_e_meter[i] *= q
                d_hzn_meter[i] = np.sqrt(2.0 * h_e_meter[i] / gamma_e) * \
                    np.exp(-0.07 * np.sqrt(geometry.delta_h_meter / max(h_e_meter[i], 5.0)))

        for i in range(2):
            q = np.sqrt(2.0 * h_e_meter[i] / gamma_e)
            theta_hzn[i] = (0.65 * geometry.delta_h_meter * (q / d_hzn_meter[i] - 1.0)
                            - 2.0 * h_e_meter[i]) / q
    else:
        # Transhorizon path
        fit_tx, _ = linear_least_squares_fit(z, step, xl[0], 0.9 * d_hzn_meter[0])
        h_e_meter[0] = geometry.h_meter[0] + fdim(z[0], fit_tx)

        _, fit_rx = linear_least_squares_fit(z, step, geometry.d_meter - 0.9 * d_hzn_meter[1], xl[1])
        h_e_meter[1] = geometry.h_meter[1] + fdim(z[np_], fit_rx)

    geometry.h_e_meter = h_e_meter
    geometry.d_hzn_meter = d_hzn_meter
    geometry.theta_hzn = theta_hzn

    return geometry


def terrain_roughness(d_meter: float, delta_h_meter: float) -> float:
    """Terrain irregularity seen over a path of length d_meter"""
    return (1.0 - 0.8 * np.exp(-d_meter / 50e3)) * delta_h_meter


def sigma_h_function(delta_h_meter: float) -> float:
    """RMS deviation of terrain and terrain clutter within the Fresnel zones"""
    return 0.78 * delta_h_meter * np.exp(-(delta_h_meter / 16.0)**0.25)


def knife_edge_diffraction(v2: float) -> float:
    """Knife-edge loss for the squared Fresnel-Kirchhoff parameter v2, in dB"""
    if v2 < 5.76:
        return 6.02 + 9.11 * np.sqrt(v2) - 1.27 * v2
    else:
        return 12.953 + 4.343 * np.log(v2)


def height_function(x_km: float, K: float) -> float:
    """
    Height gain function F(x, K) for smooth earth diffraction (Vogler)

    Parameters:
    -----------
    x_km : float
        Normalized distance
    K : float
        Normalized surface admittance

    Returns:
    --------
    F_x_db : float
        Height gain function, in dB
    """
    if x_km < 200.0:
        w = -np.log(K)

        if K < 1e-5 or x_km * w**3 > 5495.0:
            F_x_db = -117.0
            if x_km > 1.0:
                F_x_db = 17.372 * np.log(x_km) + F_x_db
        else:
            F_x_db = 2.5e-5 * x_km**2 / K - 8.686 * w - 15.0
    else:
        F_x_db = 0.05751 * x_km - 4.343 * np.log(x_km)
        if x_km < 2000.0:
            w = 0.0134 * x_km * np.exp(-0.005 * x_km)
            F_x_db = (1.0 - w) * F_x_db + w * (17.372 * np.log(x_km) - 117.0)

    return F_x_db


def initialize_diffraction(geometry: LinkGeometry, path: PathParams,
                           f_mhz: float, Z_g: complex, gamma_e: float) -> DiffractionParams:
    """Distance-independent terms of the diffraction loss"""
    wn = f_mhz / 47.7
    h = geometry.h_meter
    h_e = geometry.h_e_meter
    d_hzn = geometry.d_hzn_meter

    params = DiffractionParams()

    q = h[0] * h[1]
    qk = h_e[0] * h_e[1] - q
    q += 10.0
    params.wd1 = np.sqrt(1.0 + qk / q)
    params.xd1 = path.d_ML_meter + path.theta_los / gamma_e

    q = sigma_h_function(terrain_roughness(path.d_sML_meter, geometry.delta_h_meter))
    params.A_fo_db = min(15.0, 2.171 * np.log(1.0 + 4.77e-4 * h[0] * h[1] * wn * q))

    params.qk = 1.0 / abs(Z_g)
    params.aht = 20.0
    params.xht = 0.0

    for i in range(2):
        a = 0.5 * d_hzn[i]**2 / h_e[i]
        wa = (a * wn)**Const.THIRD
        pk = params.qk / wa
        q = (1.607 - pk) * 151.0 * wa * d_hzn[i] / a
        params.xht += q
        params.aht += height_function(q, pk)

    return params


def diffraction_loss(d_meter: float, geometry: LinkGeometry, path: PathParams,
                     f_mhz: float, gamma_e: float) -> float:
    """
    Diffraction loss at d_meter beyond the horizons: a weighted combination of
    double knife-edge and smooth earth losses plus the clutter factor, in dB
    """
    wn = f_mhz / 47.7
    params = path.diffraction
    d_hzn = geometry.d_hzn_meter

    theta = path.theta_los + d_meter * gamma_e
    d_s = d_meter - path.d_ML_meter
    q = 0.0795775 * wn * d_s * theta**2

    A_k_db = knife_edge_diffraction(q * d_hzn[0] / (d_s + d_hzn[0])) + \
        knife_edge_diffraction(q * d_hzn[1] / (d_s + d_hzn[1]))

    a = d_s / theta
    wa = (a * wn)**Const.THIRD
    pk = params.qk / wa
    q = (1.607 - pk) * 151.0 * wa * theta + params.xht
    A_r_db = 0.05751 * q - 4.343 * np.log(q) - params.aht

    q = (params.wd1 + params.xd1 / d_meter) * \
        min(terrain_roughness(d_meter, geometry.delta_h_meter) * wn, 6283.2)
    w = 25.1 / (25.1 + np.sqrt(q))

    return w * A_r_db + (1.0 - w) * A_k_db + params.A_fo_db


def line_of_sight_loss(d_meter: float, geometry: LinkGeometry, path: PathParams,
                       f_mhz: float, Z_g: complex) -> float:
    """
    Two-ray line-of-sight attenuation, weighted against the extended
    diffraction line, in dB
    """
    wn = f_mhz / 47.7
    h_e = geometry.h_e_meter

    sigma_h_meter = sigma_h_function(terrain_roughness(d_meter, geometry.delta_h_meter))

    q = h_e[0] + h_e[1]
    sin_psi = q / np.sqrt(d_meter**2 + q**2)

    # Ground reflection coefficient with roughness attenuation
    R_e = (sin_psi - Z_g) / (sin_psi + Z_g) * np.exp(-min(10.0, wn * sigma_h_meter * sin_psi))
    q = R_e.real**2 + R_e.imag**2
    if q < 0.25 or q < sin_psi:
        R_e = R_e * np.sqrt(sin_psi / q)

    delta_phi = wn * 2.0 * h_e[0] * h_e[1] / d_meter
    if delta_phi > np.pi / 2.0:
        delta_phi = np.pi - (np.pi / 2.0)**2 / delta_phi

    rr = complex(np.cos(delta_phi), -np.sin(delta_phi)) + R_e
    A_t_db = -10.0 * np.log10(rr.real**2 + rr.imag**2)

    A_d_db = path.M_d * d_meter + path.A_d0_db

    return path.w_los * A_t_db + (1.0 - path.w_los) * A_d_db


def h0_curve(j: int, r: float) -> float:
    """Curve fit for H_0 at integer efficiency index j (1..5)"""
    a = [25.0, 80.0, 177.0, 395.0, 705.0]
    b = [24.0, 45.0, 68.0, 80.0, 105.0]

    x = 1.0 / r**2

    return 4.343 * np.log((a[j - 1] * x + b[j - 1]) * x + 1.0)


def h0_function(r: float, eta_s: float) -> float:
    """Frequency gain function H_0, interpolated on the scattering efficiency"""
    it = int(eta_s)
    if it <= 0:
        it = 1
        q = 0.0
    elif it >= 5:
        it = 5
        q = 0.0
    else:
        q = eta_s - it

    H_0_db = h0_curve(it, r)
    if q != 0.0:
        H_0_db = (1.0 - q) * H_0_db + q * h0_curve(it + 1, r)

    return H_0_db


def attenuation_function(td: float) -> float:
    """Attenuation function F(theta * d) for troposcatter, in dB"""
    a = [133.4, 104.6, 71.8]
    b = [0.332e-3, 0.212e-3, 0.157e-3]
    c = [-4.343, -1.086, 2.171]

    if td <= 10e3:
        i = 0
    elif td <= 70e3:
        i = 1
    else:
        i = 2

    return a[i] + b[i] * td + c[i] * np.log(td)


def initialize_troposcatter(geometry: LinkGeometry, N_s: float) -> TropoParams:
    tropo = TropoParams()

    tropo.ad_meter = geometry.d_hzn_meter[0] - geometry.d_hzn_meter[1]
    tropo.rr = geometry.h_e_meter[1] / geometry.h_e_meter[0]
    if tropo.ad_meter < 0.0:
        tropo.ad_meter = -tropo.ad_meter
        tropo.rr = 1.0 / tropo.rr

    tropo.etq = (5.67e-6 * N_s - 2.32e-3) * N_s + 0.031
    tropo.h0s = -15.0

    return tropo


def troposcatter_loss(d_meter: float, geometry: LinkGeometry, path: PathParams,
                      f_mhz: float, gamma_e: float, N_s: float) -> float:
    """
    Forward scatter loss at d_meter, in dB.

    Returns a value above 1000 dB when the scatter geometry is invalid.
    Updates path.tropo.h0s.
    """
    wn = f_mhz / 47.7
    tropo = path.tropo
    h_e = geometry.h_e_meter

    if tropo.h0s > 15.0:
        H_0_db = tropo.h0s
    else:
        theta = geometry.theta_hzn[0] + geometry.theta_hzn[1] + d_meter * gamma_e
        r_1 = 2.0 * wn * theta * h_e[0]
        r_2 = 2.0 * wn * theta * h_e[1]

        if r_1 < 0.2 and r_2 < 0.2:
            return 1001.0

        ss = (d_meter - tropo.ad_meter) / (d_meter + tropo.ad_meter)
        q = tropo.rr / ss
        ss = max(0.1, ss)
        q = min(max(0.1, q), 10.0)
        z_0 = (d_meter - tropo.ad_meter) * (d_meter + tropo.ad_meter) * theta * 0.25 / d_meter

        temp = min(1.7, z_0 / 8.0e3)**6
        eta_s = (tropo.etq * np.exp(-temp) + 1.0) * z_0 / 1.7556e3

        ett = max(eta_s, 1.0)
        H_0_db = (h0_function(r_1, ett) + h0_function(r_2, ett)) * 0.5
        H_0_db += min(H_0_db, (1.38 - np.log(ett)) * np.log(ss) * np.log(q) * 0.49)
        H_0_db = fdim(H_0_db, 0.0)

        if eta_s < 1.0:
            H_0_db = eta_s * H_0_db + (1.0 - eta_s) * 4.343 * \
                np.log(((1.0 + 1.4142 / r_1) * (1.0 + 1.4142 / r_2))**2 * (r_1 + r_2) / (r_1 + r_2 + 2.8284))

        if H_0_db > 15.0 and tropo.h0s >= 0.0:
            H_0_db = tropo.h0s

    tropo.h0s = H_0_db
    theta = path.theta_los + d_meter * gamma_e

    return attenuation_function(theta * d_meter) + 4.343 * np.log(47.7 * wn * theta**4) \
        - 0.1 * (N_s - 301.0) * np.exp(-theta * d_meter / 40e3) + H_0_db


def longley_rice(geometry: LinkGeometry, f_mhz: float, Z_g: complex,
                 gamma_e: float, N_s: float) -> Tuple[PathParams, int]:
    """
    Build the reference attenuation curves for the path: the diffraction
    line, the fitted line-of-sight curve and the scatter line.

    Returns:
    --------
    path : PathParams
        Path parameters
    warnings : int
        Horizon and distance warnings
    """
    warnings = WarningFlag.NO_WARNINGS
    wn = f_mhz / 47.7
    h_e = geometry.h_e_meter
    d_hzn = geometry.d_hzn_meter
    d_meter = geometry.d_meter

    path = PathParams()

    path.d_ls_meter = np.sqrt(2.0 * h_e / gamma_e)
    path.d_sML_meter = path.d_ls_meter[0] + path.d_ls_meter[1]
    path.d_ML_meter = d_hzn[0] + d_hzn[1]
    path.theta_los = max(geometry.theta_hzn[0] + geometry.theta_hzn[1], -path.d_ML_meter * gamma_e)
    path.d_min_meter = abs(h_e[0] - h_e[1]) / 200e-3

    # Horizon checks
    hzn_flags = ((WarningFlag.TX_HORIZON_ANGLE, WarningFlag.TX_HORIZON_DISTANCE_1, WarningFlag.TX_HORIZON_DISTANCE_2),
                 (WarningFlag.RX_HORIZON_ANGLE, WarningFlag.RX_HORIZON_DISTANCE_1, WarningFlag.RX_HORIZON_DISTANCE_2))
    for i in range(2):
        if abs(geometry.theta_hzn[i]) > 200e-3:
            warnings |= hzn_flags[i][0]
        if d_hzn[i] < 0.1 * path.d_ls_meter[i]:
            warnings |= hzn_flags[i][1]
        if d_hzn[i] > 3.0 * path.d_ls_meter[i]:
            warnings |= hzn_flags[i][2]

    # Diffraction line
    path.xae = (wn * gamma_e**2)**(-Const.THIRD)
    d_3_meter = max(path.d_sML_meter, 1.3787 * path.xae + path.d_ML_meter)
    d_4_meter = d_3_meter + 2.7574 * path.xae

    path.diffraction = initialize_diffraction(geometry, path, f_mhz, Z_g, gamma_e)
    A_3_db = diffraction_loss(d_3_meter, geometry, path, f_mhz, gamma_e)
    A_4_db = diffraction_loss(d_4_meter, geometry, path, f_mhz, gamma_e)

    path.M_d = (A_4_db - A_3_db) / (d_4_meter - d_3_meter)
    path.A_d0_db = A_3_db - path.M_d * d_3_meter

    # Distance checks
    if d_meter > 1000e3:
        warnings |= WarningFlag.PATH_DISTANCE_TOO_BIG_1
    if d_meter < path.d_min_meter:
        warnings |= WarningFlag.PATH_DISTANCE_TOO_SMALL_1
    if d_meter < 1e3:
        warnings |= WarningFlag.PATH_DISTANCE_TOO_SMALL_2
    if d_meter > 2000e3:
        warnings |= WarningFlag.PATH_DISTANCE_TOO_BIG_2

    with np.errstate(divide="ignore", invalid="ignore"):
        fit_line_of_sight(geometry, path, f_mhz, Z_g)
        fit_troposcatter(geometry, path, f_mhz, gamma_e, N_s)

    return path, warnings


def fit_line_of_sight(geometry: LinkGeometry, path: PathParams, f_mhz: float,
                      Z_g: complex) -> None:
    """Fit A_el + K_1*d + K_2*ln(d) to the line-of-sight loss, anchored at d_sML"""
    wn = f_mhz / 47.7
    h_e = geometry.h_e_meter

    path.w_los = 0.021 / (0.021 + wn * geometry.delta_h_meter / max(10e3, path.d_sML_meter))

    d_2_meter = path.d_sML_meter
    A_2_db = path.A_d0_db + d_2_meter * path.M_d
    d_0_meter = 1.908 * wn * h_e[0] * h_e[1]

    if path.A_d0_db >= 0.0:
        d_0_meter = min(d_0_meter, 0.5 * path.d_ML_meter)
        d_1_meter = d_0_meter + 0.25 * (path.d_ML_meter - d_0_meter)
    else:
        d_1_meter = max(-path.A_d0_db / path.M_d, 0.25 * path.d_ML_meter)

    A_1_db = line_of_sight_loss(d_1_meter, geometry, path, f_mhz, Z_g)

    wq = False
    if d_0_meter < d_1_meter:
        A_0_db = line_of_sight_loss(d_0_meter, geometry, path, f_mhz, Z_g)
        q = np.log(d_2_meter / d_0_meter)
        path.K_2 = max(0.0, ((d_2_meter - d_0_meter) * (A_1_db - A_0_db) - (d_1_meter - d_0_meter) * (A_2_db - A_0_db))
                       / ((d_2_meter - d_0_meter) * np.log(d_1_meter / d_0_meter) - (d_1_meter - d_0_meter) * q))
        wq = path.A_d0_db >= 0.0 or path.K_2 > 0.0

        if wq:
            path.K_1 = (A_2_db - A_0_db - path.K_2 * q) / (d_2_meter - d_0_meter)

            if path.K_1 < 0.0:
                path.K_1 = 0.0
                path.K_2 = fdim(A_2_db, A_0_db) / q
                if path.K_2 == 0.0:
                    path.K_1 = path.M_d

    if not wq:
        path.K_1 = fdim(A_2_db, A_1_db) / (d_2_meter - d_1_meter)
        path.K_2 = 0.0
        if path.K_1 == 0.0:
            path.K_1 = path.M_d

    path.A_el_db = A_2_db - path.K_1 * d_2_meter - path.K_2 * np.log(d_2_meter)


def fit_troposcatter(geometry: LinkGeometry, path: PathParams, f_mhz: float,
                     gamma_e: float, N_s: float) -> None:
    """Scatter line through two far points, and the diffraction/scatter crossover d_x"""
    wn = f_mhz / 47.7

    path.tropo = initialize_troposcatter(geometry, N_s)

    d_5_meter = path.d_ML_meter + 200e3
    d_6_meter = d_5_meter + 200e3

    # Order matters, the far point seeds the frequency gain for the near one
    A_6_db = troposcatter_loss(d_6_meter, geometry, path, f_mhz, gamma_e, N_s)
    A_5_db = troposcatter_loss(d_5_meter, geometry, path, f_mhz, gamma_e, N_s)

    if A_5_db < 1000.0:
        path.M_s = (A_6_db - A_5_db) / 200e3
        path.d_x_meter = max(path.d_sML_meter,
                             path.d_ML_meter + 0.3 * path.xae * np.log(47.7 * wn),
                             (A_5_db - path.A_d0_db - path.M_s * d_5_meter) / (path.M_d - path.M_s))
        path.A_s0_db = (path.M_d - path.M_s) * path.d_x_meter + path.A_d0_db
    else:
        path.M_s = path.M_d
        path.A_s0_db = path.A_d0_db
        path.d_x_meter = Const.D_SCAT_DISABLED_METER


def transition_weight(d_meter: float, d_boundary_meter: float, half_width_meter: float) -> float:
    """Smoothstep from 0 (well below the boundary) to 1 (well above it)"""
    if half_width_meter <= 0.0:
        return 1.0 if d_meter >= d_boundary_meter else 0.0

    t = (d_meter - d_boundary_meter + half_width_meter) / (2.0 * half_width_meter)
    if t <= 0.0:
        return 0.0
    if t >= 1.0:
        return 1.0

    return t * t * (3.0 - 2.0 * t)


def select_propagation_mode(d_meter: float, path: PathParams
                            ) -> Tuple[PropagationMode, BlendWeights]:
    """
    Classify the path and compute the blend weights of the three regime
    slopes.

    The weights are exact (0 or 1) outside the transition windows around
    d_sML and d_x.
    """
    if d_meter < path.d_sML_meter:
        mode = PropagationMode.LINE_OF_SIGHT
    elif d_meter > path.d_x_meter:
        mode = PropagationMode.TROPOSCATTER
    else:
        mode = PropagationMode.DIFFRACTION

    w_beyond = transition_weight(d_meter, path.d_sML_meter,
                                 Const.TRANSITION_HALF_WIDTH * path.d_sML_meter)
    w_scat = transition_weight(d_meter, path.d_x_meter,
                               Const.TRANSITION_HALF_WIDTH * path.d_x_meter)

    weights = BlendWeights(w_los=1.0 - w_beyond,
                           w_diff=w_beyond * (1.0 - w_scat),
                           w_scat=w_beyond * w_scat)

    return mode, weights


def switched_reference(d_meter: float, path: PathParams) -> float:
    """Reference attenuation with hard switches at d_sML and d_x, in dB"""
    if d_meter < path.d_sML_meter:
        return path.A_el_db + path.K_1 * d_meter + path.K_2 * np.log(d_meter)
    if d_meter > path.d_x_meter:
        return path.A_s0_db + path.M_s * d_meter
    return path.A_d0_db + path.M_d * d_meter


def blended_slope(d_meter: float, path: PathParams) -> float:
    """Weighted sum of the (line-of-sight, diffraction, scatter) slopes, dB/meter"""
    _, weights = select_propagation_mode(d_meter, path)

    slope = 0.0
    if weights.w_los > 0.0:
        slope += weights.w_los * max(path.K_1 + path.K_2 / d_meter, 0.0)
    if weights.w_diff > 0.0:
        slope += weights.w_diff * max(path.M_d, 0.0)
    if weights.w_scat > 0.0:
        slope += weights.w_scat * max(path.M_s, 0.0)

    return slope


def transition_windows(path: PathParams) -> List[Tuple[float, float]]:
    """Distance intervals around d_sML and d_x, overlapping windows merged"""
    windows = []
    for d_boundary in sorted((path.d_sML_meter, path.d_x_meter)):
        half_width = Const.TRANSITION_HALF_WIDTH * d_boundary
        a, b = d_boundary - half_width, d_boundary + half_width
        if windows and a <= windows[-1][1]:
            windows[-1] = (windows[-1][0], max(b, windows[-1][1]))
        else:
            windows.append((a, b))
    return windows


def transition_attenuation(d_meter: float, d_a_meter: float, d_b_meter: float,
                           path: PathParams) -> float:
    """
    Reference attenuation inside the transition window [d_a, d_b].

    The slope follows the blended regime slopes (all non-negative), scaled
    so that the window ends meet the switched curve.
    """
    t = np.linspace(d_a_meter, d_b_meter, Const.TRANSITION_SAMPLES)
    slope = np.array([blended_slope(x, path) for x in t])
    G = np.concatenate(([0.0], np.cumsum(0.5 * (slope[1:] + slope[:-1]) * np.diff(t))))

    A_a_db = switched_reference(d_a_meter, path)
    A_b_db = switched_reference(d_b_meter, path)

    if G[-1] > 0.0:
        frac = np.interp(d_meter, t, G) / G[-1]
    else:
        frac = (d_meter - d_a_meter) / (d_b_meter - d_a_meter)

    return A_a_db + (A_b_db - A_a_db) * frac


def reference_attenuation(d_meter: float, path: PathParams) -> Tuple[float, int]:
    """
    Median reference attenuation at d_meter, clamped to be non-negative.

    Equal to the switched line-of-sight / diffraction / scatter curve outside
    the transition windows, smooth and non-decreasing inside them.

    Returns:
    --------
    A_ref_db : float
        Reference attenuation, in dB
    warnings : int
        NEGATIVE_LOSS_CLAMPED when the clamp was applied
    """
    A_ref_db = switched_reference(d_meter, path)
    for d_a_meter, d_b_meter in transition_windows(path):
        if d_a_meter < d_meter < d_b_meter:
            A_ref_db = transition_attenuation(d_meter, d_a_meter, d_b_meter, path)
            break

    if A_ref_db < 0.0:
        return 0.0, WarningFlag.NEGATIVE_LOSS_CLAMPED

    return A_ref_db, WarningFlag.NO_WARNINGS


def free_space_loss(d_meter: float, f_mhz: float) -> float:
    """Free space basic transmission loss, in dB"""
    return 32.45 + 20.0 * np.log10(f_mhz) + 20.0 * np.log10(d_meter / 1000.0)


def curve(c1: float, c2: float, x1: float, x2: float, x3: float, d_e_meter: float) -> float:
    """Empirical climate curve as a function of the effective distance"""
    return (c1 + c2 / (1.0 + ((d_e_meter - x2) / x3)**2)) * (d_e_meter / x1)**2 / (1.0 + (d_e_meter / x1)**2)


def data_climate_curves() -> Dict[str, np.ndarray]:
    """
    Coefficients of the variability curves, one entry per radio climate
    (index = climate - 1).
    """
    return {
        # V_med
        "bv1": np.array([-9.67, -0.62, 1.26, -9.21, -0.62, -0.39, 3.15]),
        "bv2": np.array([12.7, 9.19, 15.5, 9.05, 9.19, 2.86, 857.9]),
        "xv1": np.array([144.9e3, 228.9e3, 262.6e3, 84.1e3, 228.9e3, 141.7e3, 2222.e3]),
        "xv2": np.array([190.3e3, 205.2e3, 185.2e3, 101.1e3, 205.2e3, 315.9e3, 164.8e3]),
        "xv3": np.array([133.8e3, 143.6e3, 99.8e3, 98.6e3, 143.6e3, 167.4e3, 116.3e3]),
        # sigma_T-
        "bsm1": np.array([2.13, 2.66, 6.11, 1.98, 2.68, 6.86, 8.51]),
        "bsm2": np.array([159.5, 7.67, 6.65, 13.11, 7.16, 10.38, 169.8]),
        "xsm1": np.array([762.2e3, 100.4e3, 138.2e3, 139.1e3, 93.7e3, 187.8e3, 609.8e3]),
        "xsm2": np.array([123.6e3, 172.5e3, 242.2e3, 132.7e3, 186.8e3, 169.6e3, 119.9e3]),
        "xsm3": np.array([94.5e3, 136.4e3, 178.6e3, 193.5e3, 133.5e3, 108.9e3, 106.6e3]),
        # sigma_T+
        "bsp1": np.array([2.11, 6.87, 10.08, 3.68, 4.75, 8.58, 8.43]),
        "bsp2": np.array([102.3, 15.53, 9.60, 159.3, 8.12, 13.97, 8.19]),
        "xsp1": np.array([636.9e3, 138.7e3, 165.3e3, 464.4e3, 93.2e3, 216.0e3, 136.2e3]),
        "xsp2": np.array([134.8e3, 143.7e3, 225.7e3, 93.1e3, 135.9e3, 152.0e3, 188.5e3]),
        "xsp3": np.array([95.6e3, 98.6e3, 129.7e3, 94.2e3, 113.4e3, 122.7e3, 122.9e3]),
        # sigma_TD = C_D * sigma_T+, z_D
        "bsd1": np.array([1.224, 0.801, 1.380, 1.000, 1.224, 1.518, 1.518]),
        "bzd1": np.array([1.282, 2.161, 1.282, 20., 1.282, 1.282, 1.282]),
        # Frequency gain, g-
        "bfm1": np.array([1.0, 1.0, 1.0, 1.0, 0.92, 1.0, 1.0]),
        "bfm2": np.array([0.0, 0.0, 0.0, 0.0, 0.25, 0.0, 0.0]),
        "bfm3": np.array([0.0, 0.0, 0.0, 0.0, 1.77, 0.0, 0.0]),
        # Frequency gain, g+
        "bfp1": np.array([1.0, 0.93, 1.0, 0.93, 0.93, 1.0, 1.0]),
        "bfp2": np.array([0.0, 0.31, 0.0, 0.19, 0.31, 0.0, 0.0]),
        "bfp3": np.array([0.0, 2.00, 0.0, 1.79, 2.00, 0.0, 0.0]),
    }


def inverse_complementary_cumulative_distribution_function(q: float) -> float:
    """
    Compute the inverse complementary cumulative distribution function.

    This approximation is sourced from Formula 26.2.23 in Abramowitz & Stegun.
    This approximation has an error of abs(epsilon(p)) < 4.5e-4

    Parameters:
    -----------
    q : float
        Probability, 0.0 < q < 1.0

    Returns:
    --------
    Q_q : float
        Q(q)^-1
    """
    C_0 = 2.515516
    C_1 = 0.802853
    C_2 = 0.010328
    D_1 = 1.432788
    D_2 = 0.189269
    D_3 = 0.001308

    x = q
    if q > 0.5:
        x = 1.0 - x

    T_x = np.sqrt(-2.0 * np.log(x))

    zeta_x = (((C_2 * T_x + C_1) * T_x + C_0) /
              (((D_3 * T_x + D_2) * T_x + D_1) * T_x + 1.0))

    Q_q = T_x - zeta_x

    if q > 0.5:
        Q_q = -Q_q

    return Q_q


def split_mdvar(mdvar: int) -> Tuple[ModeVariability, bool, bool]:
    """
    Split the mode of variability code.

    Returns:
    --------
    mode : ModeVariability
    eliminate_location : bool
    eliminate_situation : bool
    """
    mdvar = int(mdvar)
    eliminate_situation = mdvar >= MDVAR__ELIMINATE_SITUATION
    if eliminate_situation:
        mdvar -= MDVAR__ELIMINATE_SITUATION

    eliminate_location = mdvar >= MDVAR__ELIMINATE_LOCATION
    if eliminate_location:
        mdvar -= MDVAR__ELIMINATE_LOCATION

    return ModeVariability(mdvar), eliminate_location, eliminate_situation


def variability(time: float, location: float, situation: float,
                geometry: LinkGeometry, f_mhz: float, A_ref_db: float,
                climate: int, mdvar: int) -> Tuple[float, int]:
    """
    Apply the time, location and situation variability to the reference
    attenuation.

    Parameters:
    -----------
    time, location, situation : float
        Percentages, in (0, 100)
    geometry : LinkGeometry
        Link geometry
    f_mhz : float
        Frequency, in MHz
    A_ref_db : float
        Reference attenuation, in dB
    climate : int
        Radio climate, 1..7
    mdvar : int
        Mode of variability

    Returns:
    --------
    A_db : float
        Attenuation at the requested percentages, in dB
    warnings : int
        EXTREME_VARIABILITIES when a z value lies outside the curves
    """
    warnings = WarningFlag.NO_WARNINGS
    data = data_climate_curves()
    i = int(climate) - 1
    wn = f_mhz / 47.7
    d_meter = geometry.d_meter
    h_e = geometry.h_e_meter

    mode, eliminate_location, eliminate_situation = split_mdvar(mdvar)

    z_T = inverse_complementary_cumulative_distribution_function(time / 100.0)
    z_L = inverse_complementary_cumulative_distribution_function(location / 100.0)
    z_S = inverse_complementary_cumulative_distribution_function(situation / 100.0)

    # Effective distance
    d_ex_meter = np.sqrt(18e6 * h_e[0]) + np.sqrt(18e6 * h_e[1]) + (575.7e12 / wn)**Const.THIRD
    if d_meter < d_ex_meter:
        d_e_meter = 130e3 * d_meter / d_ex_meter
    else:
        d_e_meter = 130e3 + d_meter - d_ex_meter

    # Frequency gains
    q = np.log(0.133 * wn)
    g_minus = data["bfm1"][i] + data["bfm2"][i] / ((data["bfm3"][i] * q)**2 + 1.0)
    g_plus = data["bfp1"][i] + data["bfp2"][i] / ((data["bfp3"][i] * q)**2 + 1.0)

    V_med_db = curve(data["bv1"][i], data["bv2"][i], data["xv1"][i], data["xv2"][i], data["xv3"][i], d_e_meter)
    sigma_T_minus = curve(data["bsm1"][i], data["bsm2"][i], data["xsm1"][i], data["xsm2"][i], data["xsm3"][i], d_e_meter) * g_minus
    sigma_T_plus = curve(data["bsp1"][i], data["bsp2"][i], data["xsp1"][i], data["xsp2"][i], data["xsp3"][i], d_e_meter) * g_plus
    sigma_TD = sigma_T_plus * data["bsd1"][i]
    z_D = data["bzd1"][i]
    tgtd = (sigma_T_plus - sigma_TD) * z_D

    # Location variability
    if eliminate_location:
        sigma_L = 0.0
    else:
        q = terrain_roughness(d_meter, geometry.delta_h_meter) * wn
        sigma_L = 10.0 * q / (q + 13.0)

    # Situation variability
    if eliminate_situation:
        V_S0 = 0.0
    else:
        V_S0 = (5.0 + 3.0 * np.exp(-d_e_meter / 100e3))**2

    if mode == ModeVariability.SINGLE_MESSAGE:
        z_T = z_S
        z_L = z_S
    elif mode == ModeVariability.ACCIDENTAL:
        z_L = z_S
    elif mode == ModeVariability.MOBILE:
        z_L = z_T

    if abs(z_T) > Const.Z_EXTREME or abs(z_L) > Const.Z_EXTREME or abs(z_S) > Const.Z_EXTREME:
        warnings |= WarningFlag.EXTREME_VARIABILITIES

    if z_T < 0.0:
        sigma_T = sigma_T_minus
    elif z_T <= z_D:
        sigma_T = sigma_T_plus
    else:
        sigma_T = sigma_TD + tgtd / z_T

    V_S = V_S0 + (sigma_T * z_T)**2 / (7.8 + z_S**2) + (sigma_L * z_L)**2 / (24.0 + z_S**2)

    if mode == ModeVariability.SINGLE_MESSAGE:
        Y_R = 0.0
        sigma_S = np.sqrt(sigma_T**2 + sigma_L**2 + V_S)
    elif mode == ModeVariability.ACCIDENTAL:
        Y_R = sigma_T * z_T
        sigma_S = np.sqrt(sigma_L**2 + V_S)
    elif mode == ModeVariability.MOBILE:
        Y_R = np.sqrt(sigma_T**2 + sigma_L**2) * z_T
        sigma_S = np.sqrt(V_S)
    else:
        Y_R = sigma_T * z_T + sigma_L * z_L
        sigma_S = np.sqrt(V_S)

    A_db = A_ref_db - V_med_db - Y_R - sigma_S * z_S

    # Compress negative attenuation
    if A_db < 0.0:
        A_db = A_db * (29.0 - A_db) / (29.0 - 10.0 * A_db)

    return A_db, warnings
