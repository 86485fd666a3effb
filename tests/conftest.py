import os

import numpy as np
import pytest

DATA_TABLES = os.path.join(os.path.dirname(__file__), "Data_Tables")


@pytest.fixture
def ntia_pfl():
    """3.6 km terrain profile of the NTIA point-to-point example, PFL format"""
    return np.loadtxt(os.path.join(DATA_TABLES, "pfl.txt"), delimiter=",")


@pytest.fixture
def ntia_params():
    """Remaining inputs of the NTIA example, in p2p_tls order after pfl"""
    return dict(climate=5, N_0=301.0, f_mhz=3500.0, pol=1, epsilon=15.0,
                sigma=0.005, mdvar=1, time=50.0, location=50.0, situation=50.0)


