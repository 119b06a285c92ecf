# tmd_core/waves.py
import math

import numpy as np

from .units import DT, GAL_PER_G, GRAVITY

MIN_SINE_FREQ_HZ = 0.01
OBSERVATION_SECONDS = 5.0


# El Centro 1940 N-S, simplified to its main peaks; PGA about 0.32 g at 2.14 s
EL_CENTRO_TIME_S = (0.00, 0.50, 1.00, 1.40, 1.80, 2.00, 2.14, 2.40, 2.80,
                    3.20, 3.70, 4.20, 4.80, 5.50, 7.00, 9.00, 12.0, 30.0)
EL_CENTRO_ACC_G = (0.000, 0.010, 0.040, -0.05, -0.09, 0.150, 0.319, -0.12, -0.25,
                   0.180, -0.15, 0.120, -0.10, 0.060, -0.04, 0.020, 0.000, 0.000)


def el_centro_peaks() -> tuple[np.ndarray, np.ndarray]:
    return np.array(EL_CENTRO_TIME_S), np.array(EL_CENTRO_ACC_G)


def el_centro_wave(duration: float = 15.0, scaling_factor: float = 1.0) -> np.ndarray:
    """El Centro peaks linearly interpolated on the DT grid, in gal."""
    t_data, a_data_g = el_centro_peaks()
    t = np.arange(int(round(duration / DT))) * DT
    # past the end of the record the ground is at rest
    ag_g = np.interp(t, t_data, a_data_g, left=0.0, right=0.0)
    return ag_g * GAL_PER_G * scaling_factor


def make_sine_wave(freq_hz: float,
                   pre_cycles: int = 0,
                   harmonic_cycles: int = 1,
                   post_cycles: int = 0,
                   add_after_observation: bool = False) -> np.ndarray:
    """
    Unit amplitude sine sweep used as a resonance test input.

    post_cycles sets both ramps: the amplitude rises linearly over that many
    cycles, harmonic_cycles run at full amplitude (each non-empty ramp takes
    one of them), then it falls back over the same count.  pre_cycles is
    accepted but not read, matching the records of the reference tool.
    Every cycle has floor(1 / (f dt)) samples of sin(2 pi f i dt).
    The record ends with 5 s of rest when add_after_observation is set,
    otherwise with a single zero sample.
    """
    f = max(MIN_SINE_FREQ_HZ, freq_hz)
    n0 = max(0, int(math.floor(post_cycles)))
    n1 = max(1, int(math.floor(harmonic_cycles)))
    n2 = max(0, int(math.floor(post_cycles)))

    amplitudes = [(i + 1) / max(1, n0) for i in range(n0)]
    middle = n1 - (1 if n0 > 0 else 0) - (1 if n2 > 0 else 0)
    amplitudes.extend([1.0] * max(0, middle))
    amplitudes.extend(reversed([(i + 1) / max(1, n2) for i in range(n2)]))

    step_per_cycle = max(1, int(math.floor(1.0 / (f * DT))))
    cycle = np.sin(2.0 * math.pi * f * np.arange(step_per_cycle) * DT)

    parts = [amp * cycle for amp in amplitudes]
    if add_after_observation:
        parts.append(np.zeros(int(math.floor(OBSERVATION_SECONDS / DT))))
    else:
        parts.append(np.zeros(1))
    return np.concatenate(parts)


def create_force_wave_input(source_wave, max_force_kn: float) -> np.ndarray:
    """Scale a normalised (peak ~ g) record into a story force history [kN]."""
    return np.asarray(source_wave, dtype=float) * (max_force_kn / GRAVITY)


def create_zero_wave(length: int) -> np.ndarray:
    return np.zeros(int(length))
