# tmd_core/wave_analysis.py
"""
Processing of recorded ground accelerations [gal] sampled at 100 Hz.

- integrate_wave: FFT double integration to velocity [kine] and
  displacement [cm] with a fixed band-pass (0.5 Hz .. Nyquist).
- calculate_spectrum: elastic response spectra by the Nigam-Jennings exact
  recursion for piecewise linear excitation.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .errors import InvalidInputError
from .units import DT, SAMPLING_HZ

logger = logging.getLogger(__name__)

LOW_CORNER_HZ = 0.5
HIGH_CORNER_HZ = SAMPLING_HZ / 2.0

SPECTRUM_POINTS = 201
SPECTRUM_START = 0.02
SPECTRUM_END = 10.0
DEFAULT_DAMPING = (0.05,)

# Full precision np.pi throughout; the legacy tool's truncated literals
# (3.14159265358979, 6.283185307) differ by less than 1e-9 relative.


@dataclass(frozen=True)
class IntegrationResult:
    time: np.ndarray
    acc: np.ndarray
    vel: np.ndarray
    dis: np.ndarray


@dataclass(frozen=True)
class SpectrumResult:
    period: np.ndarray              # (201,)
    damping: tuple
    sa: np.ndarray                  # (n_damping, 201)
    sv: np.ndarray
    sd: np.ndarray
    psv: np.ndarray
    ve: np.ndarray

    def rows(self) -> list:
        """One row per period: T, then Sa, Sv, Sd, pSv, Ve for each damping."""
        rows = []
        for it, period in enumerate(self.period):
            row = [float(period)]
            for ih in range(len(self.damping)):
                row.extend([float(self.sa[ih, it]), float(self.sv[ih, it]),
                            float(self.sd[ih, it]), float(self.psv[ih, it]),
                            float(self.ve[ih, it])])
            rows.append(row)
        return rows

    def as_dict(self) -> dict:
        return {
            "period": self.period.tolist(),
            "damping": list(self.damping),
            "sa": self.sa.tolist(),
            "sv": self.sv.tolist(),
            "sd": self.sd.tolist(),
            "psv": self.psv.tolist(),
            "ve": self.ve.tolist(),
        }


@dataclass(frozen=True)
class WaveAnalysisResult:
    time: np.ndarray
    acc: np.ndarray
    vel: np.ndarray
    dis: np.ndarray
    spectrum: SpectrumResult
    amax: float
    vmax: float
    dmax: float

    @property
    def period(self) -> np.ndarray:
        return self.spectrum.period

    @property
    def sa(self) -> np.ndarray:
        return self.spectrum.sa[0]

    def as_dict(self) -> dict:
        return {
            "time": self.time.tolist(),
            "acc": self.acc.tolist(),
            "vel": self.vel.tolist(),
            "dis": self.dis.tolist(),
            "period": self.period.tolist(),
            "sa": self.sa.tolist(),
            "spectrum": self.spectrum.as_dict(),
            "amax": self.amax,
            "vmax": self.vmax,
            "dmax": self.dmax,
        }


def _as_record(wave) -> np.ndarray:
    try:
        record = np.array(wave, dtype=float).ravel()
    except (TypeError, ValueError) as err:
        raise InvalidInputError(f"Acceleration record is not numeric: {err}") from err
    if record.shape[0] == 0:
        raise InvalidInputError("Acceleration record is empty")
    if not np.all(np.isfinite(record)):
        raise InvalidInputError("Acceleration record contains non-finite values")
    return record


def _bit_reversal(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    index = np.arange(n)
    reversed_index = np.zeros(n, dtype=int)
    for b in range(bits):
        reversed_index |= ((index >> b) & 1) << (bits - 1 - b)
    return reversed_index


def fft(values, inverse: bool = False) -> np.ndarray:
    """
    Iterative radix-2 Cooley-Tukey transform of a power-of-two length signal.

    The forward transform (kernel e^{-j theta}) is scaled by 1/N, the inverse
    (kernel e^{+j theta}) is not, so fft(fft(x), inverse=True) == x.
    """
    a = np.array(values, dtype=complex).ravel()
    n = a.shape[0]
    if n == 0 or n & (n - 1):
        raise InvalidInputError(f"FFT length must be a power of two, got {n}")

    if not inverse:
        a /= n
    a = a[_bit_reversal(n)]

    sign = 1.0 if inverse else -1.0
    half = 1
    while half < n:
        twiddle = np.exp(sign * 1j * np.pi * np.arange(half) / half)
        blocks = a.reshape(-1, 2 * half)
        top = blocks[:, :half].copy()
        bottom = blocks[:, half:] * twiddle
        blocks[:, :half] = top + bottom
        blocks[:, half:] = top - bottom
        half *= 2
    return a


def next_power_of_two(length: int) -> int:
    nb = 2
    while nb < length:
        nb *= 2
    return nb


def band_pass_filter(freq, low_corner: float, high_corner: float, sampling: float):
    """
    Gain of the smooth band-pass at freq [Hz].

    High side: sine taper of width 2.5 * (200 / sampling), 30 % of it below the
    corner.  Low side: taper of width low_corner / 2, 70 % of it below the
    corner.  A corner <= 1e-5 disables that side.
    """
    f = np.asarray(freq, dtype=float)
    gain = np.ones_like(f)

    if high_corner > 1e-5:
        bh = 2.5 * (200.0 / sampling)
        taper = 0.5 * (1.0 + np.sin((np.pi / bh) * (f - high_corner + 0.3 * bh) + 0.5 * np.pi))
        gain = np.where(f > high_corner + 0.7 * bh, 0.0,
                        np.where(f < high_corner - 0.3 * bh, 1.0, taper))

    if low_corner > 1e-5:
        bl = low_corner / 2.0
        taper = 0.5 * (1.0 - np.sin((np.pi / bl) * (f - low_corner + 0.7 * bl) + 0.5 * np.pi))
        gain = np.where(f > low_corner + 0.3 * bl, gain,
                        np.where(f < low_corner - 0.7 * bl, 0.0, gain * taper))

    return gain


def integrate_wave(wave, bias_filter: bool = True) -> IntegrationResult:
    """
    Band-passed acceleration, velocity and displacement of a record.

    The record is padded to a power of two (with its mean when bias_filter is
    set, so that the padding vanishes once the mean is removed).
    """
    record = _as_record(wave)
    average = float(np.mean(record))
    nb = next_power_of_two(record.shape[0])

    padded = np.full(nb, average if bias_filter else 0.0)
    padded[:record.shape[0]] = record
    if bias_filter:
        padded = padded - average

    acc = fft(padded)
    vel = np.zeros(nb, dtype=complex)
    dis = np.zeros(nb, dtype=complex)

    f0 = SAMPLING_HZ / nb
    acc[0] = 0.0
    bins = np.arange(1, nb // 2 + 1)
    frq = f0 * bins
    acc[bins] *= band_pass_filter(frq, LOW_CORNER_HZ, HIGH_CORNER_HZ, SAMPLING_HZ)

    w = 2.0 * np.pi * frq
    vel[bins] = acc[bins] / (1j * w)
    dis[bins] = -acc[bins] / (w * w)

    # negative frequencies are the conjugates, Nyquist bin stays as is
    mirror = bins[bins < nb // 2]
    acc[nb - mirror] = np.conj(acc[mirror])
    vel[nb - mirror] = np.conj(vel[mirror])
    dis[nb - mirror] = np.conj(dis[mirror])

    return IntegrationResult(
        time=np.arange(nb) / SAMPLING_HZ,
        acc=np.real(fft(acc, inverse=True)),
        vel=np.real(fft(vel, inverse=True)),
        dis=np.real(fft(dis, inverse=True)),
    )


def spectrum_periods() -> np.ndarray:
    """201 log-spaced periods from 0.02 s to 10 s, both ends exact."""
    logs = math.log10(SPECTRUM_START)
    div = (math.log10(SPECTRUM_END) - logs) / (SPECTRUM_POINTS - 1)
    period = 10.0 ** (logs + div * np.arange(SPECTRUM_POINTS))
    period[0] = SPECTRUM_START
    period[-1] = SPECTRUM_END
    return period


def nigam_jennings(wave, periods, damping: float):
    """
    Peak response of damped SDOF oscillators to a ground acceleration record.

    The recursion is exact for piecewise linear excitation between samples and
    runs for all periods at once.  Returns (amax, vmax, dmax, energy) arrays:
    absolute acceleration, relative velocity, relative displacement and the
    input energy integral sum(v * ddy * dt).
    """
    wv = _as_record(wave)
    periods = np.asarray(periods, dtype=float)
    if not 0.0 <= damping < 1.0:
        raise InvalidInputError(f"Damping ratio must be in [0, 1), got {damping}")
    if np.any(periods <= 0.0):
        raise InvalidInputError("Oscillator periods must be positive")

    h = damping
    w = 2.0 * np.pi / periods
    w2 = w * w
    hw = h * w
    wd = w * math.sqrt(1.0 - h * h)
    wdt = wd * DT
    e = np.exp(-hw * DT)
    cwdt = np.cos(wdt)
    swdt = np.sin(wdt)

    a11 = e * (cwdt + hw * swdt / wd)
    a12 = e * swdt / wd
    a21 = -e * w2 * swdt / wd
    a22 = e * (cwdt - hw * swdt / wd)

    ss = -hw * swdt - wd * cwdt
    cc = -hw * cwdt + wd * swdt
    s1 = (e * ss + wd) / w2
    c1 = (e * cc + hw) / w2
    s2 = (e * DT * ss + hw * s1 + wd * c1) / w2
    c2 = (e * DT * cc + hw * c1 - wd * s1) / w2
    s3 = DT * s1 - s2
    c3 = DT * c1 - c2
    b11 = -s2 / wdt
    b12 = -s3 / wdt
    b21 = (hw * s2 - wd * c2) / wdt
    b22 = (hw * s3 - wd * c3) / wdt

    # state just after the first sample
    dxf = np.full_like(w, -wv[0] * DT)
    xf = np.zeros_like(w)
    amax = np.abs(2.0 * hw * wv[0] * DT)
    vmax = np.full_like(w, abs(wv[0] * DT))
    dmax = np.zeros_like(w)
    energy = vmax * wv[0] * DT

    for m in range(1, wv.shape[0]):
        ddym = wv[m]
        ddyf = wv[m - 1]
        x = a12 * dxf + a11 * xf + b12 * ddym + b11 * ddyf
        dx = a22 * dxf + a21 * xf + b22 * ddym + b21 * ddyf
        ddx = -2.0 * hw * dx - w2 * x
        energy += dx * ddym * DT
        np.maximum(amax, np.abs(ddx), out=amax)
        np.maximum(vmax, np.abs(dx), out=vmax)
        np.maximum(dmax, np.abs(x), out=dmax)
        dxf = dx
        xf = x

    return amax, vmax, dmax, energy


def calculate_spectrum(wave, damping_list: Sequence[float] = DEFAULT_DAMPING) -> SpectrumResult:
    try:
        damping = tuple(float(h) for h in damping_list)
    except (TypeError, ValueError) as err:
        raise InvalidInputError(f"Invalid damping ratio: {err}") from err
    if not damping:
        raise InvalidInputError("At least one damping ratio is required")

    period = spectrum_periods()
    sa, sv, sd, psv, ve = ([] for _ in range(5))
    for h in damping:
        amax, vmax, dmax, energy = nigam_jennings(wave, period, h)
        sa.append(amax)
        sv.append(vmax)
        sd.append(dmax)
        psv.append(amax * period / (2.0 * np.pi))
        ve.append(np.sqrt(2.0 * np.abs(energy)))

    return SpectrumResult(period=period, damping=damping,
                          sa=np.array(sa), sv=np.array(sv), sd=np.array(sd),
                          psv=np.array(psv), ve=np.array(ve))


def analyze_wave(wave, damping_list: Sequence[float] = DEFAULT_DAMPING) -> WaveAnalysisResult:
    """Double integration of the record plus its response spectra (raw record)."""
    integration = integrate_wave(wave, bias_filter=True)
    spectrum = calculate_spectrum(wave, damping_list)
    logger.debug("wave analysis: %d samples padded to %d, %d damping ratios",
                 np.size(wave), integration.time.shape[0], len(spectrum.damping))

    return WaveAnalysisResult(
        time=integration.time,
        acc=integration.acc,
        vel=integration.vel,
        dis=integration.dis,
        spectrum=spectrum,
        amax=float(np.max(np.abs(integration.acc))),
        vmax=float(np.max(np.abs(integration.vel))),
        dmax=float(np.max(np.abs(integration.dis))),
    )
