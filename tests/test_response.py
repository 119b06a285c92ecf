import os
import sys

import numpy as np
import pytest

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.dirname(CURRENT_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tmd_core.errors import InvalidInputError, SingularModelError
from tmd_core.modal import ModalAnalyzer
from tmd_core.response import (
    ForceInput,
    NewmarkIntegrator,
    resolve_damping,
    run_response,
)
from tmd_core.structures import StructuralModel, TmdSetting, TmdShearBuilding
from tmd_core.waves import create_zero_wave, make_sine_wave

G = 9.80665
DT = 0.01


def three_story(tmd_list=()):
    return StructuralModel(
        name="ModelA",
        story_count=3,
        weights_kn=(1000.0, 1000.0, 900.0),
        stiffness_kn_per_cm=(1200.0, 1100.0, 900.0),
        extra_damping_kn_per_kine=(0.0, 0.0, 0.0),
        tmd_list=tuple(tmd_list),
    )


def test_first_step_matches_hand_computed_newmark():
    """
    3 stories, h = 0.02, ground impulse of 100 gal on the first sample.
    With everything at rest the first step reduces to
        (M + dt/2 C + dt^2/4 K) a1 = -M {1} 100
        A1 = a1 + 100,   d1 = dt^2 / 4 * a1
    """
    wave = np.zeros(50)
    wave[0] = 100.0
    result = run_response("impulse", three_story(), 0.02, wave=wave)

    m = np.array([1000.0, 1000.0, 900.0]) / G / 980.665
    k = np.array([1200.0, 1100.0, 900.0]) / G
    M = np.diag(m)
    K = np.array([
        [k[0] + k[1], -k[1], 0.0],
        [-k[1], k[1] + k[2], -k[2]],
        [0.0, -k[2], k[2]],
    ])
    w1 = np.sqrt(np.min(np.real(np.linalg.eigvals(np.linalg.solve(M, K)))))
    C = 2.0 * 0.02 / w1 * K
    k_eff = M + DT / 2.0 * C + 0.25 * DT * DT * K
    a1 = np.linalg.solve(k_eff, -M @ np.ones(3) * 100.0)

    assert np.isclose(result.main_acc[0, 0], a1[0] + 100.0, rtol=1e-9)
    assert np.isclose(result.main_dis[0, 0], 0.25 * DT * DT * a1[0], rtol=1e-9)
    assert np.allclose(result.main_acc[:, 0], a1 + 100.0, rtol=1e-9)


def test_at_rest_without_damping_or_excitation():
    """
    Zero damping, zero excitation: nothing moves at any step.
    """
    model = three_story([TmdSetting(floor=3, weight_kn=30.0, freq_hz=2.5)])
    result = run_response("rest", model, 0.0, wave=create_zero_wave(200))

    assert result.steps == 200
    assert np.all(result.main_acc == 0.0)
    assert np.all(result.main_dis == 0.0)
    assert np.all(result.tmd_acc == 0.0)
    assert np.all(result.tmd_dis == 0.0)


def test_result_partitioning_and_time_axis():
    model = three_story([TmdSetting(floor=2, weight_kn=30.0, freq_hz=2.5)])
    wave = 50.0 * make_sine_wave(2.0, harmonic_cycles=3)
    result = run_response("sine", model, 0.02, wave=wave)

    assert result.main_acc.shape == (3, wave.shape[0])
    assert result.tmd_dis.shape == (1, wave.shape[0])
    assert result.tmd_floors == (2,)
    assert np.array_equal(result.wave_acc, wave)
    assert np.isclose(result.time[1] - result.time[0], DT)
    assert result.as_dict()["main_count"] == 3


def test_resolve_damping_explicit_and_auto():
    model = three_story()
    assert resolve_damping(model, 0.035) == 0.035
    assert resolve_damping(model, 0.0) == 0.0

    # automatic: f1 / 150, capped at 0.04
    mi = np.array([1000.0, 1000.0, 900.0]) / G
    ki = np.array([1200.0, 1100.0, 900.0]) * 100.0
    f1 = 1.0 / ModalAnalyzer(mi, ki).run().natural_period[0]
    assert np.isclose(resolve_damping(model, -1.0), min(f1 / 150.0, 0.04))

    stiff = StructuralModel("stiff", 1, (10.0,), (1.0e6,))
    assert resolve_damping(stiff, -1.0) == 0.04


def test_force_excitation_equivalent_to_base_excitation():
    """
    Story forces -m_i * y(t) excite the same relative motion as a ground
    acceleration y(t); absolute acceleration differs by y(t) only.
    """
    model = three_story()
    wave = 80.0 * make_sine_wave(1.5, harmonic_cycles=4)

    base = run_response("base", model, 0.02, wave=wave)
    building = TmdShearBuilding.from_model(model, 0.02)
    forces = [ForceInput(floor_index=i, data=-building.M[i, i] * wave) for i in range(3)]
    force = run_response("force", model, 0.02, forces=forces)

    assert np.allclose(force.main_dis, base.main_dis, rtol=1e-9, atol=1e-12)
    assert np.allclose(force.main_acc, base.main_acc - wave, rtol=1e-9, atol=1e-9)
    assert np.all(force.wave_acc == 0.0)


def test_force_series_truncated_to_shortest():
    model = three_story()
    forces = [
        ForceInput(floor_index=2, data=np.ones(50)),
        ForceInput(floor_index=0, data=np.ones(30)),
    ]
    result = run_response("short", model, 0.02, forces=forces)
    assert result.steps == 30


def test_force_on_unknown_floor_is_ignored():
    model = three_story()
    data = 10.0 * make_sine_wave(2.0)
    only_roof = run_response("a", model, 0.02, forces=[ForceInput(2, data)])
    with_stray = run_response("b", model, 0.02,
                              forces=[ForceInput(2, data), ForceInput(7, data), ForceInput(-1, data)])
    assert np.array_equal(only_roof.main_dis, with_stray.main_dis)


def test_tmd_reduces_resonant_response():
    """
    Harmonic ground motion at the fundamental frequency: a roof TMD tuned to
    that frequency must cut the roof displacement.
    """
    bare_model = three_story()
    f1 = ModalAnalyzer.from_model(bare_model).run().natural_frequency[0]
    tmd_model = three_story([TmdSetting(floor=3, weight_kn=87.0, freq_hz=f1)])

    wave = 20.0 * make_sine_wave(f1, harmonic_cycles=30)
    bare = run_response("bare", bare_model, 0.02, wave=wave)
    tmd = run_response("tmd", tmd_model, 0.02, wave=wave)

    assert np.max(np.abs(tmd.main_dis[2])) < 0.7 * np.max(np.abs(bare.main_dis[2]))
    assert tmd.max_values()["max_tmd_dis"] > tmd.max_values()["max_main_dis"]


def test_damped_free_vibration_decays():
    """
    After a short pulse the damped building rings down.
    """
    wave = np.zeros(2000)
    wave[:10] = 100.0
    result = run_response("pulse", three_story(), 0.05, wave=wave)

    roof = result.main_dis[2]
    assert np.max(np.abs(roof[-200:])) < 0.05 * np.max(np.abs(roof[:200]))


def test_excitation_errors():
    model = three_story()
    with pytest.raises(InvalidInputError):
        run_response("empty", model, 0.02, wave=[])
    with pytest.raises(InvalidInputError):
        run_response("none", model, 0.02)
    with pytest.raises(InvalidInputError):
        run_response("both", model, 0.02, wave=[1.0], forces=[ForceInput(0, [1.0])])
    with pytest.raises(InvalidInputError):
        run_response("empty forces", model, 0.02, forces=[ForceInput(0, [])])


def test_massless_tmd_is_singular():
    model = three_story([TmdSetting(floor=3, weight_kn=0.0, freq_hz=2.0)])
    building = TmdShearBuilding.from_model(model, 0.02)
    with pytest.raises(SingularModelError):
        NewmarkIntegrator(building)


def test_runs_are_independent():
    model = three_story([TmdSetting(floor=3, weight_kn=30.0, freq_hz=2.5)])
    wave = 100.0 * make_sine_wave(2.5, harmonic_cycles=5)
    first = run_response("one", model, -1.0, wave=wave)
    run_response("other", three_story(), 0.05, wave=wave[::-1])
    second = run_response("one", model, -1.0, wave=wave)

    assert np.array_equal(first.main_acc, second.main_acc)
    assert np.array_equal(first.tmd_dis, second.tmd_dis)
