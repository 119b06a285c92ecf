import logging

import numpy as np

from tmd_core.modal import ModalAnalyzer
from tmd_core.response import run_response
from tmd_core.structures import StructuralModel, TmdSetting
from tmd_core.wave_analysis import analyze_wave
from tmd_core.waves import el_centro_wave


def build_demo_model(with_tmd: bool = True) -> StructuralModel:
    # ===== 3 story building, 30 kN damper tuned to 2.5 Hz on the roof =====
    return StructuralModel(
        name="ModelA",
        story_count=3,
        weights_kn=(1000.0, 1000.0, 900.0),
        stiffness_kn_per_cm=(1200.0, 1100.0, 900.0),
        extra_damping_kn_per_kine=(0.0, 0.0, 0.0),
        tmd_list=(TmdSetting(floor=3, weight_kn=30.0, freq_hz=2.5),) if with_tmd else (),
    )


def main():
    np.set_printoptions(precision=4, suppress=True)
    model = build_demo_model()

    # ===== Modal analysis =====
    modal = ModalAnalyzer.from_model(model).run()
    print("--- Modal analysis ---")
    print("T_n (s):          ", modal.natural_period)
    print("f_n (Hz):         ", modal.natural_frequency)
    print("effective mass:   ", modal.effective_mass_ratio)

    # ===== Time history, El Centro base excitation, automatic damping =====
    wave = el_centro_wave(duration=15.0)
    bare = run_response("bare", build_demo_model(with_tmd=False), -1.0, wave=wave)
    tmd = run_response("tmd", model, -1.0, wave=wave)

    roof_bare = np.max(np.abs(bare.main_dis[-1]))
    roof_tmd = np.max(np.abs(tmd.main_dis[-1]))
    print("\n--- Time history ---")
    print("steps:                 ", tmd.steps)
    print("max roof |d| bare (cm):", roof_bare)
    print("max roof |d| TMD  (cm):", roof_tmd)

    # ===== Wave analysis =====
    analysis = analyze_wave(wave)
    print("\n--- Wave analysis ---")
    print("amax (gal) / vmax (kine) / dmax (cm):", analysis.amax, analysis.vmax, analysis.dmax)
    print("peak Sa (gal):", np.max(analysis.sa))

    return {"modal": modal, "bare": bare, "tmd": tmd, "analysis": analysis}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
