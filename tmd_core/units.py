# tmd_core/units.py
"""
Fixed physical constants and unit conventions of the engine.

Units throughout: kN, cm, s.  Accelerations are in gal (cm/s^2),
velocities in kine (cm/s).
"""

GRAVITY = 9.80665          # m/s^2, weight -> mass
GAL_PER_G = 980.665        # cm/s^2
DT = 0.01                  # s, fixed time step of every series
SAMPLING_HZ = 100          # 1 / DT

MIN_STORIES = 1
MAX_STORIES = 9
