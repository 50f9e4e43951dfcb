"""
GALI as a chaos indicator on the standard map.

A chaotic orbit drives GALI_2 below the threshold exponentially fast; an
orbit on a KAM torus decays only as t^-2 and survives until tmax.
"""

from __future__ import annotations
import math

import numpy as np
from chaosdyn import gali
from chaosdyn.systems import standardmap

tmax = 5000
threshold = 1e-12
k = 1.2

orbits = {
    "chaotic (near the hyperbolic point)": [1e-3, 1e-3],
    "regular (inside the resonance island)": [math.pi, 0.3],
}

for label, u0 in orbits.items():
    values, times = gali(standardmap(u0, k=k), 2, tmax, threshold=threshold, rng=0)
    verdict = "chaotic" if values[-1] < threshold else "regular"
    print(f"{label}:")
    print(f"  stopped at t={times[-1]}, GALI_2={values[-1]:.3e} -> {verdict}")
    if verdict == "regular":
        mask = times >= 100
        slope = np.polyfit(np.log(times[mask]), np.log(values[mask]), 1)[0]
        print(f"  power-law exponent: {slope:.2f} (torus prediction: -2)")
