"""
Lyapunov exponent of the logistic map across parameter values.

At r = 4 the exponent equals log(2); negative values mark periodic windows.
"""

from __future__ import annotations
import math

import numpy as np
from chaosdyn import lyapunov_spectrum, max_lyapunov
from chaosdyn.systems import logistic

N = 20_000

print(f"{'r':>6}  {'lambda (QR)':>12}  {'lambda (Benettin)':>18}")
for r in np.linspace(3.4, 4.0, 13):
    ds = logistic(0.4, r=r)
    lam = lyapunov_spectrum(ds, N, Ttr=500)[0]
    lam_b = max_lyapunov(ds, N, Ttr=500)
    print(f"{r:6.3f}  {lam:12.4f}  {lam_b:18.4f}")

print(f"\nlog(2) = {math.log(2.0):.4f}")
