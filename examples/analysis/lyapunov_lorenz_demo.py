"""
Lyapunov exponents of the Lorenz system.

Computes the maximum Lyapunov exponent (Benettin two-trajectory method) and
the full spectrum (QR method), and checks the spectrum sum against the
constant phase-space contraction rate -(sigma + 1 + beta).
"""

from __future__ import annotations
from chaosdyn import lyapunov_spectrum, max_lyapunov
from chaosdyn.systems import lorenz

# 1. System
# ---------
sigma, rho, beta = 10.0, 28.0, 8.0/3.0
ds = lorenz([1.0, 1.0, 1.0], sigma=sigma, rho=rho, beta=beta)

# Run control
total_time = 400
transient = 20.0
jit = True  # falls back to pure Python (with a warning) without numba

print(f"Running Lorenz analysis (T={total_time}, transient={transient})...")

# 2. Maximum exponent
# -------------------
print("Computing Maximum Lyapunov Exponent (MLE)...")
mle_calc = max_lyapunov(ds, float(total_time), Ttr=transient, jit=jit)

# 3. Spectrum
# -----------
print("Computing Lyapunov Spectrum (3 exponents)...")
spectrum = lyapunov_spectrum(ds, total_time, Ttr=transient, dt=1.0, jit=jit)

# 4. Results & Validation
# -----------------------
print("\n" + "="*60)
print("RESULTS & VALIDATION")
print("="*60)

ref = (0.9056, 0.0, -14.5723)

mle_err = abs(mle_calc - ref[0]) / abs(ref[0]) * 100
print(f"\nMaximum Lyapunov Exponent (MLE):")
print(f"  Calculated:  {mle_calc:.4f}")
print(f"  Reference:   {ref[0]:.4f}")
print(f"  Error:       {mle_err:.2f}%")

print(f"\nLyapunov Spectrum:")
for i, (calc, want) in enumerate(zip(spectrum, ref), start=1):
    print(f"  lambda_{i}: {calc:9.4f}   (reference {want:9.4f})")

divergence = -(sigma + 1.0 + beta)
print(f"\nSum of exponents: {spectrum.sum():.4f}")
print(f"Divergence:       {divergence:.4f}")
