from __future__ import annotations

import numpy as np

EPS = float(np.finfo(np.float64).eps)
SQRT_EPS = float(np.sqrt(EPS))

XTOL_DEFAULT = 0.0
FTOL_DEFAULT = 1e-8
ITERATIONS_DEFAULT = 1000
FACTOR_DEFAULT = 1.0

# trust-region acceptance and radius update
TR_ETA = 1e-4
TR_RHO_SHRINK = 0.1
TR_RHO_GROW = 0.5
TR_SHRINK = 0.5
TR_GROW = 2.0
TR_SCALE_DECAY = 0.1

__all__ = [
    "EPS",
    "SQRT_EPS",
    "XTOL_DEFAULT",
    "FTOL_DEFAULT",
    "ITERATIONS_DEFAULT",
    "FACTOR_DEFAULT",
    "TR_ETA",
    "TR_RHO_SHRINK",
    "TR_RHO_GROW",
    "TR_SHRINK",
    "TR_GROW",
    "TR_SCALE_DECAY",
]
