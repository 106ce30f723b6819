from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

import numpy as np
from numpy.typing import NDArray

FloatArray: TypeAlias = NDArray[np.float64]

if TYPE_CHECKING:
    import optype.numpy as onp

    Float1DArray: TypeAlias = onp.Array1D[np.float64]
    Float2DArray: TypeAlias = onp.Array2D[np.float64]
else:
    Float1DArray: TypeAlias = NDArray[np.float64]
    Float2DArray: TypeAlias = NDArray[np.float64]


__all__ = ["FloatArray", "Float1DArray", "Float2DArray"]
