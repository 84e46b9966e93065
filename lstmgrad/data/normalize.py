from __future__ import annotations

from typing import List, Sequence
import numpy as np


def _span(lo, hi):
    span = np.asarray(hi, dtype=np.float64) - np.asarray(lo, dtype=np.float64)
    return np.where(span > 0, span, 1.0)


class MinMaxNormalizer:
    """Per-feature min/max scaling of input series and of the target.

    Constant features map to zero. Only affine arithmetic is applied, so
    complex-valued series pass through unchanged in type.
    """

    def __init__(self) -> None:
        self.x_min: np.ndarray | None = None
        self.x_max: np.ndarray | None = None
        self.y_min: float | None = None
        self.y_max: float | None = None

    def fit(self, x: Sequence, y: Sequence | None = None) -> "MinMaxNormalizer":
        if len(x) == 0:
            raise ValueError("cannot fit normalizer on an empty batch")
        xs = [np.asarray(xx, dtype=np.float64) for xx in x]
        for xx in xs:
            if xx.ndim != 2 or xx.shape[0] != xs[0].shape[0]:
                raise ValueError("all series must have shape (n_var, T) with the same n_var")
        allx = np.concatenate(xs, axis=1)
        self.x_min = np.nanmin(allx, axis=1)
        self.x_max = np.nanmax(allx, axis=1)
        if y is not None:
            ally = np.concatenate([np.asarray(yy, dtype=np.float64).reshape(-1) for yy in y])
            self.y_min = float(np.nanmin(ally))
            self.y_max = float(np.nanmax(ally))
        return self

    def _need_x(self) -> None:
        if self.x_min is None:
            raise RuntimeError("normalizer used before fit")

    def _need_y(self) -> None:
        if self.y_min is None:
            raise RuntimeError("normalizer was fitted without targets")

    def transform_x(self, x: Sequence) -> List[np.ndarray]:
        self._need_x()
        lo = self.x_min[:, None]
        span = _span(self.x_min, self.x_max)[:, None]
        return [(np.asarray(xx) - lo) / span for xx in x]

    def inverse_x(self, x: Sequence) -> List[np.ndarray]:
        self._need_x()
        lo = self.x_min[:, None]
        span = _span(self.x_min, self.x_max)[:, None]
        return [np.asarray(xx) * span + lo for xx in x]

    def transform_y(self, y: Sequence) -> List[np.ndarray]:
        self._need_y()
        span = float(_span(self.y_min, self.y_max))
        return [(np.asarray(yy) - self.y_min) / span for yy in y]

    def inverse_y(self, y: Sequence) -> List[np.ndarray]:
        self._need_y()
        span = float(_span(self.y_min, self.y_max))
        return [np.asarray(yy) * span + self.y_min for yy in y]
