from __future__ import annotations

from typing import Iterable, Sequence
import numpy as np

from ..errors import DimensionMismatch


class SeriesLoss:
    """Loss over a batch of per-timestep predictions.

    The backward engine only calls ``deriv`` (derivative of the loss with
    respect to the prediction at timestep ``t`` of one series) and
    ``deriv_activation`` (chain rule through the sigmoid output head).
    """

    def forward(self, y_true: Sequence[np.ndarray], y_pred: Sequence[np.ndarray]) -> float:
        raise NotImplementedError

    def deriv(self, y_true: np.ndarray, y_pred: np.ndarray, t: int) -> float:
        raise NotImplementedError

    def deriv_activation(self, pred: float, upstream: float) -> float:
        return upstream * pred * (1.0 - pred)

    def __call__(self, y_true, y_pred) -> float:
        return self.forward(y_true, y_pred)


class MSELoss(SeriesLoss):
    def __init__(self, timesteps: Iterable[int] | None = None) -> None:
        if timesteps is None:
            self.timesteps = None
        else:
            ts = sorted(set(int(t) for t in timesteps))
            if ts and ts[0] < 0:
                raise ValueError("timesteps must be non-negative")
            self.timesteps = np.asarray(ts, dtype=np.int64)

    def _steps(self, n: int) -> np.ndarray:
        if self.timesteps is None:
            return np.arange(n)
        return self.timesteps[self.timesteps < n]

    def forward(self, y_true: Sequence[np.ndarray], y_pred: Sequence[np.ndarray]) -> float:
        if len(y_true) != len(y_pred):
            raise DimensionMismatch("predictions and targets must have the same number of series")
        total = 0.0
        for yt, yp in zip(y_true, y_pred):
            yt = np.asarray(yt, dtype=np.float64)
            yp = np.asarray(yp, dtype=np.float64)
            if yt.shape != yp.shape:
                raise DimensionMismatch("predictions and targets must have the same shape")
            steps = self._steps(yt.shape[0])
            if steps.size == 0:
                continue
            d = yp[steps] - yt[steps]
            total += float(np.mean(d * d))
        return total

    def deriv(self, y_true: np.ndarray, y_pred: np.ndarray, t: int) -> float:
        steps = self._steps(len(y_true))
        if steps.size == 0 or t not in steps:
            return 0.0
        return 2.0 * (float(y_pred[t]) - float(y_true[t])) / float(steps.size)
