from __future__ import annotations

from typing import List, Sequence
import numpy as np

from ..data.normalize import MinMaxNormalizer
from ..errors import InvalidDropoutCount
from ..losses.mse import SeriesLoss
from .backward import predict_with_gradient
from .dropout import Dropout, NoDropouts, RandomMasking, UniformScale
from .forward import predict, predict_generic
from .layout import GATES, LSTMWeights, WeightLayout


class Parameter:
    def __init__(self, data: np.ndarray):
        if not isinstance(data, np.ndarray):
            raise TypeError("Parameter data must be a numpy.ndarray")
        if data.dtype not in (np.float32, np.float64):
            raise TypeError("Parameter dtype must be float32 or float64")
        if data.ndim != 1:
            raise TypeError("Parameter data must be a flat vector")
        self.data = data


def _rand_block(scale: float, dist: str, shape, rng: np.random.Generator) -> np.ndarray:
    if dist == "uniform":
        return rng.uniform(-scale, scale, size=shape)
    return rng.normal(0.0, scale, size=shape)


def init_weights(layout: WeightLayout, dist: str = "uniform", forget_bias: float = 1.0, seed: int | None = None) -> np.ndarray:
    if dist not in ("uniform", "normal"):
        raise ValueError("dist must be 'uniform' or 'normal'")
    rng = np.random.default_rng(seed)
    V, H = layout.n_var, layout.n_hid
    sx = 1.0 / np.sqrt(V)
    sh = 1.0 / np.sqrt(H)
    blocks = []
    for g in GATES:
        blocks.append(_rand_block(sx, dist, (H, V), rng))
        blocks.append(_rand_block(sh, dist, (H, H), rng))
        if g == "fg" and forget_bias != 0:
            blocks.append(np.full((H,), float(forget_bias)))
        else:
            blocks.append(_rand_block(sh, dist, (H,), rng))
    blocks.append(_rand_block(sh, dist, (1, H), rng))
    blocks.append(_rand_block(1.0, dist, (1,), rng))
    return layout.flatten(LSTMWeights(*blocks))


class LSTMModel:
    """Single-layer LSTM with a sigmoid scalar head and hand-derived gradients.

    In training mode every forward or gradient call drops ``n_dropout`` hidden
    units at random; in eval mode the masked blocks are scaled by the kept
    fraction instead. The flat weight vector in ``self.w`` is never modified by
    those calls.
    """

    def __init__(self, n_var: int, n_hid: int, dist: str = "uniform", forget_bias: float = 1.0, n_dropout: int | None = None, seed: int | None = None, weights: np.ndarray | None = None) -> None:
        self.layout = WeightLayout(n_var, n_hid)
        if n_dropout is None:
            n_dropout = n_hid // 10
        if n_dropout < 0 or n_dropout >= n_hid:
            raise InvalidDropoutCount(f"n_dropout must be in [0, {n_hid}), got {n_dropout}")
        if weights is None:
            w = init_weights(self.layout, dist=dist, forget_bias=forget_bias, seed=seed)
        else:
            w = np.array(weights, dtype=np.float64, copy=True)
        self.layout.check(w)
        self.w = Parameter(w)
        self.n_dropout = int(n_dropout)
        self.rng = np.random.default_rng(None if seed is None else seed + 1)
        self.normalizer: MinMaxNormalizer | None = None
        self.losses_train: List[float] = []
        self.losses_vali: List[float] = []
        self._training = True

    @property
    def n_var(self) -> int:
        return self.layout.n_var

    @property
    def n_hid(self) -> int:
        return self.layout.n_hid

    def train(self) -> None:
        self._training = True

    def eval(self) -> None:
        self._training = False

    def dropout(self) -> Dropout:
        if self.n_dropout == 0:
            return NoDropouts()
        if self._training:
            return RandomMasking(self.n_dropout, seed=self.rng)
        return self.eval_dropout()

    def eval_dropout(self) -> Dropout:
        if self.n_dropout == 0:
            return NoDropouts()
        return UniformScale(1.0 - self.n_dropout / float(self.n_hid))

    def forward(self, x: Sequence) -> List[np.ndarray]:
        return predict(self.layout, self.w.data, x, self.dropout())

    def __call__(self, x: Sequence) -> List[np.ndarray]:
        return self.forward(x)

    def predict_generic(self, x: Sequence, hidden: List[np.ndarray] | None = None) -> List[np.ndarray]:
        return predict_generic(self.layout, self.w.data, x, self.dropout(), hidden=hidden)

    def gradient(self, x: Sequence, y: Sequence, loss: SeriesLoss, workers: int = 1) -> np.ndarray:
        return predict_with_gradient(self.layout, self.w.data, x, y, loss, self.dropout(), workers=workers)

    def fit_normalizer(self, x: Sequence, y: Sequence | None = None) -> MinMaxNormalizer:
        self.normalizer = MinMaxNormalizer().fit(x, y)
        return self.normalizer

    def predict_raw(self, x: Sequence) -> List[np.ndarray]:
        return self._predict_raw(list(x), self.dropout(), generic=False)

    def _predict_raw(self, x: List[np.ndarray], dropout: Dropout, generic: bool) -> List[np.ndarray]:
        if self.normalizer is not None:
            x = self.normalizer.transform_x(x)
        if generic:
            y = predict_generic(self.layout, self.w.data, x, dropout)
        else:
            y = predict(self.layout, self.w.data, x, dropout)
        if self.normalizer is not None and self.normalizer.y_min is not None:
            y = self.normalizer.inverse_y(y)
        return y

    def record_hidden(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != 2:
            raise ValueError("record_hidden expects one series of shape (n_var, T)")
        xs = [x]
        if self.normalizer is not None:
            xs = self.normalizer.transform_x(xs)
        buf = np.zeros((self.n_hid, x.shape[1]), dtype=np.float64)
        predict_generic(self.layout, self.w.data, xs, self.eval_dropout(), hidden=[buf])
        return buf

    def input_gradient(self, x: np.ndarray, step: float = 1e-20) -> np.ndarray:
        """Jacobian ``J[t, v, s] = d y[t] / d x[v, s]`` in raw units.

        Every input element is perturbed along the imaginary axis and the whole
        set of perturbed series is pushed through the generic forward path in
        one call (complex-step differentiation).
        """
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != 2:
            raise ValueError("input_gradient expects one series of shape (n_var, T)")
        V, T = x.shape
        series = []
        for v in range(V):
            for s in range(T):
                xc = x.astype(np.complex128)
                xc[v, s] += 1j * step
                series.append(xc)
        ys = self._predict_raw(series, self.eval_dropout(), generic=True)
        jac = np.zeros((T, V, T), dtype=np.float64)
        k = 0
        for v in range(V):
            for s in range(T):
                jac[:, v, s] = np.imag(ys[k]) / step
                k += 1
        return jac
