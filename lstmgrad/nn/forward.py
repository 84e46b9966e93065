from __future__ import annotations

from typing import List, Sequence, Tuple
import numpy as np

from ..errors import ShapeMismatch
from .dropout import Dropout, NoDropouts
from .layout import LSTMWeights, WeightLayout


def sigmoid(x):
    # tanh form keeps the logistic analytic for complex arguments and never overflows
    return 0.5 * (1.0 + np.tanh(0.5 * x))


def as_series(x: Sequence) -> List[np.ndarray]:
    return [np.asarray(xx) for xx in x]


def scratch_weights(layout: WeightLayout, w: np.ndarray, x: List[np.ndarray], dropout: Dropout | None, dtype) -> Tuple[LSTMWeights, np.ndarray]:
    w = np.asarray(w)
    layout.check(w)
    layout.check_series(x)
    dropout = dropout or NoDropouts()
    dropout.check(layout.n_hid)
    scratch = np.array(w, dtype=dtype, copy=True)
    weights = layout.views(scratch)
    idx = dropout.apply(weights)
    return weights, idx


def gates(weights: LSTMWeights, x_t: np.ndarray, h_prev: np.ndarray):
    bi = np.tanh(weights.w_bi @ x_t + weights.r_bi @ h_prev + weights.b_bi)
    ig = sigmoid(weights.w_ig @ x_t + weights.r_ig @ h_prev + weights.b_ig)
    fg = sigmoid(weights.w_fg @ x_t + weights.r_fg @ h_prev + weights.b_fg)
    og = sigmoid(weights.w_og @ x_t + weights.r_og @ h_prev + weights.b_og)
    return bi, ig, fg, og


def predict(layout: WeightLayout, w: np.ndarray, x: Sequence, dropout: Dropout | None = None) -> List[np.ndarray]:
    """Float64 forward pass.

    Gate pre-activations are the same per-gate products ``predict_generic``
    computes, so both paths return bit-identical float64 results. The cell and
    hidden states are updated in place in preallocated buffers.
    """
    x = as_series(x)
    weights, _ = scratch_weights(layout, w, x, dropout, np.float64)
    H = layout.n_hid
    wp = weights.w_proj[0]
    bp = weights.b_proj[0]
    ypred: List[np.ndarray] = []
    for xx in x:
        xx = xx.astype(np.float64, copy=False)
        T = xx.shape[1]
        y = np.empty((T,), dtype=np.float64)
        h = np.zeros((H,), dtype=np.float64)
        c = np.zeros((H,), dtype=np.float64)
        tmp = np.empty((H,), dtype=np.float64)
        for t in range(T):
            bi, ig, fg, og = gates(weights, xx[:, t], h)
            np.multiply(bi, ig, out=tmp)
            np.multiply(fg, c, out=c)
            np.add(tmp, c, out=c)
            np.tanh(c, out=h)
            np.multiply(h, og, out=h)
            y[t] = sigmoid(wp @ h + bp)
        ypred.append(y)
    return ypred


def predict_generic(layout: WeightLayout, w: np.ndarray, x: Sequence, dropout: Dropout | None = None, hidden: List[np.ndarray] | None = None) -> List[np.ndarray]:
    x = as_series(x)
    w = np.asarray(w)
    # one element type for the whole batch, wide enough for every series
    dtype = np.result_type(*(xx.dtype for xx in x), w.dtype, np.float32)
    if hidden is not None:
        if len(hidden) != len(x):
            raise ShapeMismatch("need one hidden-state buffer per series")
        for hb, xx in zip(hidden, x):
            if hb.shape != (layout.n_hid, xx.shape[1]):
                raise ShapeMismatch(f"hidden-state buffer must have shape ({layout.n_hid}, {xx.shape[1]}), got {hb.shape}")
    weights, _ = scratch_weights(layout, w, x, dropout, dtype)
    H = layout.n_hid
    wp = weights.w_proj[0]
    bp = weights.b_proj[0]
    ypred: List[np.ndarray] = []
    for s, xx in enumerate(x):
        T = xx.shape[1]
        y = np.zeros((T,), dtype=dtype)
        h = np.zeros((H,), dtype=dtype)
        c = np.zeros((H,), dtype=dtype)
        for t in range(T):
            bi, ig, fg, og = gates(weights, xx[:, t], h)
            c = bi * ig + fg * c
            h = np.tanh(c) * og
            if hidden is not None:
                hidden[s][:, t] = c.real if np.iscomplexobj(c) and not np.iscomplexobj(hidden[s]) else c
            y[t] = sigmoid(wp @ h + bp)
        ypred.append(y)
    return ypred
