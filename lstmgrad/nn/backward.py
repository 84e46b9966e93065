from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence
import numpy as np

from ..errors import DimensionMismatch
from ..losses.mse import SeriesLoss
from .dropout import Dropout, mask_rows
from .forward import as_series, gates, scratch_weights, sigmoid
from .layout import GATES, LSTMWeights, WeightLayout


def _targets(x: List[np.ndarray], y_true: Sequence) -> List[np.ndarray]:
    if len(x) != len(y_true):
        raise DimensionMismatch(f"got {len(x)} series but {len(y_true)} targets")
    out = []
    for i, (xx, yy) in enumerate(zip(x, y_true)):
        yy = np.asarray(yy, dtype=np.float64)
        if yy.ndim == 2 and yy.shape[0] == 1:
            yy = yy[0]
        if xx.ndim == 2 and yy.shape != (xx.shape[1],):
            raise DimensionMismatch(f"target {i} must have shape ({xx.shape[1]},), got {yy.shape}")
        out.append(yy)
    return out


def sample_gradient(weights: LSTMWeights, xx: np.ndarray, yy: np.ndarray, loss: SeriesLoss, acc: LSTMWeights) -> np.ndarray:
    """Accumulate d(loss)/d(weights) of one series into ``acc``; returns the predictions."""
    H = weights.r_bi.shape[0]
    T = xx.shape[1]
    xx = xx.astype(np.float64, copy=False)
    hs = np.zeros((T + 1, H), dtype=np.float64)
    cs = np.zeros((T + 1, H), dtype=np.float64)
    bi_s = np.zeros((T, H), dtype=np.float64)
    ig_s = np.zeros((T, H), dtype=np.float64)
    fg_s = np.zeros((T, H), dtype=np.float64)
    og_s = np.zeros((T, H), dtype=np.float64)
    ypred = np.empty((T,), dtype=np.float64)
    wp = weights.w_proj[0]
    bp = weights.b_proj[0]
    for t in range(T):
        bi, ig, fg, og = gates(weights, xx[:, t], hs[t])
        cs[t + 1] = bi * ig + fg * cs[t]
        hs[t + 1] = np.tanh(cs[t + 1]) * og
        bi_s[t], ig_s[t], fg_s[t], og_s[t] = bi, ig, fg, og
        ypred[t] = sigmoid(wp @ hs[t + 1] + bp)

    R = weights.recurrent()
    acc_gates = [acc.gate(g) for g in GATES]
    d_next = [np.zeros((H,), dtype=np.float64) for _ in GATES]
    dc = np.zeros((H,), dtype=np.float64)
    fg_next = np.zeros((H,), dtype=np.float64)
    for t in range(T - 1, -1, -1):
        dy = loss.deriv(yy, ypred, t)
        dy2 = loss.deriv_activation(ypred[t], dy)
        acc.w_proj[0] += dy2 * hs[t + 1]
        acc.b_proj[0] += dy2

        # gate derivatives of t+1 reach h[t] through the recurrent weights
        dh = wp * dy2
        for r, d in zip(R, d_next):
            dh = dh + r.T @ d
        tanh_c = np.tanh(cs[t + 1])
        dc = dh * og_s[t] * (1.0 - tanh_c * tanh_c) + dc * fg_next
        d_next = [
            dc * ig_s[t] * (1.0 - bi_s[t] * bi_s[t]),
            dc * bi_s[t] * ig_s[t] * (1.0 - ig_s[t]),
            dc * cs[t] * fg_s[t] * (1.0 - fg_s[t]),
            dh * tanh_c * og_s[t] * (1.0 - og_s[t]),
        ]
        fg_next = fg_s[t]

        x_t = xx[:, t]
        h_prev = hs[t]
        for (dw, dr, db), d in zip(acc_gates, d_next):
            dw += np.outer(d, x_t)
            dr += np.outer(d, h_prev)
            db += d
    return ypred


def predict_with_gradient(layout: WeightLayout, w: np.ndarray, x: Sequence, y_true: Sequence, loss: SeriesLoss, dropout: Dropout | None = None, workers: int = 1, reduce: bool = True) -> np.ndarray:
    """Negative gradient of ``loss`` with respect to the flat weight vector.

    One dropout draw is made per call and shared by the forward and reverse
    sweeps of every series. Each series writes into its own accumulator, so
    with ``workers > 1`` the series are processed on a thread pool without
    locking; accumulators are summed in series order after the pool joins.
    With ``reduce=False`` the per-series descent directions are returned as
    rows of an ``(N, layout.size)`` array instead of their sum.
    """
    if workers < 1:
        raise ValueError("workers must be positive")
    x = as_series(x)
    y_true = _targets(x, y_true)
    weights, idx = scratch_weights(layout, w, x, dropout, np.float64)
    n = len(x)
    if n == 0:
        if reduce:
            return np.zeros((layout.size,), dtype=np.float64)
        return np.zeros((0, layout.size), dtype=np.float64)

    accs = [layout.zeros() for _ in range(n)]

    def run(s: int) -> None:
        sample_gradient(weights, x[s], y_true[s], loss, accs[s])

    if workers > 1 and n > 1:
        with ThreadPoolExecutor(max_workers=workers) as ex:
            list(ex.map(run, range(n)))
    else:
        for s in range(n):
            run(s)

    if not reduce:
        rows = []
        for acc in accs:
            mask_rows(acc, idx)
            rows.append(-layout.flatten(acc))
        return np.stack(rows, axis=0)
    total = layout.zeros()
    for acc in accs:
        total += acc
    mask_rows(total, idx)
    return -layout.flatten(total)
