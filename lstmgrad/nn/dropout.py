from __future__ import annotations

import numpy as np

from ..errors import InvalidDropoutCount
from .layout import LSTMWeights


_NO_INDICES = np.zeros((0,), dtype=np.int64)


class Dropout:
    """Hidden-unit dropout on the recurrent and output-projection weights.

    ``mode`` selects the behaviour:

    * ``"none"``: weights are left untouched.
    * ``"random"``: ``n_drop`` distinct hidden units are drawn per call; their
      rows in the four recurrent matrices and their columns in the projection
      weight are zeroed.
    * ``"scale"``: the same blocks are multiplied by ``factor``, which
      approximates the expected activation of a network trained with random
      masking.

    ``apply`` mutates the views it is given and returns the dropped indices so
    the backward pass can zero the matching gradient entries.
    """

    def __init__(self, mode: str = "none", n_drop: int = 0, factor: float = 1.0, seed: int | np.random.Generator | None = None) -> None:
        if mode not in ("none", "random", "scale"):
            raise ValueError("invalid dropout mode")
        if mode == "random" and n_drop < 0:
            raise InvalidDropoutCount("n_drop must be non-negative")
        self.mode = mode
        self.n_drop = int(n_drop) if mode == "random" else 0
        self.factor = float(factor)
        self.rng = np.random.default_rng(seed)

    def __repr__(self) -> str:
        if self.mode == "random":
            return f"RandomMasking({self.n_drop})"
        if self.mode == "scale":
            return f"UniformScale({self.factor})"
        return "NoDropouts()"

    def check(self, n_hid: int) -> None:
        if self.mode == "random" and self.n_drop >= n_hid:
            raise InvalidDropoutCount(f"cannot drop {self.n_drop} of {n_hid} hidden units")

    def draw(self, n_hid: int) -> np.ndarray:
        self.check(n_hid)
        if self.mode != "random" or self.n_drop == 0:
            return _NO_INDICES
        return np.sort(self.rng.choice(n_hid, size=self.n_drop, replace=False))

    def apply(self, weights: LSTMWeights) -> np.ndarray:
        n_hid = weights.r_bi.shape[0]
        if self.mode == "none":
            self.check(n_hid)
            return _NO_INDICES
        if self.mode == "scale":
            for r in weights.recurrent():
                r *= self.factor
            weights.w_proj *= self.factor
            return _NO_INDICES
        idx = self.draw(n_hid)
        mask_rows(weights, idx)
        return idx


def mask_rows(weights: LSTMWeights, idx: np.ndarray) -> None:
    if idx.size == 0:
        return
    for r in weights.recurrent():
        r[idx, :] = 0.0
    weights.w_proj[:, idx] = 0.0


def NoDropouts() -> Dropout:
    return Dropout("none")


def RandomMasking(n_drop: int, seed: int | np.random.Generator | None = None) -> Dropout:
    return Dropout("random", n_drop=n_drop, seed=seed)


def UniformScale(factor: float) -> Dropout:
    return Dropout("scale", factor=factor)
