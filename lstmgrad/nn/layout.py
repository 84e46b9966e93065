from __future__ import annotations

from dataclasses import dataclass, fields
from typing import List, Tuple
import numpy as np

from ..errors import ShapeMismatch


GATES = ("bi", "ig", "fg", "og")


def n_weights(n_var: int, n_hid: int) -> int:
    return 4 * (n_var * n_hid + n_hid * n_hid + n_hid) + n_hid + 1


@dataclass
class LSTMWeights:
    # block input
    w_bi: np.ndarray
    r_bi: np.ndarray
    b_bi: np.ndarray
    # input gate
    w_ig: np.ndarray
    r_ig: np.ndarray
    b_ig: np.ndarray
    # forget gate
    w_fg: np.ndarray
    r_fg: np.ndarray
    b_fg: np.ndarray
    # output gate
    w_og: np.ndarray
    r_og: np.ndarray
    b_og: np.ndarray
    # scalar output head
    w_proj: np.ndarray
    b_proj: np.ndarray

    def blocks(self) -> List[np.ndarray]:
        return [getattr(self, f.name) for f in fields(self)]

    def gate(self, name: str) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if name not in GATES:
            raise ValueError(f"unknown gate {name!r}")
        return getattr(self, "w_" + name), getattr(self, "r_" + name), getattr(self, "b_" + name)

    def recurrent(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        return self.r_bi, self.r_ig, self.r_fg, self.r_og

    def __iadd__(self, other: "LSTMWeights") -> "LSTMWeights":
        for a, b in zip(self.blocks(), other.blocks()):
            a += b
        return self


class WeightLayout:
    def __init__(self, n_var: int, n_hid: int) -> None:
        if n_var <= 0 or n_hid <= 0:
            raise ValueError("n_var and n_hid must be positive")
        self.n_var = int(n_var)
        self.n_hid = int(n_hid)
        V, H = self.n_var, self.n_hid
        gate = [(H, V), (H, H), (H,)]
        self.shapes: List[Tuple[int, ...]] = gate * 4 + [(1, H), (1,)]
        self.offsets: List[int] = []
        off = 0
        for s in self.shapes:
            self.offsets.append(off)
            off += int(np.prod(s))
        self.size = off

    def __repr__(self) -> str:
        return f"WeightLayout(n_var={self.n_var}, n_hid={self.n_hid})"

    def check(self, w: np.ndarray) -> None:
        if w.ndim != 1:
            raise ShapeMismatch(f"weight vector must be 1-D, got shape {w.shape}")
        if w.shape[0] != self.size:
            raise ShapeMismatch(f"length of weights {w.shape[0]} does not match needed length {self.size}")

    def check_series(self, x) -> None:
        for i, xx in enumerate(x):
            if xx.ndim != 2 or xx.shape[0] != self.n_var:
                raise ShapeMismatch(f"series {i} must have shape ({self.n_var}, T), got {xx.shape}")

    def views(self, w: np.ndarray, writeable: bool = True) -> LSTMWeights:
        self.check(w)
        if not w.flags.c_contiguous:
            raise ValueError("weight vector must be contiguous to be viewed")
        parts = []
        for off, s in zip(self.offsets, self.shapes):
            v = w[off:off + int(np.prod(s))].reshape(s)
            if not writeable:
                v.flags.writeable = False
            parts.append(v)
        return LSTMWeights(*parts)

    def zeros(self, dtype=np.float64) -> LSTMWeights:
        return LSTMWeights(*[np.zeros(s, dtype=dtype) for s in self.shapes])

    def flatten(self, weights: LSTMWeights) -> np.ndarray:
        blocks = weights.blocks()
        for b, s in zip(blocks, self.shapes):
            if b.shape != s:
                raise ShapeMismatch(f"block shape {b.shape} does not match layout shape {s}")
        return np.concatenate([b.reshape(-1) for b in blocks])
