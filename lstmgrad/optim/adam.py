from __future__ import annotations

from typing import Tuple
import numpy as np

from ..nn.model import Parameter


class AdamW:
    """Adam on one flat weight vector.

    ``step`` takes the descent direction produced by the backward engine (the
    negated gradient), after any clipping the caller applies to it.
    """

    def __init__(self, param: Parameter, lr: float = 1e-3, betas: Tuple[float, float] = (0.9, 0.999), eps: float = 1e-8, weight_decay: float = 0.0) -> None:
        if lr <= 0:
            raise ValueError("lr must be positive")
        if not (0 < betas[0] < 1 and 0 < betas[1] < 1):
            raise ValueError("betas must be in (0,1)")
        if eps <= 0:
            raise ValueError("eps must be positive")
        if weight_decay < 0:
            raise ValueError("weight_decay must be non-negative")
        self.param = param
        self.lr = float(lr)
        self.b1 = float(betas[0])
        self.b2 = float(betas[1])
        self.eps = float(eps)
        self.wd = float(weight_decay)
        self.t = 0
        self.m = np.zeros_like(param.data)
        self.v = np.zeros_like(param.data)

    def step(self, direction: np.ndarray) -> None:
        p = self.param
        if direction.shape != p.data.shape:
            raise ValueError("direction shape must match the weight vector")
        g = -direction
        if self.wd != 0.0:
            g = g + self.wd * p.data
        self.t += 1
        self.m = self.b1 * self.m + (1.0 - self.b1) * g
        self.v = self.b2 * self.v + (1.0 - self.b2) * (g * g)
        mhat = self.m / (1.0 - self.b1 ** self.t)
        vhat = self.v / (1.0 - self.b2 ** self.t)
        p.data -= self.lr * mhat / (np.sqrt(vhat) + self.eps)

    def state_dict(self):
        return {
            "t": self.t,
            "lr": self.lr,
            "b1": self.b1,
            "b2": self.b2,
            "eps": self.eps,
            "wd": self.wd,
            "m": self.m.copy(),
            "v": self.v.copy(),
        }

    def load_state_dict(self, state) -> None:
        self.t = int(state.get("t", 0))
        self.lr = float(state.get("lr", self.lr))
        self.b1 = float(state.get("b1", self.b1))
        self.b2 = float(state.get("b2", self.b2))
        self.eps = float(state.get("eps", self.eps))
        self.wd = float(state.get("wd", self.wd))
        dt = self.param.data.dtype
        self.m = state["m"].astype(dt, copy=True) if "m" in state else np.zeros_like(self.param.data)
        self.v = state["v"].astype(dt, copy=True) if "v" in state else np.zeros_like(self.param.data)
