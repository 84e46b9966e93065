from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence
import numpy as np

from .errors import DimensionMismatch
from .losses.mse import SeriesLoss
from .nn.model import LSTMModel
from .optim.adam import AdamW


@dataclass
class TrainConfig:
    epochs: int = 10
    batch_size: int = 16
    lr: float = 1e-2
    weight_decay: float = 0.0
    max_grad_norm: float = 0.0
    patience: int = 0
    seed: int = 0
    workers: int = 1
    verbose: bool = False


def batch_iter(n: int, batch_size: int, rng: np.random.Generator) -> Iterator[np.ndarray]:
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    idx = np.arange(n)
    rng.shuffle(idx)
    for start in range(0, n, batch_size):
        yield idx[start:start + batch_size]


def clip_direction(direction: np.ndarray, max_norm: float) -> float:
    total = float(np.sqrt(np.sum(direction * direction)))
    if max_norm > 0.0 and total > max_norm:
        direction *= max_norm / total
    return total


def evaluate(model: LSTMModel, x: Sequence, y: Sequence, loss: SeriesLoss) -> float:
    if len(x) == 0:
        return 0.0
    was_training = model._training
    model.eval()
    try:
        with np.errstate(all="ignore"):
            return float(loss.forward(y, model(x))) / float(len(x))
    finally:
        if was_training:
            model.train()


def fit(model: LSTMModel, x: Sequence, y: Sequence, loss: SeriesLoss, cfg: TrainConfig | None = None, x_val: Sequence | None = None, y_val: Sequence | None = None, optimizer: AdamW | None = None) -> LSTMModel:
    cfg = cfg or TrainConfig()
    if len(x) != len(y):
        raise DimensionMismatch(f"got {len(x)} series but {len(y)} targets")
    if len(x) == 0:
        raise ValueError("cannot train on an empty batch")
    has_val = x_val is not None and y_val is not None
    if has_val and len(x_val) != len(y_val):
        raise DimensionMismatch(f"got {len(x_val)} validation series but {len(y_val)} targets")
    opt = optimizer or AdamW(model.w, lr=cfg.lr, weight_decay=cfg.weight_decay)
    rng = np.random.default_rng(cfg.seed)
    best = float("inf")
    best_w = model.w.data.copy()
    no_improve = 0
    step = 0
    for epoch in range(1, cfg.epochs + 1):
        model.train()
        grad_norm = 0.0
        for bidx in batch_iter(len(x), cfg.batch_size, rng):
            xb = [x[i] for i in bidx]
            yb = [y[i] for i in bidx]
            direction = model.gradient(xb, yb, loss, workers=cfg.workers)
            grad_norm = clip_direction(direction, cfg.max_grad_norm)
            opt.step(direction)
            step += 1
        tloss = evaluate(model, x, y, loss)
        model.losses_train.append(tloss)
        if has_val:
            vloss = evaluate(model, x_val, y_val, loss)
            model.losses_vali.append(vloss)
        else:
            vloss = tloss
        if vloss < best:
            best = vloss
            best_w = model.w.data.copy()
            no_improve = 0
        else:
            no_improve += 1
        if cfg.verbose:
            print(f"epoch={epoch} step={step} lr={opt.lr:.6f} grad_norm={grad_norm:.6f} train_loss={tloss:.6f} val_loss={vloss:.6f}")
        if cfg.patience > 0 and no_improve >= cfg.patience:
            break
    model.w.data[...] = best_w
    model.train()
    return model
