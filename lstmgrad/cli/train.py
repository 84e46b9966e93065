from __future__ import annotations

import argparse
from typing import List, Tuple
import numpy as np

from ..losses.mse import MSELoss
from ..nn.model import LSTMModel
from ..training import TrainConfig, fit


def make_sine_dataset(n_series: int, seq_len: int, seed: int = 42) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    rng = np.random.default_rng(seed)
    X: List[np.ndarray] = []
    Y: List[np.ndarray] = []
    for _ in range(n_series):
        T = int(rng.integers(max(2, seq_len // 2), seq_len + 1))
        w = rng.uniform(0.5, 1.5)
        phi = rng.uniform(0, 2 * np.pi)
        t = np.arange(T + 1, dtype=np.float64) / seq_len
        s = np.sin(w * 2 * np.pi * t + phi)
        s += 0.05 * rng.standard_normal(size=s.shape)
        X.append(s[None, :T])
        Y.append(s[1:])
    return X, Y


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--n-series", type=int, default=256)
    ap.add_argument("--val-series", type=int, default=64)
    ap.add_argument("--seq-len", type=int, default=24)
    ap.add_argument("--hidden", type=int, default=16)
    ap.add_argument("--n-dropout", type=int, default=-1)
    ap.add_argument("--dist", type=str, default="uniform", choices=["uniform", "normal"])
    ap.add_argument("--forget-bias", type=float, default=1.0)
    ap.add_argument("--epochs", type=int, default=10)
    ap.add_argument("--batch-size", type=int, default=32)
    ap.add_argument("--lr", type=float, default=1e-2)
    ap.add_argument("--wd", type=float, default=0.0)
    ap.add_argument("--max-grad-norm", type=float, default=5.0)
    ap.add_argument("--patience", type=int, default=5)
    ap.add_argument("--workers", type=int, default=1)
    ap.add_argument("--seed", type=int, default=123)
    args = ap.parse_args()

    Xtr, Ytr = make_sine_dataset(args.n_series, args.seq_len, seed=args.seed)
    Xva, Yva = make_sine_dataset(args.val_series, args.seq_len, seed=args.seed + 1)

    model = LSTMModel(
        1,
        args.hidden,
        dist=args.dist,
        forget_bias=args.forget_bias,
        n_dropout=None if args.n_dropout < 0 else args.n_dropout,
        seed=args.seed,
    )
    norm = model.fit_normalizer(Xtr, Ytr)
    xtr, ytr = norm.transform_x(Xtr), norm.transform_y(Ytr)
    xva, yva = norm.transform_x(Xva), norm.transform_y(Yva)

    cfg = TrainConfig(
        epochs=args.epochs,
        batch_size=args.batch_size,
        lr=args.lr,
        weight_decay=args.wd,
        max_grad_norm=args.max_grad_norm,
        patience=args.patience,
        seed=args.seed,
        workers=args.workers,
        verbose=True,
    )
    fit(model, xtr, ytr, MSELoss(), cfg, x_val=xva, y_val=yva)

    model.eval()
    n = min(5, len(Xva))
    preds = model.predict_raw(Xva[:n])
    for i in range(n):
        print(f"pred={preds[i][-1]:+.4f} target={Yva[i][-1]:+.4f}")


if __name__ == "__main__":
    main()
