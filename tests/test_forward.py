from __future__ import annotations

import math

import numpy as np
import pytest

from lstmgrad.errors import ShapeMismatch
from lstmgrad.nn.dropout import NoDropouts, RandomMasking, UniformScale
from lstmgrad.nn.forward import predict, predict_generic
from lstmgrad.nn.layout import WeightLayout


def _sigm(z: float) -> float:
    return 1.0 / (1.0 + math.exp(-z))


def reference_predict(layout: WeightLayout, w: np.ndarray, xx: np.ndarray):
    v = layout.views(w.copy())
    H, V = layout.n_hid, layout.n_var
    h = [0.0] * H
    c = [0.0] * H
    ys, cs = [], []
    for t in range(xx.shape[1]):
        x = [float(xx[k, t]) for k in range(V)]

        def pre(W, R, b, j):
            return sum(W[j, k] * x[k] for k in range(V)) + sum(R[j, k] * h[k] for k in range(H)) + b[j]

        bi = [math.tanh(pre(v.w_bi, v.r_bi, v.b_bi, j)) for j in range(H)]
        ig = [_sigm(pre(v.w_ig, v.r_ig, v.b_ig, j)) for j in range(H)]
        fg = [_sigm(pre(v.w_fg, v.r_fg, v.b_fg, j)) for j in range(H)]
        og = [_sigm(pre(v.w_og, v.r_og, v.b_og, j)) for j in range(H)]
        c = [bi[j] * ig[j] + fg[j] * c[j] for j in range(H)]
        h = [math.tanh(c[j]) * og[j] for j in range(H)]
        ys.append(_sigm(sum(v.w_proj[0, j] * h[j] for j in range(H)) + v.b_proj[0]))
        cs.append(list(c))
    return np.array(ys), np.array(cs).T


def _setup(V=2, H=3, seed=0, lengths=(4, 7, 1)):
    rng = np.random.default_rng(seed)
    layout = WeightLayout(V, H)
    w = rng.standard_normal(layout.size) * 0.5
    x = [rng.standard_normal((V, T)) for T in lengths]
    return layout, w, x


def test_fast_and_generic_paths_agree():
    layout, w, x = _setup()
    yf = predict(layout, w, x, NoDropouts())
    yg = predict_generic(layout, w, x, NoDropouts())
    assert len(yf) == len(yg) == len(x)
    for a, b, xx in zip(yf, yg, x):
        assert a.shape == (xx.shape[1],)
        assert b.dtype == np.float64
        np.testing.assert_array_equal(a, b)


def test_paths_agree_with_fixed_mask():
    layout, w, x = _setup(V=3, H=6, seed=4)
    yf = predict(layout, w, x, RandomMasking(2, seed=9))
    yg = predict_generic(layout, w, x, RandomMasking(2, seed=9))
    for a, b in zip(yf, yg):
        np.testing.assert_array_equal(a, b)


def test_paths_agree_bitwise_with_scaling_and_long_series():
    layout, w, x = _setup(V=4, H=9, seed=6, lengths=(40, 17))
    yf = predict(layout, w, x, UniformScale(0.7))
    yg = predict_generic(layout, w, x, UniformScale(0.7))
    for a, b in zip(yf, yg):
        np.testing.assert_array_equal(a, b)


def test_matches_scalar_reference():
    layout, w, x = _setup(seed=5)
    yf = predict(layout, w, x)
    for xx, y in zip(x, yf):
        ref, _ = reference_predict(layout, w, xx)
        np.testing.assert_allclose(y, ref, rtol=0, atol=1e-12)


def test_repeated_calls_are_bit_identical():
    layout, w, x = _setup(seed=1)
    a = predict(layout, w, x, NoDropouts())
    b = predict(layout, w, x, NoDropouts())
    c = predict_generic(layout, w, x)
    d = predict_generic(layout, w, x)
    for p, q in zip(a, b):
        np.testing.assert_array_equal(p, q)
    for p, q in zip(c, d):
        np.testing.assert_array_equal(p, q)


def test_bias_only_weights_closed_form():
    layout = WeightLayout(1, 2)
    w = np.zeros((35,))
    v = layout.views(w)
    v.b_bi[:] = [0.5, -0.3]
    v.b_ig[:] = [0.1, 0.4]
    v.b_fg[:] = [1.0, 1.0]
    v.b_og[:] = [0.0, 0.2]
    v.w_proj[0] = [0.7, -1.2]
    v.b_proj[0] = 0.1
    x = [np.array([[0.1, 0.2, 0.3, 0.4]])]
    y = predict(layout, w, x)[0]
    # without input or recurrent weights the gates are constant
    bi = np.tanh([0.5, -0.3])
    ig = 1.0 / (1.0 + np.exp(-np.array([0.1, 0.4])))
    fg = 1.0 / (1.0 + np.exp(-1.0))
    og = 1.0 / (1.0 + np.exp(-np.array([0.0, 0.2])))
    expected = []
    for t in range(1, 5):
        c = bi * ig * sum(fg ** k for k in range(t))
        h = np.tanh(c) * og
        expected.append(1.0 / (1.0 + np.exp(-(0.7 * h[0] - 1.2 * h[1] + 0.1))))
    np.testing.assert_allclose(y, expected, rtol=0, atol=1e-12)


def test_zero_weights_predict_one_half():
    layout = WeightLayout(1, 2)
    y = predict(layout, np.zeros((35,)), [np.array([[0.1, 0.2, 0.3, 0.4]])])[0]
    np.testing.assert_array_equal(y, np.full((4,), 0.5))


def test_hidden_recording_writes_cell_state():
    layout, w, x = _setup(seed=2, lengths=(5, 3))
    bufs = [np.zeros((layout.n_hid, xx.shape[1])) for xx in x]
    predict_generic(layout, w, x, hidden=bufs)
    for xx, buf in zip(x, bufs):
        _, cs = reference_predict(layout, w, xx)
        np.testing.assert_allclose(buf, cs, rtol=0, atol=1e-12)


def test_hidden_buffer_shape_checked():
    layout, w, x = _setup(lengths=(5,))
    with pytest.raises(ShapeMismatch):
        predict_generic(layout, w, x, hidden=[np.zeros((layout.n_hid, 4))])
    with pytest.raises(ShapeMismatch):
        predict_generic(layout, w, x, hidden=[])


def test_generic_path_follows_input_dtype():
    layout, w, x = _setup(lengths=(6,))
    xc = [x[0].astype(np.complex128)]
    xc[0][0, 2] += 1e-20j
    yc = predict_generic(layout, w, xc)[0]
    assert yc.dtype == np.complex128
    np.testing.assert_allclose(yc.real, predict(layout, w, x)[0], rtol=0, atol=1e-9)
    # nothing before the perturbed step can see it
    assert not np.any(yc.imag[:2])
    assert np.any(yc.imag[2:])
    y32 = predict_generic(layout, w.astype(np.float32), [xx.astype(np.float32) for xx in x])[0]
    assert y32.dtype == np.float32


def test_complex_series_after_real_keeps_imaginary_part():
    layout, w, x = _setup(lengths=(3, 4))
    xc = x[1].astype(np.complex128)
    xc[0, 0] += 1e-20j
    y = predict_generic(layout, w, [x[0], xc])
    assert y[0].dtype == y[1].dtype == np.complex128
    assert not np.any(y[0].imag)
    assert np.all(y[1].imag != 0)
    np.testing.assert_allclose(y[1].real, predict(layout, w, [x[1]])[0], rtol=0, atol=1e-12)


def test_feature_count_checked():
    layout, w, _ = _setup(V=2)
    with pytest.raises(ShapeMismatch):
        predict(layout, w, [np.zeros((3, 4))])
    with pytest.raises(ShapeMismatch):
        predict_generic(layout, w, [np.zeros((4,))])
    with pytest.raises(ShapeMismatch):
        predict(layout, w[:-1], [np.zeros((2, 4))])


def test_empty_batch():
    layout, w, _ = _setup()
    assert predict(layout, w, []) == []
    assert predict_generic(layout, w, []) == []
