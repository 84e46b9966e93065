from __future__ import annotations


class LSTMError(ValueError):
    pass


class ShapeMismatch(LSTMError):
    pass


class DimensionMismatch(LSTMError):
    pass


class InvalidDropoutCount(LSTMError):
    pass
