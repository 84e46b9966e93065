from .layout import LSTMWeights, WeightLayout, n_weights
from .dropout import Dropout, NoDropouts, RandomMasking, UniformScale
from .forward import predict, predict_generic
from .backward import predict_with_gradient
from .model import LSTMModel, Parameter

__all__ = [
    "LSTMWeights",
    "WeightLayout",
    "n_weights",
    "Dropout",
    "NoDropouts",
    "RandomMasking",
    "UniformScale",
    "predict",
    "predict_generic",
    "predict_with_gradient",
    "LSTMModel",
    "Parameter",
]
