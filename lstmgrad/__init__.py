from .nn.model import LSTMModel
from .nn.layout import WeightLayout
from .nn.dropout import NoDropouts, RandomMasking, UniformScale
from .nn.forward import predict, predict_generic
from .nn.backward import predict_with_gradient
from .losses.mse import MSELoss
from .optim.adam import AdamW
from .errors import DimensionMismatch, InvalidDropoutCount, ShapeMismatch
from .training import TrainConfig, fit

__all__ = [
    "LSTMModel",
    "WeightLayout",
    "NoDropouts",
    "RandomMasking",
    "UniformScale",
    "predict",
    "predict_generic",
    "predict_with_gradient",
    "MSELoss",
    "AdamW",
    "DimensionMismatch",
    "InvalidDropoutCount",
    "ShapeMismatch",
    "TrainConfig",
    "fit",
]
