"""Classifier gateway implementations and infrastructure."""

from .base import ClassifierError, ClassifierGateway
from .estimator import SklearnGateway
from .registry import CallableGateway, GatewayRegistry, build_gateway
from .svm_light import SvmLightGateway

__all__ = [
    "CallableGateway",
    "ClassifierError",
    "ClassifierGateway",
    "GatewayRegistry",
    "SklearnGateway",
    "SvmLightGateway",
    "build_gateway",
]
