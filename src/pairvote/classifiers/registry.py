"""Gateway registry: maps configured backend names to factories."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Sequence
from typing import Any

from ..config import Config, ConfigError
from ..features import to_matrix
from ..store import ModelStore
from ..types import FeatureVector, ModelDescriptor
from .base import ClassifierError, ClassifierGateway, check_margins
from .estimator import SklearnGateway
from .svm_light import SvmLightGateway

GatewayFactory = Callable[[Config, ModelStore], ClassifierGateway]


class CallableGateway:
    """Adapts a plain ``(model, matrix) -> margins`` function to the gateway protocol."""

    def __init__(
        self,
        func: Callable[[ModelDescriptor, Any], Sequence[float]],
        name: str = "callable",
    ) -> None:
        self.name = name
        self._func = func

    def classify(
        self,
        model: ModelDescriptor,
        vectors: Sequence[FeatureVector],
        n_features: int,
    ) -> list[float]:
        matrix = to_matrix(vectors, n_features)
        try:
            margins = self._func(model, matrix)
        except ClassifierError:
            raise
        except Exception as exc:
            raise ClassifierError(f"Model '{model.name}' failed to classify: {exc}") from exc
        return check_margins(model, margins, len(vectors))


class GatewayRegistry:
    """Registry of gateway factories keyed by configuration name."""

    def __init__(self) -> None:
        self._factories: OrderedDict[str, GatewayFactory] = OrderedDict()

    def register(self, name: str, factory: GatewayFactory) -> None:
        if name in self._factories:
            raise ValueError(f"Gateway '{name}' is already registered.")
        self._factories[name] = factory

    def create(self, name: str, config: Config, store: ModelStore) -> ClassifierGateway:
        try:
            factory = self._factories[name]
        except KeyError as exc:
            known = ", ".join(self._factories) or "none"
            raise ConfigError(f"Unknown gateway '{name}' (known: {known}).") from exc
        return factory(config, store)

    def names(self) -> list[str]:
        return list(self._factories)


def _sklearn_factory(_config: Config, store: ModelStore) -> ClassifierGateway:
    return SklearnGateway(store)


def _svm_light_factory(config: Config, _store: ModelStore) -> ClassifierGateway:
    return SvmLightGateway(
        config.svm_light.classify_binary,
        timeout=config.svm_light.timeout,
    )


DEFAULT_REGISTRY = GatewayRegistry()
DEFAULT_REGISTRY.register("sklearn", _sklearn_factory)
DEFAULT_REGISTRY.register("svm_light", _svm_light_factory)


def build_gateway(config: Config, store: ModelStore) -> ClassifierGateway:
    """Create the gateway selected by ``config.gateway``."""

    return DEFAULT_REGISTRY.create(config.gateway, config, store)


__all__ = ["CallableGateway", "GatewayRegistry", "DEFAULT_REGISTRY", "build_gateway"]
