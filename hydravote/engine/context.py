"""Immutable, request-scoped engine context."""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from hydravote.benchmarks.models import DynamicWeightSet
from hydravote.config import Settings
from hydravote.exceptions import ConfigurationError
from hydravote.providers.factory import create_adapter
from hydravote.providers.models import Capability, ProviderAdapter, ProviderConfig

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ProviderConfig], ProviderAdapter]
DynamicWeights = Union[DynamicWeightSet, Mapping[str, float]]


class ProviderBinding(BaseModel):
    """A provider configuration paired with its constructed adapter."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    config: ProviderConfig
    adapter: Any


class EngineContext(BaseModel):
    """Everything a pipeline run needs, assembled once and never mutated."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    bindings: Tuple[ProviderBinding, ...] = ()
    tiebreaker: Optional[ProviderBinding] = Field(
        None, description="Provider held out of the stages to settle close votes"
    )
    dynamic_weights: Optional[Dict[str, float]] = Field(
        None, description="Calibrated multipliers by provider id; None means uncalibrated"
    )

    def for_stage(self, capability: Capability) -> List[ProviderBinding]:
        """Get the providers participating in a stage, in configuration order."""
        return [b for b in self.bindings if b.config.capability == capability]

    @property
    def provider_ids(self) -> List[str]:
        return [b.config.id for b in self.bindings]


def build_context(
    provider_configs: Sequence[ProviderConfig],
    dynamic_weights: Optional[DynamicWeights] = None,
    adapter_factory: Optional[AdapterFactory] = None,
    settings: Optional[Settings] = None,
    strict: bool = False,
    tiebreaker_id: Optional[str] = None,
) -> EngineContext:
    """Build an engine context from provider configurations.

    Inactive providers are left out. A provider whose adapter cannot be built
    is skipped with a warning unless ``strict`` is set.

    Args:
        provider_configs: Provider configurations
        dynamic_weights: Calibrated multipliers, as a DynamicWeightSet or by provider id
        adapter_factory: Builds an adapter from a config. If None, uses create_adapter.
        settings: Settings passed to the default adapter factory
        strict: Raise on the first provider that cannot be built
        tiebreaker_id: Provider to hold out of the stages as the tiebreaker

    Returns:
        Engine context

    Raises:
        ConfigurationError: If no stage provider could be built, or in strict
            mode when any provider could not be built
    """
    if adapter_factory is None:
        def adapter_factory(config: ProviderConfig) -> ProviderAdapter:
            return create_adapter(config, settings)

    bindings = []
    tiebreaker = None
    for config in provider_configs:
        if not config.active:
            continue
        try:
            adapter = adapter_factory(config)
        except ConfigurationError as e:
            if strict:
                raise
            logger.warning(f"Skipping provider {config.id}: {e}")
            continue

        binding = ProviderBinding(config=config, adapter=adapter)
        if config.id == tiebreaker_id:
            tiebreaker = binding
        else:
            bindings.append(binding)

    # A lone tiebreaker votes in its own stage instead
    if not bindings and tiebreaker is not None:
        bindings.append(tiebreaker)
        tiebreaker = None

    if not bindings:
        raise ConfigurationError("No AI providers available")

    multipliers = None
    if isinstance(dynamic_weights, DynamicWeightSet):
        multipliers = dict(dynamic_weights.multipliers)
    elif dynamic_weights is not None:
        multipliers = dict(dynamic_weights)

    return EngineContext(
        bindings=tuple(bindings), tiebreaker=tiebreaker, dynamic_weights=multipliers
    )
