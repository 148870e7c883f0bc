"""
Registry module: Provider selection and model presets.

This module contains:
- models.py: model-name -> provider target resolution and the preset catalog

Public API:
- ProviderKind: Enum for upstream providers
- AuthHeaderScheme: Enum for credential header styles
- RequestShape: Enum for request body families
- ProviderTarget: Frozen resolved target
- ModelPreset: Advertised model entry
- resolve_target: Provider Selector (pure function)
- list_model_presets: Preset catalog accessor
"""

from badgescan.registry.models import (
    AuthHeaderScheme,
    ModelPreset,
    ProviderKind,
    ProviderTarget,
    RequestShape,
    is_openai_model,
    list_model_presets,
    resolve_target,
)

__all__ = [
    "ProviderKind",
    "AuthHeaderScheme",
    "RequestShape",
    "ProviderTarget",
    "ModelPreset",
    "is_openai_model",
    "list_model_presets",
    "resolve_target",
]
