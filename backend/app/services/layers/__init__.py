"""
Numbered transformation layers.

Importing this package registers every layer with the LayerRegistry:

    1 config       tsconfig / next.config / package.json modernization
    2 patterns     entity, import, console, var and emoji cleanup
    3 components   keys, hook imports, accessibility, design-system rules
    4 hydration    SSR guards for browser-only APIs (paid tiers)
    5 app_router   'use client', import repair, page metadata
    6 validation   syntax / corruption gate and quality score
"""

from .base import BaseLayer, LayerRegistry, LayerRun
from .config_layer import ConfigLayer
from .pattern_layer import PatternLayer
from .component_layer import ComponentLayer
from .hydration_layer import HydrationLayer
from .app_router_layer import AppRouterLayer
from .validation_layer import ValidationLayer

__all__ = [
    "BaseLayer",
    "LayerRegistry",
    "LayerRun",
    "ConfigLayer",
    "PatternLayer",
    "ComponentLayer",
    "HydrationLayer",
    "AppRouterLayer",
    "ValidationLayer",
]
