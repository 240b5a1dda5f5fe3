"""Semantic Kernel plugins and external collaborators for damage analysis."""

from .damage_analyzer import DamageAnalyzerPlugin
from .detector import DetectorClient, SeedBox

__all__ = [
    'DamageAnalyzerPlugin',
    'DetectorClient',
    'SeedBox'
]
