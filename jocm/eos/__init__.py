"""
Seawater equations of state

Density and its temperature/salinity derivatives, used by the adaptive
vertical coordinate to measure neutral density curvature.
"""

from .equation_of_state import LinearEOS, WrightEOS

__all__ = [
    "LinearEOS",
    "WrightEOS",
]
