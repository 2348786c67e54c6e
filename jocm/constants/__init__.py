"""
Physical constants for the ocean column kernels

This module contains the physical constants and thickness-unit conversion
factors used throughout the regridding and shortwave parameterizations.
"""

from jocm.constants.physical_constants import *

__all__ = [
    'OceanConstants',
    'ocean_constants',
]
