"""
Penetrating shortwave absorption for ocean columns

Multi-band exponential attenuation of the shortwave that penetrates below
the sea surface, with optional pressure-consistent redistribution of the
heating, TKE bookkeeping and redistribution of the shortwave that reaches
the bottom.
"""

from .shortwave_types import (
    OpticsDescriptor,
    AbsorptionPolicy,
    ShortwaveParameters,
    AbsorptionResult,
    PenetratingFlux
)

from .shortwave_absorption import (
    heating_taper,
    transmission,
    absorption_profile_adjustment,
    tke_profile_factor,
    redistribute_bottom_sw,
    absorb_remaining,
    integrate_penetrating_flux,
    absorb_remaining_vectorized,
    integrate_penetrating_flux_vectorized
)

__all__ = [
    # Types
    "OpticsDescriptor",
    "AbsorptionPolicy",
    "ShortwaveParameters",
    "AbsorptionResult",
    "PenetratingFlux",

    # Building blocks
    "heating_taper",
    "transmission",
    "absorption_profile_adjustment",
    "tke_profile_factor",
    "redistribute_bottom_sw",

    # Main interface
    "absorb_remaining",
    "integrate_penetrating_flux",
    "absorb_remaining_vectorized",
    "integrate_penetrating_flux_vectorized"
]
