"""
Type definitions and parameters for penetrating shortwave absorption

Irradiance is carried as a heating in "K H" units: the temperature change
times the thickness it would be spread over. Opacity is in 1/H, so the
optical depth of a layer is thickness * opacity.

Date: 2025-03-02
"""

import jax.numpy as jnp
from typing import NamedTuple, Optional
import tree_math

from jocm.constants import ocean_constants


class OpticsDescriptor(NamedTuple):
    """Optical properties of a column and the shortwave entering it"""

    opacity_band: jnp.ndarray          # Opacity in each band (1/H) [nbands, nk]
    sw_pen_band: jnp.ndarray           # Penetrating shortwave at the surface (K H) [nbands]
    min_wavelength_band: Optional[jnp.ndarray] = None  # Band lower wavelength (nm) [nbands]
    max_wavelength_band: Optional[jnp.ndarray] = None  # Band upper wavelength (nm) [nbands]

    @property
    def nbands(self) -> int:
        return self.opacity_band.shape[0]

    @classmethod
    def uniform(cls, opacity, sw_pen, nk: int,
                min_wavelength=None, max_wavelength=None) -> 'OpticsDescriptor':
        """
        Optics with a depth-independent opacity in each band.

        Args:
            opacity: Opacity of each band (1/H) [nbands]
            sw_pen: Penetrating shortwave in each band (K H) [nbands]
            nk: Number of layers
            min_wavelength: Optional band lower wavelengths (nm)
            max_wavelength: Optional band upper wavelengths (nm)
        """
        opacity = jnp.atleast_1d(jnp.asarray(opacity, dtype=float))
        return cls(
            opacity_band=jnp.broadcast_to(opacity[:, None], (opacity.shape[0], nk)),
            sw_pen_band=jnp.atleast_1d(jnp.asarray(sw_pen, dtype=float)),
            min_wavelength_band=None if min_wavelength is None else jnp.asarray(min_wavelength),
            max_wavelength_band=None if max_wavelength is None else jnp.asarray(max_wavelength)
        )


class AbsorptionPolicy(NamedTuple):
    """Static switches controlling where absorbed heat ends up"""

    # Move part of each layer's heating to the water above, so that the
    # heating occurs at the pressure-weighted mean depth of the exponential profile
    adjust_absorption_profile: bool = False
    # Redistribute whatever reaches the bottom back through the water column
    absorb_all: bool = False


@tree_math.struct
class ShortwaveParameters:
    """Configuration parameters for penetrating shortwave absorption"""

    # Remaining heating rate below which the rest of a band is absorbed in
    # the next layer (K H/s); the default is about 0.08 K m / century
    min_sw_heating: float
    # Layers thinner than this are not heated; layers up to twice this
    # thick are heated with a linear taper (H)
    h_min_heat: float

    # Unit conversions
    m_to_h: float         # Meters to thickness units (H/m)
    h_to_pa: float        # Thickness units to pressure (Pa/H)
    h_to_kg_m2: float     # Thickness units to mass per area (kg/m²/H)

    @classmethod
    def default(cls, min_sw_heating=2.5e-11,
                 h_min_heat=2.0 * ocean_constants.angstrom + ocean_constants.h_subroundoff,
                 m_to_h=ocean_constants.m_to_h,
                 h_to_pa=ocean_constants.h_to_pa,
                 h_to_kg_m2=ocean_constants.h_to_kg_m2) -> 'ShortwaveParameters':
        """Return default shortwave absorption parameters"""
        return cls(
            min_sw_heating=jnp.array(min_sw_heating),
            h_min_heat=jnp.array(h_min_heat),
            m_to_h=jnp.array(m_to_h),
            h_to_pa=jnp.array(h_to_pa),
            h_to_kg_m2=jnp.array(h_to_kg_m2)
        )


class AbsorptionResult(NamedTuple):
    """Column state after absorbing the remaining shortwave"""

    temperature: jnp.ndarray          # Updated layer temperature (degC) [nk]
    sw_pen_band: jnp.ndarray          # Shortwave left in each band (K H) [nbands]
    discarded_sw: jnp.ndarray         # Bottom shortwave dropped in thin water (K H) [nbands]
    heated_thickness: jnp.ndarray     # Thickness that can receive heating (H)
    tke: Optional[jnp.ndarray] = None                      # Updated TKE sink (J/m²) [nk]
    mixed_layer_temperature: Optional[jnp.ndarray] = None  # Updated mixed layer integral (K H)


class PenetratingFlux(NamedTuple):
    """Band-summed penetrating shortwave, without changing the state"""

    net_penetrating: jnp.ndarray      # Shortwave crossing each interface (K H) [nk+1]
    sw_pen_band: jnp.ndarray          # Shortwave left in each band at the bottom (K H) [nbands]
    discarded_sw: jnp.ndarray         # Bottom shortwave dropped in thin water (K H) [nbands]
    bottom_heating: jnp.ndarray       # Uniform heating from redistributed bottom shortwave (K)
