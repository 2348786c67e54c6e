"""
Data structures and types for the adaptive vertical coordinate.

This module defines the parameter struct and the column containers used by
the adaptive coordinate regridder. Interface heights are depths in
thickness units, positive downward, with the surface first.
"""

from typing import NamedTuple
import jax.numpy as jnp
import tree_math

from jocm.constants import ocean_constants

# Order of the lateral neighbors in NeighborColumns, with their (dj, di) offsets
NEIGHBOR_DIRECTIONS = ("south", "north", "west", "east")
NEIGHBOR_OFFSETS = ((-1, 0), (1, 0), (0, -1), (0, 1))


@tree_math.struct
class AdaptParameters:
    """Parameters for the adaptive coordinate."""

    # Nominal resolution of each layer (H), shape (nk,)
    coordinate_resolution: jnp.ndarray

    # Tunable coefficients
    time_ratio: float   # Ratio of optimisation and diffusion timescales
    alpha: float        # How much of the curvature-driven optimisation to apply
    zoom: float         # Near-surface zooming depth (m)
    zoom_coeff: float   # Near-surface zooming coefficient
    buoy_coeff: float   # Stratification-dependent diffusion coefficient
    drho0: float        # Reference density difference for stratification-dependent diffusion (kg/m³)
    do_min: bool        # Keep interfaces no shallower than the nominal resolution (HYCOM1-like)

    # Unit conversions
    h_to_pa: float        # Thickness units to pressure (Pa/H)
    m_to_h: float         # Meters to thickness units (H/m)
    h_subroundoff: float  # Thickness below roundoff (H)

    @classmethod
    def default(cls, coordinate_resolution, time_ratio=1e-1, alpha=1.0,
                 zoom=200.0, zoom_coeff=0.0, buoy_coeff=0.0, drho0=0.5,
                 do_min=False, h_to_pa=ocean_constants.h_to_pa,
                 m_to_h=ocean_constants.m_to_h,
                 h_subroundoff=ocean_constants.h_subroundoff) -> 'AdaptParameters':
        """Return default adaptive coordinate parameters for the given nominal resolution"""
        return cls(
            coordinate_resolution=jnp.asarray(coordinate_resolution, dtype=float),
            time_ratio=jnp.array(time_ratio),
            alpha=jnp.array(alpha),
            zoom=jnp.array(zoom),
            zoom_coeff=jnp.array(zoom_coeff),
            buoy_coeff=jnp.array(buoy_coeff),
            drho0=jnp.array(drho0),
            do_min=jnp.array(do_min),
            h_to_pa=jnp.array(h_to_pa),
            m_to_h=jnp.array(m_to_h),
            h_subroundoff=jnp.array(h_subroundoff)
        )

    @property
    def nk(self) -> int:
        """Number of layers"""
        return self.coordinate_resolution.shape[-1]

    def replace(self, **kwargs) -> 'AdaptParameters':
        """Create new AdaptParameters with the given fields updated"""
        updates = {name: jnp.asarray(value) for name, value in kwargs.items()}
        return self.__class__(**{**self.__dict__, **updates})


class ColumnState(NamedTuple):
    """State of the column being regridded."""

    interface_heights: jnp.ndarray      # Interface depths [H] (nk+1)
    interface_temperature: jnp.ndarray  # Temperature at interfaces [degC] (nk+1)
    interface_salinity: jnp.ndarray     # Salinity at interfaces [psu] (nk+1)
    layer_thickness: jnp.ndarray        # Layer thickness [H] (nk)
    layer_temperature: jnp.ndarray      # Layer temperature [degC] (nk)
    layer_salinity: jnp.ndarray         # Layer salinity [psu] (nk)


class NeighborColumns(NamedTuple):
    """The four lateral neighbors of a column, ordered as NEIGHBOR_DIRECTIONS."""

    valid: jnp.ndarray                  # Neighbor is an ocean point [bool] (4)
    interface_heights: jnp.ndarray      # Interface depths [H] (4, nk+1)
    interface_temperature: jnp.ndarray  # Temperature at interfaces [degC] (4, nk+1)
    interface_salinity: jnp.ndarray     # Salinity at interfaces [psu] (4, nk+1)

    @classmethod
    def masked(cls, column: ColumnState) -> 'NeighborColumns':
        """Neighbors that are all land; they contribute no curvature."""
        stack = lambda field: jnp.broadcast_to(field, (4,) + field.shape)
        return cls(
            valid=jnp.zeros(4, dtype=bool),
            interface_heights=stack(column.interface_heights),
            interface_temperature=stack(column.interface_temperature),
            interface_salinity=stack(column.interface_salinity)
        )


class GridState(NamedTuple):
    """Horizontal field of columns for the grid-level helpers."""

    interface_heights: jnp.ndarray      # Interface depths [H] (ny, nx, nk+1)
    interface_temperature: jnp.ndarray  # Temperature at interfaces [degC] (ny, nx, nk+1)
    interface_salinity: jnp.ndarray     # Salinity at interfaces [psu] (ny, nx, nk+1)
    layer_thickness: jnp.ndarray        # Layer thickness [H] (ny, nx, nk)
    layer_temperature: jnp.ndarray      # Layer temperature [degC] (ny, nx, nk)
    layer_salinity: jnp.ndarray         # Layer salinity [psu] (ny, nx, nk)
    mask: jnp.ndarray                   # Ocean mask, > 0 for ocean (ny, nx)
    depth: jnp.ndarray                  # Bottom depth [H] (ny, nx)

    def column(self, j: int, i: int) -> ColumnState:
        """Extract the column at (j, i)"""
        return ColumnState(
            interface_heights=self.interface_heights[j, i],
            interface_temperature=self.interface_temperature[j, i],
            interface_salinity=self.interface_salinity[j, i],
            layer_thickness=self.layer_thickness[j, i],
            layer_temperature=self.layer_temperature[j, i],
            layer_salinity=self.layer_salinity[j, i]
        )
