"""
Adaptive vertical coordinate

Builds new interface positions for a single column. Interfaces are first
pushed toward flatter neutral density surfaces by a displacement derived
from the lateral curvature of neutral density, then smoothed by implicit
diffusion, and finally (optionally) kept no shallower than a nominal
HYCOM1-like resolution.

The column kernel is pure: the surface and bottom interfaces are copied
from the input and only the nk-1 interior interfaces move.
"""

import jax
import jax.numpy as jnp

from jocm.constants import ocean_constants
from .adapt_types import (
    AdaptParameters, ColumnState, NeighborColumns, GridState, NEIGHBOR_OFFSETS
)
from .matrix_solver import smooth_interfaces


@jax.jit
def neutral_density_curvature(
    eos,
    column: ColumnState,
    neighbors: NeighborColumns,
    h_to_pa: float
) -> jnp.ndarray:
    """
    Discrete Laplacian of neutral density on the interior interfaces.

    Each valid neighbor contributes alpha*(T_n - T) + beta*(S_n - S), with
    the density derivatives evaluated at the mean state between the two
    columns. Invalid neighbors contribute nothing.

    Args:
        eos: Equation of state providing density_derivs(T, S, p)
        column: State of the target column
        neighbors: Lateral neighbors of the target column
        h_to_pa: Thickness units to pressure (Pa/H)

    Returns:
        Curvature on the interior interfaces [kg/m³] (nk-1,)
    """
    t = column.interface_temperature[1:-1]
    s = column.interface_salinity[1:-1]
    z = column.interface_heights[1:-1]

    def neighbor_term(z_n, t_n, s_n):
        z_n, t_n, s_n = z_n[1:-1], t_n[1:-1], s_n[1:-1]
        alpha, beta = eos.density_derivs(
            0.5 * (t + t_n), 0.5 * (s + s_n), 0.5 * (z + z_n) * h_to_pa
        )
        return alpha * (t_n - t) + beta * (s_n - s)

    terms = jax.vmap(neighbor_term)(
        neighbors.interface_heights,
        neighbors.interface_temperature,
        neighbors.interface_salinity
    )
    return jnp.sum(jnp.where(neighbors.valid[:, None], terms, 0.0), axis=0)


@jax.jit
def curvature_displacement(
    curvature: jnp.ndarray,
    alpha_int: jnp.ndarray,
    beta_int: jnp.ndarray,
    column: ColumnState,
    adapt_alpha: float
) -> jnp.ndarray:
    """
    Convert the neutral density curvature into interface displacements.

    A positive curvature means the column is too light relative to its
    neighbors, so the interface is pushed deeper.

    Args:
        curvature: Neutral density curvature on interior interfaces (nk-1,)
        alpha_int: drho/dT of the target column on all interfaces (nk+1,)
        beta_int: drho/dS of the target column on all interfaces (nk+1,)
        column: State of the target column
        adapt_alpha: Optimisation strength

    Returns:
        Displacement of each interior interface [H] (nk-1,)
    """
    h = column.layer_thickness
    T = column.layer_temperature
    S = column.layer_salinity

    drho = (alpha_int[1:-1] * (T[1:] - T[:-1])
            + beta_int[1:-1] * (S[1:] - S[:-1]))
    dz = curvature * (0.5 * (h[:-1] + h[1:])) / jnp.maximum(drho, ocean_constants.epsilon)

    # Don't let an interface tangle with its neighbors nor move far enough
    # to excite grid-scale oscillations
    h_thin = jnp.minimum(h[:-1], h[1:])
    return 0.5 * adapt_alpha * jnp.sign(dz) * jnp.minimum(jnp.abs(dz), 0.5 * h_thin)


@jax.jit
def grid_diffusivity(
    params: AdaptParameters,
    alpha_int: jnp.ndarray,
    beta_int: jnp.ndarray,
    column: ColumnState,
    z_provisional: jnp.ndarray,
    depth: float
) -> jnp.ndarray:
    """
    Nondimensional grid diffusivity within each layer.

    Combines a near-surface zooming term, a stratification-dependent term and
    a uniform background, scaled by time_ratio * nk² * depth.

    Args:
        params: Adaptive coordinate parameters
        alpha_int: drho/dT of the target column on all interfaces (nk+1,)
        beta_int: drho/dS of the target column on all interfaces (nk+1,)
        column: State of the target column
        z_provisional: Displaced interface positions (nk+1,)
        depth: Local bottom depth [H]

    Returns:
        Grid diffusivity for each layer (nk,)
    """
    nk = params.nk
    t_int = column.interface_temperature
    s_int = column.interface_salinity

    drdz = (0.5 * (alpha_int[:-1] + alpha_int[1:]) * (t_int[1:] - t_int[:-1])
            + 0.5 * (beta_int[:-1] + beta_int[1:]) * (s_int[1:] - s_int[:-1]))
    drdz = drdz / (z_provisional[1:] - z_provisional[:-1] + params.h_subroundoff)
    # Unstably stratified layers get no stratification-dependent diffusion
    drdz = jnp.maximum(drdz, 0.0)

    z_mid = 0.5 * (z_provisional[:-1] + z_provisional[1:])
    background = jnp.maximum(1.0 - params.zoom_coeff - params.buoy_coeff, 0.0)

    return (params.time_ratio * nk**2 * depth) * (
        params.zoom_coeff / (params.zoom * params.m_to_h + z_mid)
        + params.buoy_coeff * drdz / params.drho0
        + background / depth
    )


@jax.jit
def apply_minimum_thickness(
    params: AdaptParameters,
    z_next: jnp.ndarray,
    depth: float
) -> jnp.ndarray:
    """
    Keep interfaces no shallower than the nominal resolution.

    The nominal profile is stretched by the ratio of the actual bottom to
    the nominal depth, and no interface may go below the bottom.

    Args:
        params: Adaptive coordinate parameters
        z_next: Smoothed interface positions (nk+1,)
        depth: Local bottom depth [H]

    Returns:
        Interface positions (nk+1,), unchanged unless params.do_min is set
    """
    z_bottom = z_next[-1]
    stretching = z_bottom / depth
    nominal_z = jnp.cumsum(params.coordinate_resolution * stretching)[:-1]

    interior = jnp.minimum(jnp.maximum(z_next[1:-1], nominal_z), z_bottom)
    interior = jnp.where(params.do_min, interior, z_next[1:-1])
    return z_next.at[1:-1].set(interior)


@jax.jit
def build_adapted_column(
    params: AdaptParameters,
    eos,
    column: ColumnState,
    neighbors: NeighborColumns,
    local_depth: float
) -> jnp.ndarray:
    """
    Compute new interface positions for one column.

    Args:
        params: Adaptive coordinate parameters
        eos: Equation of state providing density_derivs(T, S, p)
        column: State of the target column
        neighbors: Lateral neighbors; invalid ones are skipped
        local_depth: Bottom depth used to scale the diffusivity [H]

    Returns:
        New interface positions [H] (nk+1,)
    """
    z_int = column.interface_heights

    curvature = neutral_density_curvature(eos, column, neighbors, params.h_to_pa)

    # Vertical density derivatives of the target column on every interface
    alpha_int, beta_int = eos.density_derivs(
        column.interface_temperature,
        column.interface_salinity,
        z_int * params.h_to_pa
    )

    dz = curvature_displacement(curvature, alpha_int, beta_int, column, params.alpha)
    z_provisional = z_int.at[1:-1].add(dz)

    k_grid = grid_diffusivity(
        params, alpha_int, beta_int, column, z_provisional, local_depth
    )
    z_next = smooth_interfaces(k_grid, z_provisional)

    return apply_minimum_thickness(params, z_next, local_depth)


def gather_neighbors(grid: GridState, j: int, i: int) -> NeighborColumns:
    """
    Collect the four lateral neighbors of column (j, i).

    Neighbors outside the domain or on land are marked invalid.

    Args:
        grid: Horizontal field of columns
        j: Row index of the column
        i: Column index of the column

    Returns:
        NeighborColumns ordered as NEIGHBOR_DIRECTIONS
    """
    ny, nx = grid.mask.shape
    valid = []
    heights, temperature, salinity = [], [], []
    for dj, di in NEIGHBOR_OFFSETS:
        jn, in_ = j + dj, i + di
        inside = (0 <= jn < ny) and (0 <= in_ < nx)
        jn, in_ = (jn, in_) if inside else (j, i)
        valid.append(inside & (grid.mask[jn, in_] > 0))
        heights.append(grid.interface_heights[jn, in_])
        temperature.append(grid.interface_temperature[jn, in_])
        salinity.append(grid.interface_salinity[jn, in_])

    return NeighborColumns(
        valid=jnp.stack(valid),
        interface_heights=jnp.stack(heights),
        interface_temperature=jnp.stack(temperature),
        interface_salinity=jnp.stack(salinity)
    )


def build_adapted_column_at(
    params: AdaptParameters,
    eos,
    grid: GridState,
    j: int,
    i: int
) -> jnp.ndarray:
    """
    Compute new interface positions for the column at (j, i) of a grid.

    Returns:
        New interface positions [H] (nk+1,)
    """
    return build_adapted_column(
        params, eos, grid.column(j, i), gather_neighbors(grid, j, i), grid.depth[j, i]
    )


def _shifted(field: jnp.ndarray, dj: int, di: int) -> jnp.ndarray:
    """field[j + dj, i + di] at every (j, i), edge-padded outside the domain"""
    pad = [(1, 1), (1, 1)] + [(0, 0)] * (field.ndim - 2)
    padded = jnp.pad(field, pad, mode="edge")
    ny, nx = field.shape[:2]
    return padded[1 + dj:1 + dj + ny, 1 + di:1 + di + nx]


@jax.jit
def build_adapted_grid(
    params: AdaptParameters,
    eos,
    grid: GridState
) -> jnp.ndarray:
    """
    Compute new interface positions for every column of a grid.

    Land columns keep their interface positions.

    Args:
        params: Adaptive coordinate parameters
        eos: Equation of state providing density_derivs(T, S, p)
        grid: Horizontal field of columns

    Returns:
        New interface positions [H] (ny, nx, nk+1)
    """
    ny, nx = grid.mask.shape
    ocean = grid.mask > 0

    # Out-of-domain neighbors read a zero mask
    mask_padded = jnp.pad(ocean, 1, constant_values=False)
    valid = jnp.stack([
        mask_padded[1 + dj:1 + dj + ny, 1 + di:1 + di + nx]
        for dj, di in NEIGHBOR_OFFSETS
    ], axis=-1)

    def neighbor_field(field):
        return jnp.stack([_shifted(field, dj, di) for dj, di in NEIGHBOR_OFFSETS], axis=2)

    neighbors = NeighborColumns(
        valid=valid,
        interface_heights=neighbor_field(grid.interface_heights),
        interface_temperature=neighbor_field(grid.interface_temperature),
        interface_salinity=neighbor_field(grid.interface_salinity)
    )
    columns = ColumnState(
        interface_heights=grid.interface_heights,
        interface_temperature=grid.interface_temperature,
        interface_salinity=grid.interface_salinity,
        layer_thickness=grid.layer_thickness,
        layer_temperature=grid.layer_temperature,
        layer_salinity=grid.layer_salinity
    )

    flatten = lambda x: x.reshape((ny * nx,) + x.shape[2:])
    # Land columns may have zero depth; keep the division finite there
    depth = jnp.where(ocean, grid.depth, 1.0)

    z_next = jax.vmap(build_adapted_column, in_axes=(None, None, 0, 0, 0))(
        params, eos,
        jax.tree_util.tree_map(flatten, columns),
        jax.tree_util.tree_map(flatten, neighbors),
        flatten(depth)
    ).reshape(grid.interface_heights.shape)

    return jnp.where(ocean[..., None], z_next, grid.interface_heights)
