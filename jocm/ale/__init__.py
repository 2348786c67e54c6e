"""
Adaptive vertical coordinate for ocean columns

Interfaces are moved toward neutral density surfaces using the lateral
curvature of neutral density, smoothed with an implicit tridiagonal
diffusion solve, and optionally kept below a nominal HYCOM1-like
resolution.
"""

from .adapt_types import (
    AdaptParameters,
    ColumnState,
    NeighborColumns,
    GridState,
    NEIGHBOR_DIRECTIONS,
    NEIGHBOR_OFFSETS
)

from .matrix_solver import (
    setup_interface_diffusion,
    solve_tridiagonal,
    smooth_interfaces
)

from .coord_adapt import (
    neutral_density_curvature,
    curvature_displacement,
    grid_diffusivity,
    apply_minimum_thickness,
    build_adapted_column,
    gather_neighbors,
    build_adapted_column_at,
    build_adapted_grid
)

from .adapt_control import (
    AdaptiveCoordinate,
    AdaptCoordinateError
)

__all__ = [
    # Types
    "AdaptParameters",
    "ColumnState",
    "NeighborColumns",
    "GridState",
    "NEIGHBOR_DIRECTIONS",
    "NEIGHBOR_OFFSETS",

    # Matrix solver
    "setup_interface_diffusion",
    "solve_tridiagonal",
    "smooth_interfaces",

    # Column kernel
    "neutral_density_curvature",
    "curvature_displacement",
    "grid_diffusivity",
    "apply_minimum_thickness",
    "build_adapted_column",

    # Grid helpers
    "gather_neighbors",
    "build_adapted_column_at",
    "build_adapted_grid",

    # Lifecycle
    "AdaptiveCoordinate",
    "AdaptCoordinateError"
]
