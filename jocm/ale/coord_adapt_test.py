"""Tests for the adaptive coordinate column kernel and grid helpers."""

import jax.numpy as jnp
import numpy as np
import pytest

from jocm.eos import LinearEOS, WrightEOS
from .adapt_types import AdaptParameters, ColumnState, NeighborColumns, GridState
from .coord_adapt import (
    neutral_density_curvature, curvature_displacement, grid_diffusivity,
    apply_minimum_thickness, build_adapted_column, gather_neighbors,
    build_adapted_column_at, build_adapted_grid
)


def warmer_neighbors(column: ColumnState, warming: float = 1.0) -> NeighborColumns:
    """Four ocean neighbors identical to column but uniformly warmer"""
    stack = lambda field: jnp.broadcast_to(field, (4,) + field.shape)
    return NeighborColumns(
        valid=jnp.ones(4, dtype=bool),
        interface_heights=stack(column.interface_heights),
        interface_temperature=stack(column.interface_temperature + warming),
        interface_salinity=stack(column.interface_salinity)
    )


def create_test_grid(ny=3, nx=4, nk=4, depth=400.0):
    """Grid of uniform-thickness columns with a lateral temperature gradient"""
    z_int = np.broadcast_to(np.linspace(0.0, depth, nk + 1), (ny, nx, nk + 1))
    x = np.arange(nx)[None, :, None]
    y = np.arange(ny)[:, None, None]
    t_int = 20.0 + 0.5 * x - 0.3 * y**2 - 15.0 * z_int / depth
    s_int = 35.0 + 0.4 * z_int / depth
    return GridState(
        interface_heights=jnp.asarray(z_int),
        interface_temperature=jnp.asarray(t_int),
        interface_salinity=jnp.asarray(s_int),
        layer_thickness=jnp.asarray(np.diff(z_int, axis=-1)),
        layer_temperature=jnp.asarray(0.5 * (t_int[..., 1:] + t_int[..., :-1])),
        layer_salinity=jnp.asarray(0.5 * (s_int[..., 1:] + s_int[..., :-1])),
        mask=jnp.ones((ny, nx)),
        depth=jnp.full((ny, nx), depth)
    )


class TestNeutralDensityCurvature:
    """Test the lateral curvature of neutral density."""

    def test_masked_neighbors_give_zero(self, stratified_column):
        curvature = neutral_density_curvature(
            LinearEOS(), stratified_column, NeighborColumns.masked(stratified_column), 1.0e4
        )
        assert curvature.shape == (3,)
        assert jnp.allclose(curvature, 0.0)

    def test_identical_neighbors_give_zero(self, stratified_column):
        curvature = neutral_density_curvature(
            WrightEOS(), stratified_column, warmer_neighbors(stratified_column, 0.0), 1.0e4
        )
        assert jnp.allclose(curvature, 0.0)

    def test_warmer_neighbors_are_lighter(self, stratified_column):
        curvature = neutral_density_curvature(
            LinearEOS(), stratified_column, warmer_neighbors(stratified_column), 1.0e4
        )
        # Four neighbors, each drho_dt * 1 K lighter
        assert jnp.allclose(curvature, -0.8)

    def test_invalid_neighbors_skipped(self, stratified_column):
        neighbors = warmer_neighbors(stratified_column)
        neighbors = neighbors._replace(valid=jnp.array([True, False, False, True]))

        curvature = neutral_density_curvature(LinearEOS(), stratified_column, neighbors, 1.0e4)

        assert jnp.allclose(curvature, -0.4)


class TestCurvatureDisplacement:
    """Test conversion of curvature into interface motion."""

    def test_displacement_is_limited(self, stratified_column):
        eos = LinearEOS()
        alpha_int, beta_int = eos.density_derivs(
            stratified_column.interface_temperature, stratified_column.interface_salinity, 0.0
        )
        curvature = jnp.full(3, -0.8)

        dz = curvature_displacement(curvature, alpha_int, beta_int, stratified_column, 1.0)

        # Unlimited displacements are 74 m or more; each is capped at half a
        # 100 m layer, then halved
        assert jnp.allclose(dz, -25.0)

    def test_small_displacement_not_limited(self, stratified_column):
        eos = LinearEOS()
        alpha_int, beta_int = eos.density_derivs(
            stratified_column.interface_temperature, stratified_column.interface_salinity, 0.0
        )
        curvature = jnp.array([0.0108, 0.0, 0.0])

        dz = curvature_displacement(curvature, alpha_int, beta_int, stratified_column, 0.5)

        # drho across the first interior interface is 1.08 kg/m³
        assert jnp.allclose(dz, jnp.array([0.25 * 0.0108 * 100.0 / 1.08, 0.0, 0.0]))

    @pytest.mark.parametrize("forcing", [-1.0e3, 1.0e3])
    def test_bounded_by_thinner_layer(self, forcing):
        z_int = jnp.array([0.0, 10.0, 200.0, 230.0, 400.0])
        t_int = 20.0 - 0.04 * z_int
        s_int = 35.0 + 0.001 * z_int
        column = ColumnState(
            interface_heights=z_int,
            interface_temperature=t_int,
            interface_salinity=s_int,
            layer_thickness=jnp.diff(z_int),
            layer_temperature=0.5 * (t_int[1:] + t_int[:-1]),
            layer_salinity=0.5 * (s_int[1:] + s_int[:-1])
        )
        alpha_int, beta_int = LinearEOS().density_derivs(t_int, s_int, 0.0)

        dz = curvature_displacement(jnp.full(3, forcing), alpha_int, beta_int, column, 1.0)

        # Half of the thinner neighbor (10, 30, 30), then halved
        assert jnp.allclose(dz, jnp.sign(forcing) * jnp.array([2.5, 7.5, 7.5]))

    def test_unstable_stratification_is_bounded(self, stratified_column):
        # Density inversion: drho is floored so the displacement stays finite
        column = stratified_column._replace(layer_temperature=jnp.array([5.0, 10.0, 15.0, 20.0]))
        alpha_int, beta_int = LinearEOS().density_derivs(
            column.interface_temperature, column.interface_salinity, 0.0
        )

        dz = curvature_displacement(jnp.full(3, 0.1), alpha_int, beta_int, column, 1.0)

        assert jnp.all(jnp.isfinite(dz))
        assert jnp.all(jnp.abs(dz) <= 25.0)


class TestGridDiffusivity:
    """Test the grid diffusivity profile."""

    def test_background_only(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0))
        alpha_int, beta_int = LinearEOS().density_derivs(
            stratified_column.interface_temperature, stratified_column.interface_salinity, 0.0
        )

        k_grid = grid_diffusivity(
            params, alpha_int, beta_int, stratified_column,
            stratified_column.interface_heights, 400.0
        )

        # time_ratio * nk² * depth * (1 / depth)
        assert jnp.allclose(k_grid, 1.6)

    def test_zooming_is_largest_near_surface(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0), zoom_coeff=1.0)
        alpha_int, beta_int = LinearEOS().density_derivs(
            stratified_column.interface_temperature, stratified_column.interface_salinity, 0.0
        )

        k_grid = grid_diffusivity(
            params, alpha_int, beta_int, stratified_column,
            stratified_column.interface_heights, 400.0
        )

        z_mid = jnp.array([50.0, 150.0, 250.0, 350.0])
        assert jnp.allclose(k_grid, 0.1 * 16 * 400.0 / (200.0 + z_mid))
        assert jnp.all(jnp.diff(k_grid) < 0.0)

    def test_buoyancy_term_uses_stratification(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0), buoy_coeff=1.0, drho0=0.5)
        alpha_int, beta_int = LinearEOS().density_derivs(
            stratified_column.interface_temperature, stratified_column.interface_salinity, 0.0
        )

        k_grid = grid_diffusivity(
            params, alpha_int, beta_int, stratified_column,
            stratified_column.interface_heights, 400.0
        )

        t_int = stratified_column.interface_temperature
        s_int = stratified_column.interface_salinity
        drdz = (-0.2 * jnp.diff(t_int) + 0.8 * jnp.diff(s_int)) / 100.0
        assert jnp.allclose(k_grid, 0.1 * 16 * 400.0 * drdz / 0.5)
        assert jnp.all(k_grid > 0.0)

    def test_unstable_layers_get_no_buoyancy_diffusion(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0), buoy_coeff=1.0)
        column = stratified_column._replace(
            interface_temperature=stratified_column.interface_temperature[::-1]
        )
        alpha_int, beta_int = LinearEOS().density_derivs(
            column.interface_temperature, column.interface_salinity, 0.0
        )

        k_grid = grid_diffusivity(
            params, alpha_int, beta_int, column, column.interface_heights, 400.0
        )

        assert jnp.allclose(k_grid, 0.0)


class TestApplyMinimumThickness:
    """Test the HYCOM1-like nominal resolution constraint."""

    def test_disabled_is_identity(self):
        params = AdaptParameters.default(jnp.full(4, 300.0))
        z = jnp.array([0.0, 100.0, 200.0, 300.0, 400.0])
        assert jnp.allclose(apply_minimum_thickness(params, z, 400.0), z)

    def test_clamped_to_nominal_and_bottom(self):
        params = AdaptParameters.default(jnp.full(4, 300.0), do_min=True)
        z = jnp.array([0.0, 100.0, 200.0, 300.0, 400.0])

        z_next = apply_minimum_thickness(params, z, 400.0)

        assert jnp.allclose(z_next, jnp.array([0.0, 300.0, 400.0, 400.0, 400.0]))

    def test_nominal_profile_is_stretched(self):
        params = AdaptParameters.default(jnp.full(4, 50.0), do_min=True)
        z = jnp.array([0.0, 10.0, 20.0, 30.0, 200.0])

        # The actual bottom is at 200 for a nominal depth of 400
        z_next = apply_minimum_thickness(params, z, 400.0)

        assert jnp.allclose(z_next, jnp.array([0.0, 25.0, 50.0, 75.0, 200.0]))


class TestBuildAdaptedColumn:
    """Test the full column kernel."""

    def test_uniform_column_unchanged(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0))
        z_next = build_adapted_column(
            params, WrightEOS(), stratified_column,
            NeighborColumns.masked(stratified_column), 400.0
        )
        assert jnp.allclose(z_next, stratified_column.interface_heights)

    def test_matches_dense_solve(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0), zoom_coeff=0.5)
        z_next = build_adapted_column(
            params, LinearEOS(), stratified_column,
            NeighborColumns.masked(stratified_column), 400.0
        )

        z = np.asarray(stratified_column.interface_heights)
        z_mid = 0.5 * (z[1:] + z[:-1])
        k = 0.1 * 16 * 400.0 * (0.5 / (200.0 + z_mid) + 0.5 / 400.0)
        matrix = np.zeros((5, 5))
        matrix[0, 0] = matrix[4, 4] = 1.0
        for K in range(1, 4):
            matrix[K, K - 1] = -k[K - 1]
            matrix[K, K] = 1.0 + k[K - 1] + k[K]
            matrix[K, K + 1] = -k[K]
        expected = np.linalg.solve(matrix, z)

        assert jnp.allclose(z_next, expected, rtol=1e-10)
        # Zooming pulls interfaces toward the surface
        assert jnp.all(z_next[1:-1] < z[1:-1])

    def test_surface_and_bottom_fixed(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0), zoom_coeff=0.3, buoy_coeff=0.3)
        z_next = build_adapted_column(
            params, WrightEOS(), stratified_column, warmer_neighbors(stratified_column), 400.0
        )
        assert z_next[0] == stratified_column.interface_heights[0]
        assert z_next[-1] == stratified_column.interface_heights[-1]

    @pytest.mark.parametrize("warming", [-2.0, -0.5, 0.5, 3.0])
    def test_interfaces_stay_ordered(self, stratified_column, warming):
        params = AdaptParameters.default(jnp.full(4, 100.0), zoom_coeff=0.2, buoy_coeff=0.5)
        neighbors = warmer_neighbors(stratified_column, warming)
        neighbors = neighbors._replace(
            interface_salinity=neighbors.interface_salinity + jnp.array([0.1, -0.1, 0.2, 0.0])[:, None]
        )

        z_next = build_adapted_column(params, WrightEOS(), stratified_column, neighbors, 400.0)

        assert jnp.all(jnp.isfinite(z_next))
        assert jnp.all(jnp.diff(z_next) > 0.0)

    def test_lighter_neighbors_raise_interfaces(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 100.0))
        z_next = build_adapted_column(
            params, LinearEOS(), stratified_column, warmer_neighbors(stratified_column), 400.0
        )
        assert jnp.all(z_next[1:-1] < stratified_column.interface_heights[1:-1])

    def test_minimum_thickness_applied(self, stratified_column):
        params = AdaptParameters.default(jnp.full(4, 300.0), do_min=True)
        z_next = build_adapted_column(
            params, LinearEOS(), stratified_column,
            NeighborColumns.masked(stratified_column), 400.0
        )
        assert jnp.allclose(z_next, jnp.array([0.0, 300.0, 400.0, 400.0, 400.0]))


class TestGridHelpers:
    """Test neighbor gathering and the whole-grid driver."""

    def test_corner_neighbors(self):
        grid = create_test_grid()
        neighbors = gather_neighbors(grid, 0, 0)
        # south, north, west, east
        assert neighbors.valid.tolist() == [False, True, False, True]
        assert jnp.allclose(neighbors.interface_temperature[1], grid.interface_temperature[1, 0])
        assert jnp.allclose(neighbors.interface_temperature[3], grid.interface_temperature[0, 1])

    def test_land_neighbor_invalid(self):
        grid = create_test_grid()
        grid = grid._replace(mask=grid.mask.at[1, 2].set(0.0))
        neighbors = gather_neighbors(grid, 1, 1)
        assert neighbors.valid.tolist() == [True, True, True, False]

    def test_identical_columns_unchanged(self, stratified_column):
        ny, nx = 2, 3
        tile = lambda field: jnp.broadcast_to(field, (ny, nx) + field.shape)
        grid = GridState(
            *[tile(field) for field in stratified_column],
            mask=jnp.ones((ny, nx)),
            depth=jnp.full((ny, nx), 400.0)
        )
        params = AdaptParameters.default(jnp.full(4, 100.0))

        z_next = build_adapted_grid(params, WrightEOS(), grid)

        assert jnp.allclose(z_next, grid.interface_heights)

    def test_grid_matches_single_columns(self):
        grid = create_test_grid()
        grid = grid._replace(mask=grid.mask.at[2, 3].set(0.0))
        params = AdaptParameters.default(jnp.full(4, 100.0), zoom_coeff=0.2, buoy_coeff=0.3)

        z_next = build_adapted_grid(params, WrightEOS(), grid)

        ny, nx = grid.mask.shape
        for j in range(ny):
            for i in range(nx):
                if grid.mask[j, i] == 0:
                    continue
                expected = build_adapted_column_at(params, WrightEOS(), grid, j, i)
                assert jnp.allclose(z_next[j, i], expected, rtol=1e-10, atol=1e-8)

    def test_land_columns_unchanged(self):
        grid = create_test_grid()
        grid = grid._replace(
            mask=grid.mask.at[1, 1].set(0.0),
            depth=grid.depth.at[1, 1].set(0.0)
        )
        params = AdaptParameters.default(jnp.full(4, 100.0))

        z_next = build_adapted_grid(params, LinearEOS(), grid)

        assert jnp.all(jnp.isfinite(z_next))
        assert jnp.allclose(z_next[1, 1], grid.interface_heights[1, 1])
