"""
Tridiagonal matrix solver for implicit grid diffusion.

This module implements the Thomas algorithm (forward elimination followed by
back substitution) used to smooth interface positions, together with the
assembly of the interface diffusion system.
"""

import jax
import jax.numpy as jnp
from typing import Tuple


@jax.jit
def setup_interface_diffusion(
    k_grid: jnp.ndarray,
    z_provisional: jnp.ndarray
) -> Tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """
    Set up the implicit diffusion system for the interior interfaces.

    Interface K sits between layers K-1 and K, so its row couples to the
    interfaces above and below through the diffusivities of those layers.
    The surface and bottom interfaces are held fixed and their couplings
    are moved to the right-hand side.

    Args:
        k_grid: Nondimensional grid diffusivity in each layer (nk,)
        z_provisional: Interface positions to be smoothed (nk+1,)

    Returns:
        Tuple of (sub-diagonal, diagonal, super-diagonal, rhs), each (nk-1,)
    """
    k_above = k_grid[:-1]
    k_below = k_grid[1:]

    a = (-k_above).at[0].set(0.0)
    b = 1.0 + k_above + k_below
    c = (-k_below).at[-1].set(0.0)

    d = z_provisional[1:-1]
    d = d.at[0].add(k_above[0] * z_provisional[0])
    d = d.at[-1].add(k_below[-1] * z_provisional[-1])

    return a, b, c, d


@jax.jit
def solve_tridiagonal(
    a: jnp.ndarray,
    b: jnp.ndarray,
    c: jnp.ndarray,
    d: jnp.ndarray
) -> jnp.ndarray:
    """
    Solve a single tridiagonal system using Thomas algorithm.

    Args:
        a: Sub-diagonal [n], a[0] unused
        b: Diagonal [n]
        c: Super-diagonal [n], c[-1] unused
        d: Right-hand side [n]

    Returns:
        Solution [n]
    """
    # Forward sweep (elimination)
    # Initialize first row
    cp_0 = c[0] / b[0]
    dp_0 = d[0] / b[0]

    # Remaining rows
    def forward_step(carry, inputs):
        cp_prev, dp_prev = carry
        a_i, b_i, c_i, d_i = inputs

        denom_i = b_i - a_i * cp_prev
        cp_i = c_i / denom_i
        dp_i = (d_i - a_i * dp_prev) / denom_i

        return (cp_i, dp_i), (cp_i, dp_i)

    _, (cp_rest, dp_rest) = jax.lax.scan(
        forward_step,
        (cp_0, dp_0), # initial carry
        (a[1:], b[1:], c[1:], d[1:]) # inputs
    )

    cp = jnp.concatenate([cp_0[None], cp_rest])
    dp = jnp.concatenate([dp_0[None], dp_rest])

    # Back substitution
    x_last = dp[-1]
    def backward_step(x_next, inputs):
        cp_i, dp_i = inputs
        x_i = dp_i - cp_i * x_next
        return x_i, x_i

    # Reverse order, skipping the last element
    _, x_rest = jax.lax.scan(
        backward_step, x_last, (cp[:-1], dp[:-1]), reverse=True
    )

    return jnp.concatenate([x_rest, x_last[None]])


@jax.jit
def smooth_interfaces(
    k_grid: jnp.ndarray,
    z_provisional: jnp.ndarray
) -> jnp.ndarray:
    """
    Diffuse interface positions implicitly.

    Args:
        k_grid: Nondimensional grid diffusivity in each layer (nk,)
        z_provisional: Interface positions before smoothing (nk+1,)

    Returns:
        Smoothed interface positions (nk+1,), boundary values unchanged
    """
    a, b, c, d = setup_interface_diffusion(k_grid, z_provisional)
    interior = solve_tridiagonal(a, b, c, d)
    return z_provisional.at[1:-1].set(interior)
