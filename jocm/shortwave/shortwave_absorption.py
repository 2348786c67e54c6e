"""
Absorption of penetrating shortwave radiation within a water column

The shortwave that was not absorbed at the surface is attenuated band by
band as it passes down through the layers, heating each layer it crosses.
Optionally, part of each layer's heating is moved into the water above so
that the heating happens at the right mean pressure, the TKE cost of
mixing the heating through the layer is accumulated, and whatever reaches
the bottom is spread back through the column.

In water shallower than h_limit_fluxes the bottom shortwave is only partly
redistributed; the rest would go into a bottom sediment layer, which is not
modelled, so it is dropped and reported as ``discarded_sw`` rather than
conserved.

Both layer passes are written with jax.lax.scan, so the kernels are
compatible with jit and vmap.
"""

from functools import partial

import jax
import jax.numpy as jnp
from typing import Tuple

from .shortwave_types import (
    OpticsDescriptor, AbsorptionPolicy, ShortwaveParameters,
    AbsorptionResult, PenetratingFlux
)

# Below these optical depths the closed forms lose accuracy to cancellation
# and Taylor series are used instead
PROFILE_TAYLOR_THRESHOLD = 1e-5
TKE_TAYLOR_THRESHOLD = 1e-2


@jax.jit
def heating_taper(thickness: jnp.ndarray, h_min_heat: float) -> jnp.ndarray:
    """
    Fraction of the heating a layer receives given its thickness.

    Zero up to h_min_heat, rising linearly to one at twice h_min_heat.
    """
    safe_h = jnp.where(thickness > h_min_heat, thickness, 2.0 * h_min_heat)
    return jnp.where(
        thickness >= 2.0 * h_min_heat,
        1.0,
        jnp.where(thickness > h_min_heat, 2.0 - 2.0 * h_min_heat / safe_h, 0.0)
    )


@jax.jit
def transmission(
    sw_pen: jnp.ndarray,
    opt_depth: jnp.ndarray,
    thickness: float,
    dt: float,
    params: ShortwaveParameters
) -> jnp.ndarray:
    """
    Fraction of each band transmitted through a layer.

    Heating at a rate of less than about 1e-3 K m / century, and of the layer
    in question less than about 1 K / century, is absorbed without further
    penetration.

    Args:
        sw_pen: Shortwave entering the layer in each band (K H) [nbands]
        opt_depth: Optical depth of the layer in each band [nbands]
        thickness: Layer thickness (H)
        dt: Time step (s)
        params: Shortwave parameters

    Returns:
        Transmitted fraction in each band [nbands]
    """
    nbands = sw_pen.shape[0]
    sw_trans = jnp.exp(-opt_depth)
    negligible = (nbands * sw_pen * sw_trans
                  < dt * params.min_sw_heating * jnp.minimum(params.m_to_h, 1e3 * thickness))
    return jnp.where(negligible, 0.0, sw_trans)


@jax.jit
def absorption_profile_adjustment(
    opt_depth: jnp.ndarray,
    opacity: jnp.ndarray,
    thickness: float,
    h_heat: float
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Fraction of a layer's heating to move into the water above.

    The fraction is chosen so that the mean pressure at which the heating is
    applied matches a pressure-weighted average of the exponential heating
    profile, but the water above may not be heated faster than the layer
    itself, i.e. the fraction is at most h_heat / (h_heat + h).

    Args:
        opt_depth: Optical depth of the layer in each band [nbands]
        opacity: Opacity of the layer in each band (1/H) [nbands]
        thickness: Layer thickness (H), positive
        h_heat: Heated thickness above the layer (H), positive

    Returns:
        Tuple of (fraction moved above, fraction of the moved heating that
        could not be moved), each [nbands]
    """
    exact = opt_depth > PROFILE_TAYLOR_THRESHOLD
    od = jnp.where(exact, opt_depth, 1.0)
    exp_od = jnp.exp(-od)
    swa_exact = (((od + (od + 2.0) * exp_od) - 2.0)
                 / ((od + opacity * h_heat) * (1.0 - exp_od)))
    swa_taylor = (thickness * (opt_depth * (1.0 - opt_depth))
                  / ((h_heat + thickness) * (6.0 - 3.0 * opt_depth)))
    swa = jnp.where(exact, swa_exact, swa_taylor)

    h_total = h_heat + thickness
    excess = swa * h_total > h_heat
    co_swa_frac = jnp.where(
        excess, (swa * h_total - h_heat) / jnp.where(excess, swa * h_total, 1.0), 0.0
    )
    swa = jnp.where(excess, h_heat / h_total, swa)
    return swa, co_swa_frac


@jax.jit
def tke_profile_factor(opt_depth: jnp.ndarray) -> jnp.ndarray:
    """
    Nondimensional TKE cost of spreading exponential heating through a layer.

    Returns:
        (tau*(1+e) - 2*(1-e)) / (tau*(1-e)) with e = exp(-tau), or its Taylor
        series tau/6 * (1 - tau²/60) for small optical depths
    """
    exact = opt_depth > TKE_TAYLOR_THRESHOLD
    od = jnp.where(exact, opt_depth, 1.0)
    exp_od = jnp.exp(-od)
    factor_exact = (od * (1.0 + exp_od) - 2.0 * (1.0 - exp_od)) / (od * (1.0 - exp_od))
    factor_taylor = (opt_depth / 6.0) * (1.0 - opt_depth**2 / 60.0)
    return jnp.where(exact, factor_exact, factor_taylor)


@jax.jit
def redistribute_bottom_sw(
    sw_pen: jnp.ndarray,
    h_heat: float,
    h_limit_fluxes: float
) -> Tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """
    Spread the shortwave that reached the bottom over the heated thickness.

    If the heated thickness is less than h_limit_fluxes, only the fraction
    h_heat / h_limit_fluxes is redistributed and the remainder is dropped.

    Args:
        sw_pen: Shortwave left in each band at the bottom (K H) [nbands]
        h_heat: Thickness that can receive heating (H)
        h_limit_fluxes: Depth below which the redistribution is limited (H)

    Returns:
        Tuple of (uniform temperature change (K), shortwave left in each band,
        dropped shortwave in each band)
    """
    sw_rem = jnp.sum(sw_pen)
    redistribute = (sw_rem > 0.0) & (h_heat > 0.0)
    heated_fraction = h_heat / h_limit_fluxes
    deep = heated_fraction >= 1.0

    t_chg = jnp.where(
        deep, sw_rem / jnp.where(redistribute, h_heat, 1.0), sw_rem / h_limit_fluxes
    )
    t_chg = jnp.where(redistribute, t_chg, 0.0)
    unabsorbed = jnp.where(redistribute & ~deep, 1.0 - heated_fraction, 0.0)

    discarded = unabsorbed * sw_pen
    remaining = jnp.where(redistribute, 0.0, sw_pen)
    return t_chg, remaining, discarded


@partial(jax.jit, static_argnames=("policy",))
def absorb_remaining(
    thickness: jnp.ndarray,
    temperature: jnp.ndarray,
    optics: OpticsDescriptor,
    params: ShortwaveParameters,
    dt: float,
    h_limit_fluxes: float,
    policy: AbsorptionPolicy = AbsorptionPolicy(),
    eps: jnp.ndarray = None,
    layer_order: jnp.ndarray = None,
    mixed_layer_thickness: float = None,
    mixed_layer_temperature: float = None,
    tke: jnp.ndarray = None,
    dsv_dt: jnp.ndarray = None
) -> AbsorptionResult:
    """
    Absorb the remaining penetrating shortwave in a column.

    Args:
        thickness: Layer thickness (H) [nk]
        temperature: Layer temperature (degC) [nk]
        optics: Opacity and incoming shortwave of the column
        params: Shortwave parameters
        dt: Time step (s)
        h_limit_fluxes: Depth below which bottom redistribution is limited (H)
        policy: Static switches for profile adjustment and bottom redistribution
        eps: Thickness that must remain in each layer and is not heated (H) [nk]
        layer_order: Order in which to visit the layers, e.g. density-sorted;
            negative entries are skipped [nk]
        mixed_layer_thickness: Thickness of already heated water above (H)
        mixed_layer_temperature: Depth integrated temperature of that water (K H)
        tke: TKE sink to add to (J/m²) [nk]; requires dsv_dt
        dsv_dt: d(specific volume)/dT (m³/kg/K) [nk]; requires tke

    Returns:
        AbsorptionResult with the updated temperature, remaining shortwave and
        optional TKE sink and mixed layer temperature integral
    """
    if (tke is None) != (dsv_dt is None):
        raise ValueError("tke and dsv_dt must be provided together")

    nk = thickness.shape[0]
    order = jnp.arange(nk) if layer_order is None else jnp.asarray(layer_order)
    valid = order >= 0
    k_idx = jnp.where(valid, order, 0)

    h_k = thickness[k_idx]
    eps_k = jnp.zeros(nk) if eps is None else eps[k_idx]
    dsv_k = jnp.zeros(nk) if dsv_dt is None else dsv_dt[k_idx]
    opacity_k = optics.opacity_band[:, k_idx].T
    taper_k = heating_taper(h_k, params.h_min_heat)

    h_heat_0 = 0.0 if mixed_layer_thickness is None else mixed_layer_thickness
    g_hconv2 = params.h_to_pa * params.h_to_kg_m2

    def downward_step(carry, inputs):
        sw_pen, h_heat = carry
        valid_i, h_i, eps_i, opacity_i, taper_i, dsv_i = inputs

        # Excessively thin layers are not heated to avoid runaway temperatures
        heated = valid_i & (h_i > 1.5 * eps_i) & (taper_i > 0.0)
        h_safe = jnp.where(heated, h_i, 1.0)
        active = heated & (sw_pen > 0.0)

        opt_depth = h_i * opacity_i
        sw_trans = transmission(sw_pen, opt_depth, h_i, dt, params)
        heat_bnd = jnp.where(active, sw_pen * (1.0 - sw_trans) * taper_i, 0.0)

        if policy.adjust_absorption_profile:
            adjust = h_heat > 0.0
            swa, co_swa_frac = absorption_profile_adjustment(
                opt_depth, opacity_i, h_safe, jnp.where(adjust, h_heat, 1.0)
            )
            swa = jnp.where(adjust, swa, 0.0)
            co_swa_frac = jnp.where(adjust, co_swa_frac, 1.0)
            t_chg_above = jnp.sum(swa * heat_bnd) / jnp.where(adjust, h_heat, 1.0)
        else:
            swa = jnp.zeros_like(heat_bnd)
            co_swa_frac = jnp.ones_like(heat_bnd)
            t_chg_above = jnp.zeros_like(h_heat)

        d_temp = jnp.sum((1.0 - swa) * heat_bnd) / h_safe
        d_tke = -(jnp.sum(co_swa_frac * heat_bnd * tke_profile_factor(opt_depth))
                  * dsv_i * (0.5 * h_i * g_hconv2))

        sw_pen = sw_pen - heat_bnd
        # Accumulate the thickness above that could be heated
        h_heat = h_heat + jnp.where(valid_i, h_i * taper_i, 0.0)
        return (sw_pen, h_heat), (d_temp, t_chg_above, d_tke)

    (sw_pen, h_heat), (d_temp, t_chg_above, d_tke) = jax.lax.scan(
        downward_step,
        (optics.sw_pen_band, jnp.asarray(h_heat_0, dtype=thickness.dtype)),
        (valid, h_k, eps_k, opacity_k, taper_k, dsv_k)
    )
    temperature = temperature.at[k_idx].add(d_temp)
    if tke is not None:
        tke = tke.at[k_idx].add(d_tke)

    # Unless modified, there is no temperature change due to fluxes from the bottom
    t_chg = jnp.zeros_like(h_heat)
    discarded = jnp.zeros_like(sw_pen)
    if policy.absorb_all:
        t_chg, sw_pen, discarded = redistribute_bottom_sw(sw_pen, h_heat, h_limit_fluxes)

    if policy.absorb_all or policy.adjust_absorption_profile:
        def upward_step(t_chg, inputs):
            valid_i, taper_i, t_chg_above_i = inputs
            d_temp = jnp.where(valid_i & (t_chg > 0.0), t_chg * taper_i, 0.0)
            # Increase the heating for layers above
            return t_chg + t_chg_above_i, d_temp

        t_chg, d_temp_up = jax.lax.scan(
            upward_step, t_chg, (valid, taper_k, t_chg_above), reverse=True
        )
        temperature = temperature.at[k_idx].add(d_temp_up)
        if mixed_layer_temperature is not None and mixed_layer_thickness is not None:
            mixed_layer_temperature = mixed_layer_temperature + t_chg * mixed_layer_thickness

    return AbsorptionResult(
        temperature=temperature,
        sw_pen_band=sw_pen,
        discarded_sw=discarded,
        heated_thickness=h_heat,
        tke=tke,
        mixed_layer_temperature=mixed_layer_temperature
    )


@partial(jax.jit, static_argnames=("absorb_all",))
def integrate_penetrating_flux(
    thickness: jnp.ndarray,
    optics: OpticsDescriptor,
    params: ShortwaveParameters,
    dt: float,
    h_limit_fluxes: float,
    absorb_all: bool = False
) -> PenetratingFlux:
    """
    Band-summed penetrating shortwave at every interface.

    Uses the same attenuation as absorb_remaining but leaves the state
    untouched; this is what a boundary layer scheme needs to compute its
    buoyancy forcing.

    Args:
        thickness: Layer thickness (H) [nk]
        optics: Opacity and incoming shortwave of the column
        params: Shortwave parameters
        dt: Time step (s)
        h_limit_fluxes: Depth below which bottom redistribution is limited (H)
        absorb_all: Account for redistribution of the shortwave reaching the bottom

    Returns:
        PenetratingFlux with the shortwave crossing each interface
    """
    taper = heating_taper(thickness, params.h_min_heat)

    def downward_step(carry, inputs):
        sw_pen, h_heat = carry
        h_i, opacity_i, taper_i = inputs

        active = (h_i > 0.0) & (taper_i > 0.0) & (sw_pen > 0.0)
        sw_trans = transmission(sw_pen, h_i * opacity_i, h_i, dt, params)
        sw_pen = sw_pen - jnp.where(active, sw_pen * (1.0 - sw_trans) * taper_i, 0.0)

        h_heat = h_heat + h_i * taper_i
        return (sw_pen, h_heat), jnp.sum(sw_pen)

    (sw_pen, h_heat), net_below = jax.lax.scan(
        downward_step,
        (optics.sw_pen_band, jnp.zeros((), dtype=thickness.dtype)),
        (thickness, optics.opacity_band.T, taper)
    )
    net_penetrating = jnp.concatenate([jnp.sum(optics.sw_pen_band)[None], net_below])

    bottom_heating = jnp.zeros_like(h_heat)
    discarded = jnp.zeros_like(sw_pen)
    if absorb_all:
        bottom_heating, sw_pen, discarded = redistribute_bottom_sw(sw_pen, h_heat, h_limit_fluxes)

    return PenetratingFlux(
        net_penetrating=net_penetrating,
        sw_pen_band=sw_pen,
        discarded_sw=discarded,
        bottom_heating=bottom_heating
    )


def _column_optics(optics: OpticsDescriptor) -> OpticsDescriptor:
    # Wavelength bounds are shared by all columns
    return optics._replace(min_wavelength_band=None, max_wavelength_band=None)


def absorb_remaining_vectorized(
    thickness: jnp.ndarray,
    temperature: jnp.ndarray,
    optics: OpticsDescriptor,
    params: ShortwaveParameters,
    dt: float,
    h_limit_fluxes: float,
    policy: AbsorptionPolicy = AbsorptionPolicy(),
    **column_fields
) -> AbsorptionResult:
    """
    Apply absorb_remaining to many columns at once.

    All arrays, including any optional ones passed as keywords (eps,
    layer_order, mixed_layer_thickness, mixed_layer_temperature, tke,
    dsv_dt), carry a leading column axis.
    """
    kernel = partial(
        absorb_remaining, params=params, dt=dt,
        h_limit_fluxes=h_limit_fluxes, policy=policy
    )
    return jax.vmap(lambda h, T, o, fields: kernel(h, T, o, **fields))(
        thickness, temperature, _column_optics(optics), column_fields
    )


def integrate_penetrating_flux_vectorized(
    thickness: jnp.ndarray,
    optics: OpticsDescriptor,
    params: ShortwaveParameters,
    dt: float,
    h_limit_fluxes: float,
    absorb_all: bool = False
) -> PenetratingFlux:
    """Apply integrate_penetrating_flux to many columns with a leading column axis."""
    kernel = partial(
        integrate_penetrating_flux, params=params, dt=dt,
        h_limit_fluxes=h_limit_fluxes, absorb_all=absorb_all
    )
    return jax.vmap(kernel)(thickness, _column_optics(optics))
