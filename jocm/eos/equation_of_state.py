"""
Equations of state for seawater

The adaptive coordinate needs the partial derivatives of in-situ density
with respect to temperature and salinity. Two forms are provided:

- ``LinearEOS``: constant expansion and contraction coefficients.
- ``WrightEOS``: the reduced-range fit of Wright (1997), J. Atmos. Ocean.
  Tech., 14, 735-740, with pressure in Pa.

Both are NamedTuples, so they are pytrees and can be passed directly to
jitted kernels. Any object exposing ``density_derivs(T, S, p)`` can stand
in for them.

Date: 2025-03-02
"""

import jax.numpy as jnp
from typing import NamedTuple, Tuple

# Wright (1997) reduced-range coefficients
A0, A1, A2 = 7.057924e-4, 3.480336e-7, -1.112733e-7
B0, B1, B2, B3, B4, B5 = (5.790749e8, 3.516535e6, -4.002714e4,
                          2.084372e2, 5.944068e5, -9.643486e3)
C0, C1, C2, C3, C4, C5 = (1.704853e5, 7.904722e2, -7.984422,
                          5.140652e-2, -2.302158e2, -3.079464)


class LinearEOS(NamedTuple):
    """Linear equation of state rho = rho_ref + drho_dt*(T - t_ref) + drho_ds*(S - s_ref)"""
    
    rho_ref: float = 1000.0   # Density at the reference point (kg/m³)
    t_ref: float = 0.0        # Reference temperature (degC)
    s_ref: float = 0.0        # Reference salinity (psu)
    drho_dt: float = -0.2     # Thermal derivative (kg/m³/K)
    drho_ds: float = 0.8      # Haline derivative (kg/m³/psu)

    def density(self, temperature, salinity, pressure) -> jnp.ndarray:
        """In-situ density [kg/m³]"""
        del pressure
        return (self.rho_ref + self.drho_dt * (temperature - self.t_ref)
                + self.drho_ds * (salinity - self.s_ref))

    def density_derivs(self, temperature, salinity, pressure) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """Partial derivatives of density with temperature and salinity"""
        shape = jnp.broadcast_shapes(jnp.shape(temperature), jnp.shape(salinity),
                                     jnp.shape(pressure))
        drho_dt = jnp.full(shape, self.drho_dt)
        drho_ds = jnp.full(shape, self.drho_ds)
        return drho_dt, drho_ds


class WrightEOS(NamedTuple):
    """Wright (1997) equation of state, valid for 0-30 degC, 28-38 psu, 0-5e7 Pa"""

    def density(self, temperature, salinity, pressure) -> jnp.ndarray:
        """
        In-situ density.
        
        Args:
            temperature: Potential temperature [degC]
            salinity: Salinity [psu]
            pressure: Pressure [Pa]
            
        Returns:
            Density [kg/m³]
        """
        T, S = temperature, salinity
        al0 = A0 + A1 * T + A2 * S
        p0 = B0 + B4 * S + T * (B1 + T * (B2 + B3 * T) + B5 * S)
        lam = C0 + C4 * S + T * (C1 + T * (C2 + C3 * T) + C5 * S)
        return (pressure + p0) / (lam + al0 * (pressure + p0))

    def density_derivs(self, temperature, salinity, pressure) -> Tuple[jnp.ndarray, jnp.ndarray]:
        """
        Partial derivatives of in-situ density.
        
        Args:
            temperature: Potential temperature [degC]
            salinity: Salinity [psu]
            pressure: Pressure [Pa]
            
        Returns:
            Tuple of (drho_dT [kg/m³/K], drho_dS [kg/m³/psu])
        """
        T, S = temperature, salinity
        al0 = A0 + A1 * T + A2 * S
        p0 = B0 + B4 * S + T * (B1 + T * (B2 + B3 * T) + B5 * S)
        lam = C0 + C4 * S + T * (C1 + T * (C2 + C3 * T) + C5 * S)
        pp0 = pressure + p0
        I_denom2 = 1.0 / (lam + al0 * pp0)**2
        
        drho_dt = I_denom2 * (
            lam * (B1 + T * (2.0 * B2 + 3.0 * B3 * T) + B5 * S)
            - pp0 * (pp0 * A1 + (C1 + T * (2.0 * C2 + 3.0 * C3 * T) + C5 * S))
        )
        drho_ds = I_denom2 * (
            lam * (B4 + B5 * T) - pp0 * (pp0 * A2 + (C4 + C5 * T))
        )
        return drho_dt, drho_ds
