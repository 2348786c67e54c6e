"""
JAX ocean column kernels

Per-column numerical kernels for an ocean circulation model: adaptive
vertical coordinate regridding (``jocm.ale``) and penetrating shortwave
absorption (``jocm.shortwave``). Everything is written in JAX and is
compatible with jit and vmap.
"""

import jax

# The closed-form absorption profiles cancel catastrophically in single
# precision well above their Taylor-series thresholds
jax.config.update("jax_enable_x64", True)
