import logging
from pathlib import Path

import hydra
import jax.numpy as jnp
import numpy as np
import xarray as xr
from hydra.core.hydra_config import HydraConfig
from omegaconf import DictConfig

from jocm.ale import AdaptiveCoordinate, GridState, build_adapted_grid
from jocm.config import (
    coordinate_resolution_from_config, eos_from_config, optics_from_config,
    policy_from_config, shortwave_parameters_from_config
)
from jocm.shortwave import absorb_remaining_vectorized

logger = logging.getLogger(__name__)


def idealized_basin(cfg: DictConfig) -> GridState:
    """
    A basin shoaling to the west with a warm, fresh front to the east.

    Layers are uniform in thickness in each column; interface temperature
    and salinity are linear in depth with surface values that vary across
    the front.
    """
    nk, ny, nx = cfg.grid.nk, cfg.grid.ny, cfg.grid.nx
    depth = np.broadcast_to(
        np.linspace(cfg.grid.min_depth, cfg.grid.max_depth, nx), (ny, nx)
    )
    sigma = np.linspace(0.0, 1.0, nk + 1)
    z_int = depth[..., None] * sigma

    x = np.linspace(-1.0, 1.0, nx)
    front = np.tanh(4.0 * x)[None, :, None]
    t_int = 20.0 + 2.0 * front - 15.0 * z_int / cfg.grid.max_depth
    s_int = 35.0 - 0.5 * front + 0.5 * z_int / cfg.grid.max_depth

    return GridState(
        interface_heights=jnp.asarray(z_int),
        interface_temperature=jnp.asarray(t_int),
        interface_salinity=jnp.asarray(s_int),
        layer_thickness=jnp.asarray(np.diff(z_int, axis=-1)),
        layer_temperature=jnp.asarray(0.5 * (t_int[..., 1:] + t_int[..., :-1])),
        layer_salinity=jnp.asarray(0.5 * (s_int[..., 1:] + s_int[..., :-1])),
        mask=jnp.ones((ny, nx)),
        depth=jnp.asarray(depth)
    )


@hydra.main(version_base=None, config_path="config", config_name="config")
def main(cfg: DictConfig):
    """
    Run the column kernels once over an idealized basin.

    Example:
        python -m jocm.main
        python -m jocm.main adapt.do_min=true grid.nk=30
        python -m jocm.main -m shortwave.absorb_all=true,false
    """
    grid = idealized_basin(cfg)
    ny, nx, nk = grid.layer_thickness.shape

    coordinate = AdaptiveCoordinate()
    coordinate.initialize(nk, coordinate_resolution_from_config(cfg))
    coordinate.set_params(
        time_ratio=cfg.adapt.time_ratio, alpha=cfg.adapt.alpha,
        zoom=cfg.adapt.zoom, zoom_coeff=cfg.adapt.zoom_coeff,
        buoy_coeff=cfg.adapt.buoy_coeff, drho0=cfg.adapt.drho0,
        do_min=cfg.adapt.do_min
    )

    z_next = build_adapted_grid(coordinate.params, eos_from_config(cfg), grid)
    logger.info("Maximum interface displacement: %.3f m",
                float(jnp.max(jnp.abs(z_next - grid.interface_heights))))

    ncol = ny * nx
    optics = optics_from_config(cfg)
    column_optics = optics._replace(
        opacity_band=jnp.broadcast_to(optics.opacity_band, (ncol,) + optics.opacity_band.shape),
        sw_pen_band=jnp.broadcast_to(optics.sw_pen_band, (ncol,) + optics.sw_pen_band.shape)
    )
    result = absorb_remaining_vectorized(
        grid.layer_thickness.reshape(ncol, nk),
        grid.layer_temperature.reshape(ncol, nk),
        column_optics,
        shortwave_parameters_from_config(cfg),
        cfg.shortwave.dt,
        cfg.shortwave.h_limit_fluxes,
        policy=policy_from_config(cfg)
    )
    heating = (result.temperature.reshape(ny, nx, nk) - grid.layer_temperature)
    logger.info("Column-integrated shortwave heating: %.4e K m",
                float(jnp.sum(heating * grid.layer_thickness)))

    coordinate.end()

    ds = xr.Dataset(
        {
            "interface_heights": (("y", "x", "zi"), np.asarray(grid.interface_heights)),
            "adapted_interface_heights": (("y", "x", "zi"), np.asarray(z_next)),
            "temperature": (("y", "x", "zl"), np.asarray(grid.layer_temperature)),
            "sw_heating": (("y", "x", "zl"), np.asarray(heating)),
            "discarded_sw": (("y", "x", "band"),
                             np.asarray(result.discarded_sw).reshape(ny, nx, -1)),
            "depth": (("y", "x"), np.asarray(grid.depth)),
        },
        coords={
            "band_min_wavelength": ("band", np.asarray(optics.min_wavelength_band)),
            "band_max_wavelength": ("band", np.asarray(optics.max_wavelength_band)),
        }
    )

    output_dir = Path(HydraConfig.get().runtime.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / cfg.output.filename
    ds.to_netcdf(str(output_path))
    logger.info("Wrote %s", output_path)


if __name__ == "__main__":
    main()
