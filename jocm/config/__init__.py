"""
Run configuration

Builds the kernel parameter structs from an omegaconf configuration. The
defaults live in config.yaml next to this module; hydra reads the same file
when running jocm.main.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import jax.numpy as jnp
from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf

from jocm.ale import AdaptParameters
from jocm.eos import LinearEOS, WrightEOS
from jocm.shortwave import AbsorptionPolicy, OpticsDescriptor, ShortwaveParameters

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent


def load_config(overrides: Optional[Sequence[str]] = None) -> DictConfig:
    """
    Compose the default configuration outside of a hydra run.

    Example:
        cfg = load_config(["grid.nk=10", "adapt.do_min=true"])
    """
    with initialize_config_dir(version_base=None, config_dir=str(CONFIG_DIR)):
        cfg = compose(config_name="config", overrides=list(overrides or []))
    logger.debug("Loaded configuration:\n%s", OmegaConf.to_yaml(cfg))
    return cfg


def coordinate_resolution_from_config(cfg: DictConfig) -> jnp.ndarray:
    """Nominal layer thicknesses; uniform over max_depth when not given."""
    nk = cfg.grid.nk
    if cfg.adapt.resolution is None:
        return jnp.full(nk, cfg.grid.max_depth / nk)
    resolution = jnp.asarray(OmegaConf.to_container(cfg.adapt.resolution), dtype=float)
    if resolution.shape != (nk,):
        raise ValueError(f"adapt.resolution must have {nk} entries, got {resolution.shape[0]}")
    return resolution


def adapt_parameters_from_config(cfg: DictConfig) -> AdaptParameters:
    """Build AdaptParameters from the adapt section."""
    adapt = cfg.adapt
    return AdaptParameters.default(
        coordinate_resolution_from_config(cfg),
        time_ratio=adapt.time_ratio,
        alpha=adapt.alpha,
        zoom=adapt.zoom,
        zoom_coeff=adapt.zoom_coeff,
        buoy_coeff=adapt.buoy_coeff,
        drho0=adapt.drho0,
        do_min=adapt.do_min
    )


def eos_from_config(cfg: DictConfig):
    """Build the equation of state named by eos.form."""
    form = cfg.eos.form
    if form == "wright":
        return WrightEOS()
    if form == "linear":
        return LinearEOS(drho_dt=cfg.eos.drho_dt, drho_ds=cfg.eos.drho_ds)
    raise ValueError(f"Invalid equation of state: {form}. Must be one of: wright, linear")


def shortwave_parameters_from_config(cfg: DictConfig) -> ShortwaveParameters:
    """Build ShortwaveParameters from the shortwave section."""
    return ShortwaveParameters.default(min_sw_heating=cfg.shortwave.min_sw_heating)


def policy_from_config(cfg: DictConfig) -> AbsorptionPolicy:
    """Build the static absorption policy from the shortwave section."""
    return AbsorptionPolicy(
        adjust_absorption_profile=bool(cfg.shortwave.adjust_absorption_profile),
        absorb_all=bool(cfg.shortwave.absorb_all)
    )


def optics_from_config(cfg: DictConfig) -> OpticsDescriptor:
    """Depth-independent optics for one column from the shortwave bands."""
    bands = cfg.shortwave.bands
    return OpticsDescriptor.uniform(
        opacity=[band.opacity for band in bands],
        sw_pen=[band.sw_pen for band in bands],
        nk=cfg.grid.nk,
        min_wavelength=[band.min_wavelength for band in bands],
        max_wavelength=[band.max_wavelength for band in bands]
    )
