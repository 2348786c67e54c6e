"""
Lifecycle of the adaptive coordinate configuration.

The configuration is created uninitialized, initialized exactly once with the
layer count and nominal resolution, optionally tuned, and torn down at the
end of a run. Misuse of this lifecycle is a caller-side defect and raises
AdaptCoordinateError, which is not meant to be caught.
"""

import logging
from typing import Optional

import jax.numpy as jnp

from .adapt_types import AdaptParameters, ColumnState, NeighborColumns
from .coord_adapt import build_adapted_column

logger = logging.getLogger(__name__)

TUNABLE_PARAMETERS = (
    "time_ratio", "alpha", "zoom", "zoom_coeff", "buoy_coeff", "drho0", "do_min"
)


class AdaptCoordinateError(RuntimeError):
    """Raised when the adaptive coordinate lifecycle is misused."""


class AdaptiveCoordinate:
    """Control object for the adaptive coordinate."""

    def __init__(self):
        self._params: Optional[AdaptParameters] = None

    @property
    def is_initialized(self) -> bool:
        return self._params is not None

    @property
    def params(self) -> AdaptParameters:
        """The current parameters; only available once initialized."""
        self._require_initialized("params")
        return self._params

    def initialize(self, nk: int, coordinate_resolution, **defaults) -> AdaptParameters:
        """
        Initialize the configuration with the number of layers and nominal resolution.

        Args:
            nk: Number of layers
            coordinate_resolution: Nominal thickness of each layer [H] (nk,)
            **defaults: Overrides for the other AdaptParameters.default arguments

        Returns:
            The initialized parameters
        """
        if self._params is not None:
            raise AdaptCoordinateError("initialize: adaptive coordinate already initialized")
        coordinate_resolution = jnp.asarray(coordinate_resolution)
        if coordinate_resolution.shape != (nk,):
            raise ValueError(
                f"Expected {nk} resolution values, got shape {coordinate_resolution.shape}"
            )

        self._params = AdaptParameters.default(coordinate_resolution, **defaults)
        logger.info("Initialized adaptive coordinate with %d layers", nk)
        return self._params

    def set_params(self, **kwargs) -> AdaptParameters:
        """
        Update any subset of the tunable parameters.

        Accepted names are time_ratio, alpha, zoom, zoom_coeff, buoy_coeff,
        drho0 and do_min.
        """
        self._require_initialized("set_params")
        unknown = set(kwargs) - set(TUNABLE_PARAMETERS)
        if unknown:
            raise TypeError(f"set_params: unknown parameters {sorted(unknown)}")

        self._params = self._params.replace(**kwargs)
        logger.debug("Updated adaptive coordinate parameters: %s", kwargs)
        return self._params

    def build_column(
        self,
        eos,
        column: ColumnState,
        neighbors: NeighborColumns,
        local_depth: float
    ) -> jnp.ndarray:
        """Compute new interface positions for one column; see build_adapted_column."""
        self._require_initialized("build_column")
        nk = self._params.nk
        if column.layer_thickness.shape[-1] != nk:
            raise ValueError(
                f"Column has {column.layer_thickness.shape[-1]} layers, expected {nk}"
            )
        return build_adapted_column(self._params, eos, column, neighbors, local_depth)

    def end(self) -> None:
        """Release the configuration; the object returns to the uninitialized state."""
        if self._params is None:
            return
        self._params = None
        logger.info("Released adaptive coordinate")

    def _require_initialized(self, caller: str) -> None:
        if self._params is None:
            raise AdaptCoordinateError(f"{caller}: adaptive coordinate not initialized")
