import jax.numpy as jnp
import pytest

from jocm.ale import ColumnState


@pytest.fixture
def stratified_column():
    """Four 100 m layers, warm and fresh at the top"""
    z_int = jnp.array([0.0, 100.0, 200.0, 300.0, 400.0])
    t_int = jnp.array([20.0, 15.0, 10.0, 7.0, 5.0])
    s_int = jnp.array([35.0, 35.1, 35.2, 35.3, 35.4])
    return ColumnState(
        interface_heights=z_int,
        interface_temperature=t_int,
        interface_salinity=s_int,
        layer_thickness=jnp.diff(z_int),
        layer_temperature=0.5 * (t_int[1:] + t_int[:-1]),
        layer_salinity=0.5 * (s_int[1:] + s_int[:-1])
    )
