"""
Physical constants for ocean column physics

This module contains the physical constants and unit conversion factors
shared by the regridding and shortwave absorption kernels. Thickness is
carried in generic "H units", which are meters for a Boussinesq model and
kg/m² for a non-Boussinesq one; the defaults below describe the
Boussinesq case.

Date: 2025-03-02
"""

from typing import NamedTuple

class OceanConstants(NamedTuple):
    """Physical constants for ocean column physics"""
    
    # Fundamental constants
    grav: float = 9.8             # Gravitational acceleration (m/s²)
    rho0: float = 1035.0          # Boussinesq reference density (kg/m³)
    
    # Vertical grid constants
    m_to_h: float = 1.0           # Meters to thickness units (H/m)
    angstrom: float = 1.0e-10     # Minimum layer thickness (H)
    h_subroundoff: float = 1.0e-30  # Thickness below roundoff (H)
    
    # Numerical constants
    epsilon: float = 1e-20        # Floor for vertical density differences
    
    @classmethod
    def default(cls) -> 'OceanConstants':
        """Return default ocean constants"""
        return cls()

    @property
    def h_to_kg_m2(self) -> float:
        """Thickness units to mass per unit area (kg/m²/H)"""
        return self.rho0 / self.m_to_h

    @property
    def h_to_pa(self) -> float:
        """Thickness units to hydrostatic pressure (Pa/H)"""
        return self.grav * self.h_to_kg_m2

# Global instance of ocean constants
ocean_constants = OceanConstants.default()

# Export individual constants for convenience
grav = ocean_constants.grav
rho0 = ocean_constants.rho0
m_to_h = ocean_constants.m_to_h
angstrom = ocean_constants.angstrom
h_subroundoff = ocean_constants.h_subroundoff
h_to_kg_m2 = ocean_constants.h_to_kg_m2
h_to_pa = ocean_constants.h_to_pa
