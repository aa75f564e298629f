import numpy as np


def initialize_energy_grid(emin: float, emax: float, ne: int) -> np.ndarray:
    """
    Linear energy grid for the transmission spectrum.

    Parameters
    ----------
    `emin`, `emax` : float
        Grid bounds, both included.
    `ne` : int
        Number of energy points, at least 2.

    Returns
    -------
    `egrid` : ndarray of shape (ne,)
    """
    if ne <= 1:
        raise ValueError("Energy grid must have at least 2 points.")
    if emax <= emin:
        raise ValueError("emax has to be greater than emin")

    return np.linspace(emin, emax, ne)


def energy_grid_from_settings(energy) -> np.ndarray:
    """Grid described by an `EnergySettings` model."""
    return initialize_energy_grid(energy.emin, energy.emax, energy.ne)
