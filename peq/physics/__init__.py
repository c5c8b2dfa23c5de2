"""PEQ Physics Module - 热力学边界模块"""

from peq.physics.thermo import (
    compute_cp, compute_enthalpy, compute_entropy, compute_gibbs,
    compute_standard_chemical_potentials,
)
from peq.physics.gibbs import PhaseSpec, IdealGibbsModel, ideal_gas_model

__all__ = [
    "compute_cp",
    "compute_enthalpy",
    "compute_entropy",
    "compute_gibbs",
    "compute_standard_chemical_potentials",
    "PhaseSpec",
    "IdealGibbsModel",
    "ideal_gas_model",
]
