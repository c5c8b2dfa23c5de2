"""PEQ Data Module - 物种数据加载模块"""

from peq.data.species import (
    SpeciesData, load_species, get_species, list_species, get_species_by_phase,
    species_formula_matrix, species_standard_potentials,
)

__all__ = [
    "SpeciesData",
    "load_species",
    "get_species",
    "list_species",
    "get_species_by_phase",
    "species_formula_matrix",
    "species_standard_potentials",
]
