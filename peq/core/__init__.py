"""
PEQ Core 模块：数据结构与化学平衡适配层

内点 Newton + KKT 求解 (见 peq.solver)
"""

from peq.core.types import (
    OptimumProblem, OptimumState, OptimumOptions, OptimumResult,
    KktOptions, IpnewtonOptions, OutputOptions,
)

_EQUILIBRIUM_EXPORTS = (
    'EquilibriumProblem', 'EquilibriumOptions', 'EquilibriumResult',
    'EquilibriumSolver', 'equilibrate', 'build_formula_matrix',
)


# 适配层依赖 peq.solver，延迟导入以避免循环依赖
def __getattr__(name):
    if name in _EQUILIBRIUM_EXPORTS:
        from peq.core import equilibrium
        return getattr(equilibrium, name)
    if name == 'ChemicalSolver':
        from peq.core.batch import ChemicalSolver
        return ChemicalSolver
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    'OptimumProblem', 'OptimumState', 'OptimumOptions', 'OptimumResult',
    'KktOptions', 'IpnewtonOptions', 'OutputOptions',
    *_EQUILIBRIUM_EXPORTS,
    'ChemicalSolver',
]
