"""
PyEquilibrium (PEQ)
===================

基于 JAX 的化学平衡计算框架 (Gibbs 能最小化)。

主要功能：
- 通用内点 Newton 优化器 (KKT 线性系统: Rangespace / Fullspace / Nullspace)
- 化学平衡适配层：元素守恒约束 + Gibbs 目标 → 优化问题
"""

__version__ = "0.1.0"
__author__ = "PEQ Development Team"

# 环境配置
import os
os.environ.setdefault("XLA_PYTHON_CLIENT_MEM_FRACTION", ".85")

import jax
jax.config.update("jax_enable_x64", True)


# 延迟导入，避免循环依赖
def __getattr__(name):
    if name == "equilibrate":
        from peq.core.equilibrium import equilibrate
        return equilibrate
    elif name == "EquilibriumSolver":
        from peq.core.equilibrium import EquilibriumSolver
        return EquilibriumSolver
    elif name == "OptimumSolverIpnewton":
        from peq.solver.ipnewton import OptimumSolverIpnewton
        return OptimumSolverIpnewton
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "equilibrate",
    "EquilibriumSolver",
    "OptimumSolverIpnewton",
    "__version__",
]
