"""
PEQ Solver 模块：内点 Newton 优化器、KKT 求解器与备选后端

所有后端共享 solve(problem, state, options) -> OptimumResult 约定。
"""

from peq.solver.kkt import KktSolver, KktMatrix, KktVector, KktSolution, KktResult
from peq.solver.ipnewton import OptimumSolverIpnewton
from peq.solver.ipfeasible import OptimumSolverIpfeasible, feasibility_problem
from peq.solver.scipy_backend import OptimumSolverScipy

OPTIMUM_SOLVERS = {
    'ipnewton': OptimumSolverIpnewton,
    'ipfeasible': OptimumSolverIpfeasible,
    'scipy': OptimumSolverScipy,
}


def create_optimum_solver(method: str = 'ipnewton'):
    """按名称创建优化器实例

    Raises:
        ValueError: 未知后端
    """
    if method not in OPTIMUM_SOLVERS:
        raise ValueError(f"Unknown optimum method: {method!r}. Available: {list(OPTIMUM_SOLVERS)}")
    return OPTIMUM_SOLVERS[method]()


__all__ = [
    'KktSolver', 'KktMatrix', 'KktVector', 'KktSolution', 'KktResult',
    'OptimumSolverIpnewton', 'OptimumSolverIpfeasible', 'OptimumSolverScipy',
    'feasibility_problem', 'create_optimum_solver', 'OPTIMUM_SOLVERS',
]
