"""
可行初值预处理模块

忽略目标函数，仅保留等式约束与障碍项，求得 {A x = b, x > 0} 的严格内点，
作为正式求解的起点。
"""

import jax.numpy as jnp

from peq.core.types import OptimumProblem, OptimumState, OptimumOptions, OptimumResult
from peq.solver.ipnewton import OptimumSolverIpnewton


def feasibility_problem(problem: OptimumProblem) -> OptimumProblem:
    """构造可行性子问题：目标恒为零，约束不变"""
    n = problem.n
    return problem._replace(
        objective=lambda x: 0.0,
        objective_grad=lambda x: jnp.zeros(n),
        objective_hessian=lambda x, g: jnp.zeros(n),
    )


class OptimumSolverIpfeasible:
    """可行性预处理求解器 (对角 Hessian + Rangespace 分解)"""

    def __init__(self):
        self.ipnewton = OptimumSolverIpnewton()

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: OptimumOptions = OptimumOptions()
    ) -> OptimumResult:
        foptions = options._replace(
            hessian='diagonal',
            kkt=options.kkt._replace(method='rangespace'),
        )
        return self.ipnewton.solve(feasibility_problem(problem), state, foptions)
