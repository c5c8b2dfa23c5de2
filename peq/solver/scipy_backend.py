"""
SciPy 后端模块

以 scipy.optimize.minimize(method='trust-constr') 求解同一 OptimumProblem，
与内点 Newton 共享 Problem/State/Result 约定，可作为备选策略。
"""

import time

import jax.numpy as jnp
import numpy as np
from scipy.optimize import Bounds, NonlinearConstraint, minimize

from peq.core.types import OptimumProblem, OptimumState, OptimumOptions, OptimumResult, validate_options
from peq.solver.ipnewton import initialize_state, evaluate_state, build_hessian, compute_errors, state_is_finite


class OptimumSolverScipy:
    """trust-constr 后端

    求解后 x 截断到 mux * mu 以保持严格内点，z = mu / x，
    y 由平稳性条件 A^T y = g - z 的最小二乘解恢复。
    仅当 SciPy 报告成功且误差低于 tolerance 时 succeeded 为 True。
    """

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: OptimumOptions = OptimumOptions()
    ) -> OptimumResult:
        validate_options(options)
        begin = time.perf_counter()
        result = OptimumResult()

        mu = options.ipnewton.mu
        floor = options.ipnewton.mux * mu
        initialize_state(problem, state, options)

        def fun(x):
            return float(problem.objective(x))

        def jac(x):
            return np.asarray(problem.objective_grad(x), dtype=float)

        def hess(x):
            g = problem.objective_grad(x)
            return np.asarray(build_hessian(problem, OptimumState(x=jnp.asarray(x), g=g), 'exact'))

        constraints = []
        if problem.m > 0:
            constraints.append(NonlinearConstraint(
                lambda x: np.asarray(problem.constraint(x), dtype=float),
                0.0, 0.0,
                jac=lambda x: np.asarray(problem.constraint_grad(x), dtype=float).reshape(problem.m, problem.n),
            ))

        res = minimize(
            fun, np.asarray(state.x), method='trust-constr', jac=jac, hess=hess,
            bounds=Bounds(np.zeros(problem.n), np.full(problem.n, np.inf)),
            constraints=constraints,
            options={'gtol': options.tolerance, 'xtol': 1e-14, 'maxiter': options.max_iterations, 'verbose': 0},
        )

        state.x = jnp.maximum(jnp.asarray(res.x), floor)
        evaluate_state(problem, state)
        result.iterations = int(res.nit)

        if not state_is_finite(state):
            result.status = 'numeric_failure'
            result.time = time.perf_counter() - begin
            return result

        state.z = mu / state.x
        if problem.m > 0:
            state.y = jnp.linalg.lstsq(state.A.T, state.g - state.z)[0]
        else:
            state.y = jnp.zeros(0)

        errors = compute_errors(state, mu)
        result.error = errors.error
        # 与内点 Newton 相同的判据：误差须低于 tolerance
        result.succeeded = bool(res.success) and errors.error < options.tolerance
        result.status = 'converged' if result.succeeded else 'iteration_limit'
        result.time = time.perf_counter() - begin
        return result
