"""
内点 Newton 优化器模块

求解 min f(x)  s.t.  h(x) = 0, x > 0 的障碍中心化 KKT 条件:

    g - A^T y - z = 0
    h             = 0
    x∘z - mu      = 0

状态机: Init → {Evaluate → BuildStep → Safeguard → Update} → Converged
        | IterationLimitExceeded | NumericFailure

每个步骤为独立的具名函数，显式接收并返回 State/Result，便于单独测试。
核心循环不抛出异常，失败通过 OptimumResult.succeeded/status 报告。
障碍参数 mu 在单次求解中固定，连续化策略由调用方负责。
"""

import time
from typing import Optional

import jax.numpy as jnp

from peq.core.types import (
    OptimumProblem, OptimumState, OptimumOptions, OptimumResult, validate_options,
)
from peq.solver.kkt import KktSolver, KktMatrix, KktVector, KktSolution
from peq.utils.outputs import Outputter
from peq.utils.precision import to_fp64, as_vector
from peq.utils.solvers import (
    NewtonErrors, StepLengths, fraction_to_the_boundary, compute_error_norms, all_finite, norminf,
)


# ==============================================================================
# 状态机步骤
# ==============================================================================

def initialize_state(problem: OptimumProblem, state: OptimumState, options: OptimumOptions) -> OptimumState:
    """Init: 修正初值维度并推入严格内点

    - 维度不符的 x, y, z 重置为零向量
    - x <- max(x, mux * mu)
    - z <= 0 处取 mu / x
    """
    mu = options.ipnewton.mu
    mux = options.ipnewton.mux

    state.x = as_vector(state.x, problem.n)
    state.y = as_vector(state.y, problem.m)
    state.z = as_vector(state.z, problem.n)

    state.x = jnp.maximum(state.x, mux * mu)
    state.z = jnp.where(state.z > 0.0, state.z, mu / state.x)
    return state


def evaluate_state(problem: OptimumProblem, state: OptimumState) -> OptimumState:
    """Evaluate: 在当前 x 处计算 f, g, h, A"""
    x = state.x
    state.f = float(problem.objective(x))
    state.g = as_vector(problem.objective_grad(x))
    state.h = as_vector(problem.constraint(x))
    state.A = to_fp64(problem.constraint_grad(x)).reshape(problem.m, problem.n)
    return state


def state_is_finite(state: OptimumState) -> bool:
    """目标值、梯度、约束值与约束 Jacobian 是否均为有限值"""
    return all_finite(state.f, state.g, state.h, state.A)


def build_hessian(problem: OptimumProblem, state: OptimumState, scheme: str) -> jnp.ndarray:
    """按配置的 Hessian 方案构造 H: 'exact' 返回矩阵，'diagonal' 返回对角向量"""
    H = to_fp64(problem.objective_hessian(state.x, state.g))
    if scheme == 'diagonal':
        return H if H.ndim == 1 else jnp.diag(H)
    return jnp.diag(H) if H.ndim == 1 else H


def compute_newton_step(
    kkt: KktSolver,
    problem: OptimumProblem,
    state: OptimumState,
    options: OptimumOptions,
    result: OptimumResult
) -> Optional[KktSolution]:
    """BuildStep: 分解并求解 KKT 系统

    Returns:
        Newton 方向；分解失败或方向含非有限值时返回 None
    """
    x, y, z, g, h, A = state.x, state.y, state.z, state.g, state.h, state.A
    mu = options.ipnewton.mu

    H = build_hessian(problem, state, options.hessian)
    decomposed = kkt.decompose(KktMatrix(H, A, x, z))
    result.time_linear_systems += kkt.result.time_decompose
    if not decomposed:
        return None

    rhs = KktVector(
        rx=-(g - A.T @ y - z),
        ry=-h,
        rz=-(x * z - mu),
    )
    sol = kkt.solve(rhs)
    result.time_linear_systems += kkt.result.time_solve
    if not kkt.result.succeeded:
        return None
    return sol


def update_iterates(state: OptimumState, step: KktSolution, tau: float, uniform: bool) -> StepLengths:
    """Safeguard + Update: 边界分数规则限制步长后更新 x, y, z"""
    alphax = float(fraction_to_the_boundary(state.x, step.dx, tau))
    alphaz = float(fraction_to_the_boundary(state.z, step.dz, tau))
    alpha = min(alphax, alphaz)

    if uniform:
        state.x = state.x + alpha * step.dx
        state.y = state.y + alpha * step.dy
        state.z = state.z + alpha * step.dz
    else:
        state.x = state.x + alphax * step.dx
        state.y = state.y + step.dy
        state.z = state.z + alphaz * step.dz

    return StepLengths(alpha=alpha, alphax=alphax, alphaz=alphaz)


def compute_errors(state: OptimumState, mu: float) -> NewtonErrors:
    """最优性 / 可行性 / 中心性误差 (无穷范数)"""
    return compute_error_norms(state.x, state.y, state.z, state.g, state.h, state.A, mu)


# ==============================================================================
# 求解器
# ==============================================================================

class OptimumSolverIpnewton:
    """内点 Newton 优化器

    实例持有可复用的 KKT 求解器与输出器，不可在并发求解之间共享；
    每个并发计算应创建独立实例。

    Example:
        solver = OptimumSolverIpnewton()
        state = OptimumState()
        result = solver.solve(problem, state, OptimumOptions(tolerance=1e-8))
    """

    def __init__(self):
        self.kkt = KktSolver()
        self.outputter = Outputter()

    def solve(
        self,
        problem: OptimumProblem,
        state: OptimumState,
        options: OptimumOptions = OptimumOptions()
    ) -> OptimumResult:
        """求解优化问题，原地更新 state

        Args:
            problem: 优化问题
            state: 初始猜测 (可为空)，返回时为最终 (收敛或尽力) 迭代点
            options: 配置

        Returns:
            OptimumResult
        """
        validate_options(options)
        begin = time.perf_counter()

        self.outputter = Outputter(options.output)
        self.kkt.set_options(options.kkt)

        result = OptimumResult()
        mu = options.ipnewton.mu
        tau = options.ipnewton.tau

        initialize_state(problem, state, options)
        evaluate_state(problem, state)
        self._output_header(problem, state, result)

        while True:
            result.iterations += 1
            if result.iterations > options.max_iterations:
                result.status = 'iteration_limit'
                break

            step = compute_newton_step(self.kkt, problem, state, options, result)
            if step is None:
                result.status = 'numeric_failure'
                break

            steps = update_iterates(state, step, tau, options.ipnewton.uniform_newton_step)

            evaluate_state(problem, state)
            if not state_is_finite(state):
                result.status = 'numeric_failure'
                break

            errors = compute_errors(state, mu)
            result.error = errors.error
            self._output_state(state, result, errors, steps)

            if errors.error < options.tolerance:
                result.succeeded = True
                result.status = 'converged'
                break

        self.outputter.output_header()
        result.time = time.perf_counter() - begin
        return result

    def _output_header(self, problem: OptimumProblem, state: OptimumState, result: OptimumResult):
        out = self.outputter
        if not out.active:
            return
        opts = out.options
        out.add_entry("iter")
        out.add_entries(opts.xprefix, problem.n, opts.xnames)
        out.add_entries(opts.yprefix, problem.m, opts.ynames)
        out.add_entries(opts.zprefix, problem.n, opts.znames)
        for name in ("f(x)", "h(x)", "errorf", "errorh", "errorc", "error", "alpha", "alphax", "alphaz"):
            out.add_entry(name)
        out.output_header()

        out.add_value(result.iterations)
        out.add_values(state.x)
        out.add_values(state.y)
        out.add_values(state.z)
        out.add_value(state.f)
        out.add_value(float(norminf(state.h)))
        for _ in range(7):
            out.add_value("---")
        out.output_state()

    def _output_state(self, state: OptimumState, result: OptimumResult, errors: NewtonErrors, steps: StepLengths):
        out = self.outputter
        if not out.active:
            return
        out.add_value(result.iterations)
        out.add_values(state.x)
        out.add_values(state.y)
        out.add_values(state.z)
        out.add_value(state.f)
        out.add_value(float(norminf(state.h)))
        out.add_value(errors.stationarity)
        out.add_value(errors.feasibility)
        out.add_value(errors.centrality)
        out.add_value(errors.error)
        out.add_value(steps.alpha)
        out.add_value(steps.alphax)
        out.add_value(steps.alphaz)
        out.output_state()
