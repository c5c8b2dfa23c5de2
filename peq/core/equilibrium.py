"""
化学平衡求解器模块 (Gibbs 能最小化)

将化学平衡问题映射为通用优化问题:

    min G(n)/RT   s.t.   W n = b,   n > 0

W 为公式矩阵 (元素 × 物种)，b 为元素总量。目标及其梯度由 Gibbs 模型经
JAX 自动微分给出；Hessian 方案与 KKT 分解策略由单一配置项成对选择：
对角方案 ↔ Rangespace，精确方案 ↔ Fullspace (或 KktOptions 指定的方法)。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, NamedTuple, Optional, Sequence

import jax
import jax.numpy as jnp
import numpy as np

from peq.core.types import OptimumProblem, OptimumState, OptimumOptions, OptimumResult
from peq.solver import create_optimum_solver, OptimumSolverIpfeasible
from peq.utils.memo import memoize_last
from peq.utils.precision import to_fp64

GIBBS_HESSIANS = ('exact', 'exact-diagonal', 'approximation', 'approximation-diagonal')
EQUILIBRIUM_METHODS = ('ipnewton', 'scipy')

# 常用物种元素组成
COMMON_FORMULAS = {
    'N2': {'N': 2}, 'CO2': {'C': 1, 'O': 2}, 'H2O': {'H': 2, 'O': 1},
    'CO': {'C': 1, 'O': 1}, 'H2': {'H': 2}, 'O2': {'O': 2},
    'NO': {'N': 1, 'O': 1}, 'OH': {'O': 1, 'H': 1}, 'H': {'H': 1}, 'O': {'O': 1},
    'NH3': {'N': 1, 'H': 3}, 'CH4': {'C': 1, 'H': 4},
    'C_graphite': {'C': 1}, 'Al2O3': {'Al': 2, 'O': 3},
    'Al': {'Al': 1}, 'AlO': {'Al': 1, 'O': 1},
}


# ==============================================================================
# 公式矩阵
# ==============================================================================
def build_formula_matrix(
    species_list: Sequence[str],
    elements: Sequence[str],
    formulas: Optional[Mapping[str, Mapping[str, float]]] = None
) -> jnp.ndarray:
    """构造公式矩阵 W (n_elements, n_species)

    Args:
        species_list: 物种名称
        elements: 元素顺序 (与 b 一致)
        formulas: 物种 -> {元素: 原子数}，默认使用 COMMON_FORMULAS

    Raises:
        KeyError: 物种缺少元素组成
    """
    if formulas is None:
        formulas = COMMON_FORMULAS
    W = np.zeros((len(elements), len(species_list)))
    for i, s in enumerate(species_list):
        if s not in formulas:
            raise KeyError(f"No formula for species: {s}. Available: {list(formulas.keys())}")
        comp = formulas[s]
        for j, e in enumerate(elements):
            W[j, i] = float(comp.get(e, 0))
    return jnp.asarray(W)


# ==============================================================================
# 数据结构
# ==============================================================================
@dataclass
class EquilibriumProblem:
    """平衡问题：公式矩阵、元素总量与 Gibbs 模型

    gibbs_model 需提供 gibbs_energy(n) -> G/RT (可被 JAX 追踪)
    与 hessian_approximation(n) -> (N, N)。
    """
    formula_matrix: Any
    element_amounts: Any
    gibbs_model: Any

    def __post_init__(self):
        self.formula_matrix = to_fp64(self.formula_matrix)
        self.element_amounts = to_fp64(self.element_amounts).reshape(-1)
        if self.formula_matrix.ndim != 2:
            raise ValueError(f"Formula matrix must be 2-D, got shape {self.formula_matrix.shape}")
        if self.formula_matrix.shape[0] != self.element_amounts.shape[0]:
            raise ValueError(
                f"Formula matrix has {self.formula_matrix.shape[0]} rows "
                f"but {self.element_amounts.shape[0]} element amounts were given"
            )

    @property
    def num_species(self) -> int:
        return self.formula_matrix.shape[1]

    @property
    def num_elements(self) -> int:
        return self.formula_matrix.shape[0]


class EquilibriumOptions(NamedTuple):
    """平衡计算配置"""
    hessian: str = 'exact'          # GIBBS_HESSIANS 之一
    method: str = 'ipnewton'        # 'ipnewton' | 'scipy'
    feasibility: bool = False       # 是否先做可行性预处理
    warmstart: bool = True          # 是否以 result 中的上次解为初值
    optimum: OptimumOptions = OptimumOptions()


@dataclass
class EquilibriumResult:
    """平衡计算结果：物种量 n、元素势 y、边界乘子 z 与统计信息"""
    n: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    y: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    z: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    optimum: OptimumResult = field(default_factory=OptimumResult)
    feasibility: Optional[OptimumResult] = None

    @property
    def succeeded(self) -> bool:
        return self.optimum.succeeded

    @property
    def iterations(self) -> int:
        return self.optimum.iterations


def _validate(options: EquilibriumOptions):
    if options.hessian not in GIBBS_HESSIANS:
        raise ValueError(f"Unknown Gibbs Hessian: {options.hessian!r}. Available: {list(GIBBS_HESSIANS)}")
    if options.method not in EQUILIBRIUM_METHODS:
        raise ValueError(f"Unknown equilibrium method: {options.method!r}. Available: {list(EQUILIBRIUM_METHODS)}")


# ==============================================================================
# 适配：平衡问题 → 优化问题
# ==============================================================================
def create_optimum_problem(problem: EquilibriumProblem, hessian: str = 'exact') -> OptimumProblem:
    """将平衡问题映射为 OptimumProblem

    Args:
        problem: 平衡问题
        hessian: GIBBS_HESSIANS 之一

    Returns:
        OptimumProblem (目标 G/RT，约束 W n - b)
    """
    if hessian not in GIBBS_HESSIANS:
        raise ValueError(f"Unknown Gibbs Hessian: {hessian!r}. Available: {list(GIBBS_HESSIANS)}")

    model = problem.gibbs_model
    W = problem.formula_matrix
    b = problem.element_amounts

    # f 与 g 在同一点被依次请求，只求值一次
    value_and_grad = memoize_last(jax.jit(jax.value_and_grad(model.gibbs_energy)))

    if hessian.startswith('exact'):
        hessian_fn = jax.jit(jax.hessian(model.gibbs_energy))
    else:
        hessian_fn = model.hessian_approximation
    diagonal = hessian.endswith('diagonal')

    def objective_hessian(n, g):
        H = hessian_fn(n)
        return jnp.diag(H) if diagonal else H

    return OptimumProblem(
        n=problem.num_species,
        m=problem.num_elements,
        objective=lambda n: value_and_grad(to_fp64(n))[0],
        objective_grad=lambda n: value_and_grad(to_fp64(n))[1],
        objective_hessian=objective_hessian,
        constraint=lambda n: W @ n - b,
        constraint_grad=lambda n: W,
    )


def optimum_options_for(options: EquilibriumOptions) -> OptimumOptions:
    """由 Gibbs Hessian 配置选择 Hessian 方案与 KKT 分解的配对"""
    optimum = options.optimum
    if options.hessian.endswith('diagonal'):
        return optimum._replace(hessian='diagonal', kkt=optimum.kkt._replace(method='rangespace'))
    return optimum._replace(hessian='exact')


class EquilibriumSolver:
    """化学平衡求解器

    每个实例持有各后端的求解器实例 (内部复用缓冲)，并发计算应各用一个实例。

    Example:
        solver = EquilibriumSolver()
        result = solver.solve(problem, EquilibriumResult(), EquilibriumOptions(hessian='exact-diagonal'))
    """

    def __init__(self):
        self._backends: Dict[str, Any] = {}
        self._feasible = OptimumSolverIpfeasible()

    def _backend(self, method: str):
        if method not in self._backends:
            self._backends[method] = create_optimum_solver(method)
        return self._backends[method]

    def initialize(
        self,
        problem: EquilibriumProblem,
        result: Optional[EquilibriumResult] = None,
        options: EquilibriumOptions = EquilibriumOptions()
    ) -> EquilibriumResult:
        """可行性预处理：求严格内点 n，乘子 y, z 一并写回供后续求解热启动"""
        _validate(options)
        if result is None:
            result = EquilibriumResult()

        state = OptimumState()
        if options.warmstart:
            state.x, state.y, state.z = result.n, result.y, result.z
        fresult = self._feasible.solve(
            create_optimum_problem(problem, options.hessian), state, optimum_options_for(options)
        )

        result.n = state.x
        result.y = state.y
        result.z = state.z
        result.feasibility = fresult
        return result

    def solve(
        self,
        problem: EquilibriumProblem,
        result: Optional[EquilibriumResult] = None,
        options: EquilibriumOptions = EquilibriumOptions()
    ) -> EquilibriumResult:
        """求解化学平衡

        Args:
            problem: 平衡问题
            result: 上次结果 (warmstart 时作为初值)，原地更新
            options: 配置

        Returns:
            EquilibriumResult
        """
        _validate(options)
        if result is None:
            result = EquilibriumResult()

        if options.feasibility:
            self.initialize(problem, result, options)

        optimum_problem = create_optimum_problem(problem, options.hessian)
        state = OptimumState()
        if options.warmstart or options.feasibility:
            state.x, state.y, state.z = result.n, result.y, result.z

        result.optimum = self._backend(options.method).solve(
            optimum_problem, state, optimum_options_for(options)
        )

        result.n = state.x
        result.y = state.y
        result.z = state.z
        return result


def equilibrate(
    problem: EquilibriumProblem,
    options: Optional[EquilibriumOptions] = None
) -> EquilibriumResult:
    """单次平衡计算的便捷入口"""
    return EquilibriumSolver().solve(problem, EquilibriumResult(), options or EquilibriumOptions())
