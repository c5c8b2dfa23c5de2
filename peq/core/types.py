# peq/core/types.py
import math
from dataclasses import dataclass, field
from typing import Callable, NamedTuple, Optional, TextIO, Tuple

import jax.numpy as jnp

"""
PEQ 核心数据结构

优化问题 (Problem)、迭代状态 (State)、运行配置 (Options) 与结果 (Result)。
Problem/Options 不可变 (NamedTuple)，State/Result 可变 (dataclass)。
"""

HESSIAN_SCHEMES = ('exact', 'diagonal')
KKT_METHODS = ('rangespace', 'fullspace', 'nullspace')


def _empty() -> jnp.ndarray:
    return jnp.zeros(0, dtype=jnp.float64)


class OptimumProblem(NamedTuple):
    """
    非线性优化问题: min f(x)  s.t.  h(x) = 0, x > 0

    所有回调均为纯函数，可在任意点重复求值。
    objective_hessian 可返回 (n, n) 矩阵或 (n,) 对角向量。
    """
    n: int                          # 变量数
    m: int                          # 等式约束数
    objective: Callable             # f(x) -> float
    objective_grad: Callable        # g(x) -> (n,)
    objective_hessian: Callable     # H(x, g) -> (n, n) 或 (n,)
    constraint: Callable            # h(x) -> (m,)
    constraint_grad: Callable       # A(x) -> (m, n)


@dataclass
class OptimumState:
    """
    内点迭代状态 (原地更新)

    x: 原变量 (迭代中严格为正)
    y: 等式约束乘子
    z: 边界乘子 (迭代中严格为正)
    f, g, h, A: 在当前 x 处的缓存求值
    """
    x: jnp.ndarray = field(default_factory=_empty)
    y: jnp.ndarray = field(default_factory=_empty)
    z: jnp.ndarray = field(default_factory=_empty)
    f: float = 0.0
    g: jnp.ndarray = field(default_factory=_empty)
    h: jnp.ndarray = field(default_factory=_empty)
    A: jnp.ndarray = field(default_factory=lambda: jnp.zeros((0, 0)))


class KktOptions(NamedTuple):
    """KKT 线性系统求解配置"""
    method: str = 'fullspace'       # 'rangespace' | 'fullspace' | 'nullspace'


class IpnewtonOptions(NamedTuple):
    """内点 Newton 法配置"""
    mu: float = 1e-20               # 障碍参数 (整个求解过程中固定)
    mux: float = 1e-5               # 初值内点裕度因子: x >= mux * mu
    tau: float = 0.99               # 边界分数步长保护 tau ∈ (0, 1)
    uniform_newton_step: bool = False  # True: x, y, z 共用同一步长


class OutputOptions(NamedTuple):
    """迭代诊断输出配置"""
    active: bool = False
    xprefix: str = 'x'
    yprefix: str = 'y'
    zprefix: str = 'z'
    xnames: Tuple[str, ...] = ()
    ynames: Tuple[str, ...] = ()
    znames: Tuple[str, ...] = ()
    width: int = 12
    precision: int = 4
    stream: Optional[TextIO] = None  # None 表示 stdout


class OptimumOptions(NamedTuple):
    """优化器配置 (单次求解期间不可变)"""
    tolerance: float = 1e-6
    max_iterations: int = 2000
    hessian: str = 'exact'          # 'exact' | 'diagonal'
    kkt: KktOptions = KktOptions()
    ipnewton: IpnewtonOptions = IpnewtonOptions()
    output: OutputOptions = OutputOptions()


@dataclass
class OptimumResult:
    """
    单次求解结果

    status: 'running' | 'converged' | 'iteration_limit' | 'numeric_failure'
    """
    succeeded: bool = False
    iterations: int = 0
    error: float = math.inf
    time: float = 0.0               # 总耗时 (s)
    time_linear_systems: float = 0.0  # KKT 分解 + 回代累计耗时 (s)
    status: str = 'running'


def validate_options(options: OptimumOptions) -> None:
    """在求解开始前检查配置，非法配置抛出 ValueError"""
    if options.hessian not in HESSIAN_SCHEMES:
        raise ValueError(f"Unknown Hessian scheme: {options.hessian!r}. Available: {list(HESSIAN_SCHEMES)}")
    if options.kkt.method not in KKT_METHODS:
        raise ValueError(f"Unknown KKT method: {options.kkt.method!r}. Available: {list(KKT_METHODS)}")
    if options.max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {options.max_iterations}")
    if not options.ipnewton.mu > 0.0:
        raise ValueError(f"mu must be positive, got {options.ipnewton.mu}")
    if not 0.0 < options.ipnewton.tau < 1.0:
        raise ValueError(f"tau must lie in (0, 1), got {options.ipnewton.tau}")
