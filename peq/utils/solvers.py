"""
内点 Newton 步长与误差工具模块

实现边界分数规则 (fraction-to-the-boundary) 与 KKT 残差范数。
设计原则：
- 纯函数 + JIT，便于单独测试
- 全部在 FP64 中计算
"""

import jax
import jax.numpy as jnp
from typing import NamedTuple


class NewtonErrors(NamedTuple):
    """KKT 残差 (无穷范数)"""
    stationarity: float     # ||g - A^T y - z||
    feasibility: float      # ||h||
    centrality: float       # ||x∘z - mu||
    error: float            # 三者最大值


class StepLengths(NamedTuple):
    """本次迭代的步长"""
    alpha: float
    alphax: float
    alphaz: float


@jax.jit
def norminf(v: jnp.ndarray) -> jnp.ndarray:
    """无穷范数 (空向量返回 0)"""
    return jnp.max(jnp.abs(v), initial=0.0)


@jax.jit
def fraction_to_the_boundary(p: jnp.ndarray, dp: jnp.ndarray, tau: float) -> jnp.ndarray:
    """边界分数规则

    alpha = min(1, min_{dp_i < 0} (-tau * p_i / dp_i))

    保证 p + alpha * dp >= (1 - tau) * p > 0。

    Args:
        p: 当前正向量
        dp: 搜索方向
        tau: 保护因子 (0, 1)

    Returns:
        步长 alpha ∈ (0, 1]
    """
    safe_dp = jnp.where(dp < 0.0, dp, -1.0)
    ratios = jnp.where(dp < 0.0, -tau * p / safe_dp, 1.0)
    return jnp.min(ratios, initial=1.0)


@jax.jit
def _error_norms(x, y, z, g, h, A, mu):
    errorf = norminf(g - A.T @ y - z)
    errorh = norminf(h)
    errorc = norminf(x * z - mu)
    return errorf, errorh, errorc


def compute_error_norms(x, y, z, g, h, A, mu: float) -> NewtonErrors:
    """计算最优性、可行性、中心性误差

    Args:
        x, y, z: 当前迭代点
        g: 目标梯度
        h: 约束值
        A: 约束 Jacobian
        mu: 障碍参数

    Returns:
        NewtonErrors
    """
    errorf, errorh, errorc = _error_norms(x, y, z, g, h, A, mu)
    errorf, errorh, errorc = float(errorf), float(errorh), float(errorc)
    return NewtonErrors(
        stationarity=errorf,
        feasibility=errorh,
        centrality=errorc,
        error=max(errorf, errorh, errorc),
    )


def all_finite(*arrays) -> bool:
    """检查所有数组 (或标量) 是否均为有限值"""
    return all(bool(jnp.all(jnp.isfinite(jnp.asarray(a)))) for a in arrays)
