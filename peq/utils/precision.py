"""
精度控制工具模块

提供 FP64 转换和物理常数。内点迭代的所有累加与更新均在 FP64 中进行。
"""

import jax.numpy as jnp
import numpy as np


def to_fp64(x) -> jnp.ndarray:
    """将数组 (或列表、标量) 转换为 float64 的 JAX 数组

    Args:
        x: 输入数组

    Returns:
        float64 数组
    """
    return jnp.asarray(x, dtype=jnp.float64)


def as_vector(x, size: int = None) -> jnp.ndarray:
    """转换为一维 float64 向量；尺寸不符时返回 size 长度的零向量

    Args:
        x: 输入 (None、列表、numpy 或 JAX 数组)
        size: 期望长度，None 表示不检查

    Returns:
        一维 float64 数组
    """
    if x is None:
        x = np.zeros(0)
    v = to_fp64(x).reshape(-1)
    if size is not None and v.shape[0] != size:
        return jnp.zeros(size, dtype=jnp.float64)
    return v


# 常量定义
R_GAS = 8.314462618  # J/(mol·K) - 通用气体常数
P_STANDARD = 1e5     # Pa - 标准压力 (1 bar)
