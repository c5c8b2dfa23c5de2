"""
热力学函数模块

基于 NASA 多项式计算标准态热力学函数 (Cp, H, S, G)，
并提供平衡计算所需的无量纲标准化学势 g0/RT。
"""

import jax
import jax.numpy as jnp

from peq.utils.precision import R_GAS, P_STANDARD, to_fp64


def _cp_7(c, t):
    return c[0] + c[1]*t + c[2]*t**2 + c[3]*t**3 + c[4]*t**4


def _cp_9(c, t):
    t_inv = 1.0 / t
    return c[0]*t_inv**2 + c[1]*t_inv + c[2] + c[3]*t + c[4]*t**2 + c[5]*t**3 + c[6]*t**4


def _h_7(c, t):
    # H/RT = a1 + a2*T/2 + ... + a6/T
    return c[0] + c[1]*t/2.0 + c[2]*t**2/3.0 + c[3]*t**3/4.0 + c[4]*t**4/5.0 + c[5]/t


def _h_9(c, t):
    # H/RT = -a1*T^-2 + a2*T^-1*lnT + a3 + a4*T/2 + ... + a8/T
    t_inv = 1.0 / t
    poly = c[2] + c[3]*t/2.0 + c[4]*t**2/3.0 + c[5]*t**3/4.0 + c[6]*t**4/5.0
    return -c[0]*t_inv**2 + c[1]*t_inv*jnp.log(t) + poly + c[7]*t_inv


def _s_7(c, t):
    # S/R = a1*lnT + a2*T + ... + a7
    return c[0]*jnp.log(t) + c[1]*t + c[2]*t**2/2.0 + c[3]*t**3/3.0 + c[4]*t**4/4.0 + c[6]


def _s_9(c, t):
    # S/R = -a1*T^-2/2 - a2*T^-1 + a3*lnT + a4*T + ... + a9
    t_inv = 1.0 / t
    poly = c[3]*t + c[4]*t**2/2.0 + c[5]*t**3/3.0 + c[6]*t**4/4.0
    return -c[0]*t_inv**2/2.0 - c[1]*t_inv + c[2]*jnp.log(t) + poly + c[8]


@jax.jit
def compute_cp(coeffs: jnp.ndarray, T: float) -> float:
    """计算定压热容 Cp (支持 NASA 7 和 NASA 9)

    NASA 7 (len=7):
    Cp/R = a1 + a2*T + a3*T^2 + a4*T^3 + a5*T^4

    NASA 9 (len=9):
    Cp/R = a1*T^-2 + a2*T^-1 + a3 + a4*T + a5*T^2 + a6*T^3 + a7*T^4

    Args:
        coeffs: NASA 系数数组 (长度在 trace 时静态可知)
        T: 温度 (K)

    Returns:
        Cp (J/(mol·K))
    """
    T = to_fp64(T)
    val = _cp_9(coeffs, T) if coeffs.shape[0] == 9 else _cp_7(coeffs, T)
    return R_GAS * val


@jax.jit
def compute_enthalpy(coeffs: jnp.ndarray, T: float) -> float:
    """计算摩尔焓 H (J/mol)"""
    T = to_fp64(T)
    h_over_rt = _h_9(coeffs, T) if coeffs.shape[0] == 9 else _h_7(coeffs, T)
    return R_GAS * T * h_over_rt


@jax.jit
def compute_entropy(coeffs: jnp.ndarray, T: float) -> float:
    """计算摩尔熵 S (J/(mol·K))"""
    T = to_fp64(T)
    s_over_r = _s_9(coeffs, T) if coeffs.shape[0] == 9 else _s_7(coeffs, T)
    return R_GAS * s_over_r


@jax.jit
def compute_gibbs(coeffs: jnp.ndarray, T: float, P: float = P_STANDARD) -> float:
    """计算摩尔吉布斯自由能 G

    G = H - T*S + R*T*ln(P/P0)

    对于理想气体，包含压力修正项。

    Args:
        coeffs: NASA 系数
        T: 温度 (K)
        P: 压力 (Pa)，默认 1e5 (1 bar)

    Returns:
        G (J/mol)
    """
    T = to_fp64(T)
    P = to_fp64(P)

    H = compute_enthalpy(coeffs, T)
    S = compute_entropy(coeffs, T)

    return H - T * S + R_GAS * T * jnp.log(P / P_STANDARD)


@jax.jit
def compute_standard_chemical_potentials(
    coeffs_low: jnp.ndarray,
    coeffs_high: jnp.ndarray,
    T: float,
    T_mid: float = 1000.0
) -> jnp.ndarray:
    """批量计算无量纲标准化学势 g0/RT

    T > T_mid 时使用高温系数，否则使用低温系数。

    Args:
        coeffs_low: 低温系数 (n_species, 7|9)
        coeffs_high: 高温系数 (n_species, 7|9)
        T: 温度 (K)
        T_mid: 分段温度 (K)

    Returns:
        g0/RT 数组 (n_species,)
    """
    T = to_fp64(T)
    coeffs = jnp.where(T > T_mid, to_fp64(coeffs_high), to_fp64(coeffs_low))

    def _g0_over_rt(c):
        return compute_gibbs(c, T) / (R_GAS * T)

    return jax.vmap(_g0_over_rt)(coeffs)
