"""
KKT 线性系统求解模块

每次 Newton 迭代求解线性化的原始-对偶-中心化方程组:

    H dx - A^T dy - dz = rx
    A dx               = ry
    Z dx        + X dz = rz

其中 X = diag(x), Z = diag(z)。提供三种分解策略：
- Rangespace: 消去 dz 后对 Schur 补 A G^{-1} A^T 分解 (对角 H 时最便宜)
- Fullspace:  直接 LU 分解完整的 (2n+m) 维不定系统 (最稳健)
- Nullspace:  投影到约束零空间 (m 远小于 n 时有利)

数值失败 (奇异/病态) 以布尔标志返回，不抛出异常。
"""

import time
from dataclasses import dataclass
from typing import NamedTuple

import jax
import jax.numpy as jnp
from jax import jit
from jax.scipy.linalg import lu_factor, lu_solve, solve_triangular

from peq.core.types import KktOptions, KKT_METHODS
from peq.utils.solvers import all_finite


class KktMatrix(NamedTuple):
    """KKT 系统左端: H 为 (n, n) 矩阵或 (n,) 对角向量"""
    H: jnp.ndarray
    A: jnp.ndarray
    x: jnp.ndarray
    z: jnp.ndarray


class KktVector(NamedTuple):
    """KKT 系统右端"""
    rx: jnp.ndarray
    ry: jnp.ndarray
    rz: jnp.ndarray


class KktSolution(NamedTuple):
    """KKT 系统的解 (Newton 方向)"""
    dx: jnp.ndarray
    dy: jnp.ndarray
    dz: jnp.ndarray


@dataclass
class KktResult:
    succeeded: bool = False
    time_decompose: float = 0.0
    time_solve: float = 0.0


def _lu_ok(lu):
    return jnp.all(jnp.isfinite(lu)) & jnp.all(jnp.diag(lu) != 0.0)


def _empty_lu():
    return jnp.zeros((0, 0)), jnp.zeros(0, dtype=jnp.int32)


def _dense(H):
    return jnp.diag(H) if H.ndim == 1 else H


# ==============================================================================
# Rangespace: dz = X^{-1}(rz - Z dx),  G = H + X^{-1} Z,  S = A G^{-1} A^T
# ==============================================================================

@jit
def _rangespace_decompose_diagonal(H, A, x, z):
    Ginv = 1.0 / (H + z / x)
    ok = jnp.all(jnp.isfinite(Ginv))
    if A.shape[0] == 0:
        lu, piv = _empty_lu()
        return Ginv, lu, piv, ok
    S = (A * Ginv) @ A.T
    lu, piv = lu_factor(S)
    return Ginv, lu, piv, ok & _lu_ok(lu)


@jit
def _rangespace_solve_diagonal(Ginv, lu, piv, A, x, z, rx, ry, rz):
    r = rx + rz / x
    if A.shape[0] == 0:
        dy = jnp.zeros(0)
    else:
        dy = lu_solve((lu, piv), ry - A @ (Ginv * r))
    dx = Ginv * (r + A.T @ dy)
    dz = (rz - z * dx) / x
    return dx, dy, dz


@jit
def _rangespace_decompose_dense(H, A, x, z):
    G = H + jnp.diag(z / x)
    G_lu, G_piv = lu_factor(G)
    ok = _lu_ok(G_lu)
    if A.shape[0] == 0:
        lu, piv = _empty_lu()
        return G_lu, G_piv, jnp.zeros((x.shape[0], 0)), lu, piv, ok
    GinvAt = lu_solve((G_lu, G_piv), A.T)
    lu, piv = lu_factor(A @ GinvAt)
    return G_lu, G_piv, GinvAt, lu, piv, ok & _lu_ok(lu)


@jit
def _rangespace_solve_dense(G_lu, G_piv, GinvAt, lu, piv, A, x, z, rx, ry, rz):
    r = rx + rz / x
    u = lu_solve((G_lu, G_piv), r)
    if A.shape[0] == 0:
        dy = jnp.zeros(0)
    else:
        dy = lu_solve((lu, piv), ry - A @ u)
    dx = u + GinvAt @ dy
    dz = (rz - z * dx) / x
    return dx, dy, dz


class RangespaceKkt:
    """Schur 补 (值域空间) 分解"""

    def decompose(self, lhs: KktMatrix) -> bool:
        self.lhs = lhs
        if lhs.H.ndim == 1:
            *self.factors, ok = _rangespace_decompose_diagonal(*lhs)
        else:
            *self.factors, ok = _rangespace_decompose_dense(*lhs)
        return bool(ok)

    def solve(self, rhs: KktVector) -> KktSolution:
        _, A, x, z = self.lhs
        if self.lhs.H.ndim == 1:
            dx, dy, dz = _rangespace_solve_diagonal(*self.factors, A, x, z, *rhs)
        else:
            dx, dy, dz = _rangespace_solve_dense(*self.factors, A, x, z, *rhs)
        return KktSolution(dx, dy, dz)


# ==============================================================================
# Fullspace: 完整 (2n+m) 维系统的 LU 分解
# ==============================================================================

@jit
def _fullspace_decompose(H, A, x, z):
    n, m = x.shape[0], A.shape[0]
    K = jnp.zeros((2 * n + m, 2 * n + m))
    K = K.at[:n, :n].set(_dense(H))
    K = K.at[:n, n:n + m].set(-A.T)
    K = K.at[:n, n + m:].set(-jnp.eye(n))
    K = K.at[n:n + m, :n].set(A)
    K = K.at[n + m:, :n].set(jnp.diag(z))
    K = K.at[n + m:, n + m:].set(jnp.diag(x))
    lu, piv = lu_factor(K)
    return lu, piv, _lu_ok(lu)


@jit
def _fullspace_solve(lu, piv, rx, ry, rz):
    n, m = rx.shape[0], ry.shape[0]
    sol = lu_solve((lu, piv), jnp.concatenate([rx, ry, rz]))
    return sol[:n], sol[n:n + m], sol[n + m:]


class FullspaceKkt:
    """完整不定系统的直接 LU 分解"""

    def decompose(self, lhs: KktMatrix) -> bool:
        *self.factors, ok = _fullspace_decompose(*lhs)
        return bool(ok)

    def solve(self, rhs: KktVector) -> KktSolution:
        dx, dy, dz = _fullspace_solve(*self.factors, *rhs)
        return KktSolution(dx, dy, dz)


# ==============================================================================
# Nullspace: A^T = [Q1 Q2] R,  dx = Q1 w + Q2 v
# ==============================================================================

@jit
def _nullspace_decompose(H, A, x, z):
    n, m = x.shape[0], A.shape[0]
    G = _dense(H) + jnp.diag(z / x)
    if m == 0:
        Q, R1 = jnp.eye(n), jnp.zeros((0, 0))
    else:
        Q, R = jnp.linalg.qr(A.T, mode='complete')
        R1 = R[:m, :]
    Q1, Q2 = Q[:, :m], Q[:, m:]
    ok = jnp.all(jnp.isfinite(Q)) & jnp.all(jnp.diag(R1) != 0.0)
    if m < n:
        lu, piv = lu_factor(Q2.T @ G @ Q2)
        ok = ok & _lu_ok(lu)
    else:
        lu, piv = _empty_lu()
    return G, Q1, Q2, R1, lu, piv, ok


@jit
def _nullspace_solve(G, Q1, Q2, R1, lu, piv, x, z, rx, ry, rz):
    n, m = x.shape[0], R1.shape[0]
    r = rx + rz / x
    # R^T w = ry 给出满足 A dx = ry 的特解
    w = solve_triangular(R1.T, ry, lower=True) if m > 0 else jnp.zeros(0)
    dx = Q1 @ w
    if m < n:
        v = lu_solve((lu, piv), Q2.T @ (r - G @ dx))
        dx = dx + Q2 @ v
    dy = solve_triangular(R1, Q1.T @ (G @ dx - r), lower=False) if m > 0 else jnp.zeros(0)
    dz = (rz - z * dx) / x
    return dx, dy, dz


class NullspaceKkt:
    """约束零空间投影分解 (要求 m <= n 且 A 行满秩)"""

    def decompose(self, lhs: KktMatrix) -> bool:
        self.lhs = lhs
        if lhs.A.shape[0] > lhs.x.shape[0]:
            return False
        *self.factors, ok = _nullspace_decompose(*lhs)
        return bool(ok)

    def solve(self, rhs: KktVector) -> KktSolution:
        dx, dy, dz = _nullspace_solve(*self.factors, self.lhs.x, self.lhs.z, *rhs)
        return KktSolution(dx, dy, dz)


_KKT_VARIANTS = {
    'rangespace': RangespaceKkt,
    'fullspace': FullspaceKkt,
    'nullspace': NullspaceKkt,
}


class KktSolver:
    """KKT 求解器：配置时选定一种分解策略，迭代中不再切换

    Example:
        kkt = KktSolver(KktOptions(method='rangespace'))
        if kkt.decompose(KktMatrix(H, A, x, z)):
            sol = kkt.solve(KktVector(rx, ry, rz))
    """

    def __init__(self, options: KktOptions = KktOptions()):
        self.result = KktResult()
        self.set_options(options)

    def set_options(self, options: KktOptions):
        if options.method not in _KKT_VARIANTS:
            raise ValueError(f"Unknown KKT method: {options.method!r}. Available: {list(KKT_METHODS)}")
        self.options = options
        self.variant = _KKT_VARIANTS[options.method]()

    def decompose(self, lhs: KktMatrix) -> bool:
        """分解 KKT 矩阵，失败返回 False"""
        begin = time.perf_counter()
        ok = self.variant.decompose(lhs)
        self.result.time_decompose = time.perf_counter() - begin
        self.result.succeeded = ok
        return ok

    def solve(self, rhs: KktVector) -> KktSolution:
        """回代求解 Newton 方向；非有限解记为失败"""
        begin = time.perf_counter()
        sol = jax.block_until_ready(self.variant.solve(rhs))
        self.result.time_solve = time.perf_counter() - begin
        self.result.succeeded = self.result.succeeded and all_finite(*sol)
        return sol
