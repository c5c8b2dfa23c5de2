import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np
import pytest

from peq.core.types import KktOptions
from peq.solver.kkt import KktSolver, KktMatrix, KktVector


def reference_solve(H, A, x, z, rx, ry, rz):
    """稠密参考解：直接求解完整 (2n+m) 维系统"""
    H = np.diag(H) if np.ndim(H) == 1 else np.asarray(H)
    A = np.asarray(A)
    n, m = len(x), A.shape[0]
    K = np.zeros((2 * n + m, 2 * n + m))
    K[:n, :n] = H
    K[:n, n:n + m] = -A.T
    K[:n, n + m:] = -np.eye(n)
    K[n:n + m, :n] = A
    K[n + m:, :n] = np.diag(z)
    K[n + m:, n + m:] = np.diag(x)
    sol = np.linalg.solve(K, np.concatenate([rx, ry, rz]))
    return sol[:n], sol[n:n + m], sol[n + m:]


def make_system(dense: bool):
    rng = np.random.default_rng(7)
    n, m = 5, 2
    B = rng.normal(size=(n, n))
    H = B @ B.T + n * np.eye(n) if dense else rng.uniform(1.0, 3.0, size=n)
    A = rng.normal(size=(m, n))
    x = rng.uniform(0.5, 2.0, size=n)
    z = rng.uniform(0.1, 1.0, size=n)
    rhs = (rng.normal(size=n), rng.normal(size=m), rng.normal(size=n))
    return H, A, x, z, rhs


@pytest.mark.parametrize("method", ["rangespace", "fullspace", "nullspace"])
@pytest.mark.parametrize("dense", [True, False])
def test_kkt_matches_reference(method, dense):
    H, A, x, z, (rx, ry, rz) = make_system(dense)
    kkt = KktSolver(KktOptions(method=method))

    assert kkt.decompose(KktMatrix(jnp.asarray(H), jnp.asarray(A), jnp.asarray(x), jnp.asarray(z)))
    sol = kkt.solve(KktVector(jnp.asarray(rx), jnp.asarray(ry), jnp.asarray(rz)))
    assert kkt.result.succeeded

    dx, dy, dz = reference_solve(H, A, x, z, rx, ry, rz)
    print(f"[{method}, dense={dense}] |dx - ref| = {np.max(np.abs(np.asarray(sol.dx) - dx)):.2e}")
    np.testing.assert_allclose(sol.dx, dx, atol=1e-10)
    np.testing.assert_allclose(sol.dy, dy, atol=1e-10)
    np.testing.assert_allclose(sol.dz, dz, atol=1e-10)


@pytest.mark.parametrize("method", ["rangespace", "fullspace", "nullspace"])
def test_kkt_without_constraints(method):
    H, _, x, z, (rx, _, rz) = make_system(dense=False)
    A = np.zeros((0, len(x)))
    ry = np.zeros(0)

    kkt = KktSolver(KktOptions(method=method))
    assert kkt.decompose(KktMatrix(jnp.asarray(H), jnp.asarray(A), jnp.asarray(x), jnp.asarray(z)))
    sol = kkt.solve(KktVector(jnp.asarray(rx), jnp.asarray(ry), jnp.asarray(rz)))

    # 无约束时 (H + Z/X) dx = rx + rz/x
    expected = (rx + rz / x) / (H + z / x)
    np.testing.assert_allclose(sol.dx, expected, atol=1e-12)
    assert sol.dy.shape == (0,)


def test_rangespace_reports_singular_system():
    n = 3
    x = jnp.ones(n)
    z = jnp.full(n, 2.0)
    H = -z / x  # G = H + Z/X = 0
    A = jnp.ones((1, n))

    kkt = KktSolver(KktOptions(method='rangespace'))
    assert not kkt.decompose(KktMatrix(H, A, x, z))
    assert not kkt.result.succeeded


def test_nullspace_rejects_overdetermined():
    n, m = 2, 3
    kkt = KktSolver(KktOptions(method='nullspace'))
    ok = kkt.decompose(KktMatrix(jnp.ones(n), jnp.ones((m, n)), jnp.ones(n), jnp.ones(n)))
    assert not ok


def test_unknown_method():
    with pytest.raises(ValueError):
        KktSolver(KktOptions(method='cholesky'))


def test_timings_recorded():
    H, A, x, z, rhs = make_system(dense=True)
    kkt = KktSolver(KktOptions(method='fullspace'))
    kkt.decompose(KktMatrix(*map(jnp.asarray, (H, A, x, z))))
    kkt.solve(KktVector(*map(jnp.asarray, rhs)))
    assert kkt.result.time_decompose >= 0.0
    assert kkt.result.time_solve >= 0.0


if __name__ == "__main__":
    for method in ("rangespace", "fullspace", "nullspace"):
        test_kkt_matches_reference(method, True)
        test_kkt_matches_reference(method, False)
    test_rangespace_reports_singular_system()
    print("KKT tests passed.")
