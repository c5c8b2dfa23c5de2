import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np
import pytest

from peq.core.equilibrium import (
    EquilibriumProblem, EquilibriumOptions, EquilibriumResult, EquilibriumSolver,
    equilibrate, build_formula_matrix, create_optimum_problem, optimum_options_for,
)
from peq.core.batch import ChemicalSolver
from peq.core.types import OptimumOptions
from peq.physics.gibbs import IdealGibbsModel, PhaseSpec, ideal_gas_model

SPECIES = ('H2', 'O2', 'H2O')
ELEMENTS = ('H', 'O')
U0 = jnp.array([0.0, 0.0, -5.0])    # g0/RT (示意值)


def water_problem(b=(2.0, 1.0), u0=U0) -> EquilibriumProblem:
    W = build_formula_matrix(SPECIES, ELEMENTS)
    return EquilibriumProblem(W, jnp.array(b), ideal_gas_model(u0))


def solve_from_guess(problem, options, n0=None) -> EquilibriumResult:
    if n0 is None:
        n0 = jnp.ones(problem.num_species)
    return EquilibriumSolver().solve(problem, EquilibriumResult(n=jnp.asarray(n0)), options)


def check_equilibrium(problem: EquilibriumProblem, result: EquilibriumResult, atol=1e-6):
    """元素守恒 + 化学势条件 u0 + ln x - W^T y = z ≈ 0"""
    n = np.asarray(result.n)
    W = np.asarray(problem.formula_matrix)
    b = np.asarray(problem.element_amounts)
    np.testing.assert_allclose(W @ n, b, atol=1e-8)

    mu = np.asarray(problem.gibbs_model.chemical_potentials(result.n))
    np.testing.assert_allclose(mu - W.T @ np.asarray(result.y), np.asarray(result.z), atol=atol)
    assert np.all(n > 0.0)


def test_build_formula_matrix():
    W = build_formula_matrix(SPECIES, ELEMENTS)
    np.testing.assert_array_equal(W, [[2.0, 0.0, 2.0], [0.0, 2.0, 1.0]])

    W2 = build_formula_matrix(('X2Y',), ('X', 'Y'), {'X2Y': {'X': 2, 'Y': 1}})
    np.testing.assert_array_equal(W2, [[2.0], [1.0]])

    with pytest.raises(KeyError):
        build_formula_matrix(('Unobtainium',), ELEMENTS)


def test_problem_dimension_check():
    W = build_formula_matrix(SPECIES, ELEMENTS)
    with pytest.raises(ValueError):
        EquilibriumProblem(W, jnp.array([1.0, 2.0, 3.0]), ideal_gas_model(U0))


def test_water_equilibrium():
    problem = water_problem()
    options = EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10))
    result = equilibrate(problem, options)

    print("Water equilibrium:")
    for s, n in zip(SPECIES, result.n):
        print(f"  {s}: {float(n):.6e}")
    print(f"  iterations={result.iterations}, error={result.optimum.error:.2e}")

    assert result.succeeded
    check_equilibrium(problem, result)

    # 平衡常数: x_H2^2 x_O2 / x_H2O^2 = exp(2*u0_H2O)
    x = np.asarray(result.n) / float(jnp.sum(result.n))
    K = x[0]**2 * x[1] / x[2]**2
    assert K == pytest.approx(np.exp(-10.0), rel=1e-6)


@pytest.mark.parametrize("hessian", ['exact', 'exact-diagonal', 'approximation', 'approximation-diagonal'])
def test_hessian_variants_agree(hessian):
    problem = water_problem()
    reference = solve_from_guess(problem, EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10)))

    options = EquilibriumOptions(hessian=hessian, optimum=OptimumOptions(tolerance=1e-10))
    result = solve_from_guess(problem, options)

    assert result.succeeded
    np.testing.assert_allclose(result.n, reference.n, rtol=1e-6, atol=1e-10)
    np.testing.assert_allclose(result.y, reference.y, atol=1e-6)


def test_hessian_pairing():
    base = EquilibriumOptions()
    assert optimum_options_for(base).hessian == 'exact'
    assert optimum_options_for(base).kkt.method == 'fullspace'

    diag = optimum_options_for(base._replace(hessian='approximation-diagonal'))
    assert diag.hessian == 'diagonal'
    assert diag.kkt.method == 'rangespace'


def test_exact_hessian_matches_approximation():
    problem = water_problem()
    n = jnp.array([0.3, 0.2, 1.5])
    exact = create_optimum_problem(problem, 'exact')
    approx = create_optimum_problem(problem, 'approximation')
    np.testing.assert_allclose(exact.objective_hessian(n, None), approx.objective_hessian(n, None), atol=1e-12)

    diag = create_optimum_problem(problem, 'exact-diagonal')
    assert diag.objective_hessian(n, None).shape == (3,)

    g = exact.objective_grad(n)
    np.testing.assert_allclose(g, problem.gibbs_model.chemical_potentials(n), atol=1e-12)


def test_warm_start_reduces_iterations():
    problem = water_problem()
    options = EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10))
    solver = EquilibriumSolver()
    result = EquilibriumResult(n=jnp.ones(3))

    solver.solve(problem, result, options)
    cold_iterations = result.iterations
    n_cold = result.n

    # 相同问题再次求解：从上次的解出发
    solver.solve(problem, result, options)
    print(f"cold={cold_iterations}, warm={result.iterations}")
    assert result.succeeded
    assert result.iterations <= cold_iterations
    np.testing.assert_allclose(result.n, n_cold, rtol=1e-8)


def test_feasibility_prepass():
    problem = water_problem()
    options = EquilibriumOptions(feasibility=True, warmstart=False, optimum=OptimumOptions(tolerance=1e-10))
    result = EquilibriumSolver().solve(problem, EquilibriumResult(), options)

    assert result.feasibility is not None
    assert result.feasibility.succeeded
    assert result.succeeded
    check_equilibrium(problem, result)


def test_initialize_returns_interior_point():
    problem = water_problem()
    result = EquilibriumSolver().initialize(problem, EquilibriumResult(), EquilibriumOptions())
    W = np.asarray(problem.formula_matrix)
    np.testing.assert_allclose(W @ np.asarray(result.n), [2.0, 1.0], atol=1e-6)
    assert np.all(np.asarray(result.n) > 0.0)
    # 预处理的乘子一并保留
    assert result.y.shape == (2,)
    assert result.z.shape == (3,)
    assert np.all(np.asarray(result.z) > 0.0)
    assert result.feasibility is not None


def test_solve_after_initialize():
    problem = water_problem()
    solver = EquilibriumSolver()
    options = EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10))
    result = solver.initialize(problem, EquilibriumResult(), options)
    result = solver.solve(problem, result, options)

    assert result.succeeded
    check_equilibrium(problem, result)


def test_scipy_method():
    problem = water_problem()
    options = EquilibriumOptions(method='scipy', optimum=OptimumOptions(tolerance=1e-10, max_iterations=1000))
    result = EquilibriumSolver().solve(problem, EquilibriumResult(n=jnp.array([0.5, 0.5, 1.0])), options)
    reference = solve_from_guess(problem, EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10)))

    assert result.optimum.status in ('converged', 'iteration_limit')
    np.testing.assert_allclose(result.n, reference.n, rtol=1e-2, atol=1e-4)


def test_invalid_options():
    problem = water_problem()
    with pytest.raises(ValueError):
        equilibrate(problem, EquilibriumOptions(hessian='bfgs'))
    with pytest.raises(ValueError):
        equilibrate(problem, EquilibriumOptions(method='simplex'))


def test_condensed_phase():
    # 气相 {CO, CO2, O2} + 纯固相 C
    species = ('CO', 'CO2', 'O2', 'C_graphite')
    W = build_formula_matrix(species, ('C', 'O'))
    model = IdealGibbsModel(
        jnp.array([-2.0, -8.0, 0.0, 0.0]),
        phases=[PhaseSpec('gas', (0, 1, 2), 'gas'), PhaseSpec('graphite', (3,), 'solid')],
    )
    problem = EquilibriumProblem(W, jnp.array([1.0, 1.5]), model)
    result = solve_from_guess(problem, EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10)))

    assert result.succeeded
    np.testing.assert_allclose(np.asarray(W) @ np.asarray(result.n), [1.0, 1.5], atol=1e-8)


def test_batch_solver():
    W = build_formula_matrix(SPECIES, ELEMENTS)
    b = jnp.array([[2.0, 1.0], [4.0, 2.0], [2.0, 2.0]])
    solver = ChemicalSolver(W, ideal_gas_model(U0), 3, EquilibriumOptions(optimum=OptimumOptions(tolerance=1e-10)))
    solver.set_state_all(jnp.ones(3))

    results = solver.equilibrate(b)

    assert len(results) == 3
    assert all(r.succeeded for r in results)
    states = solver.states()
    assert states.shape == (3, 3)
    np.testing.assert_allclose(states @ np.asarray(W).T, b, atol=1e-8)
    # 元素量加倍 → 物种量加倍 (理想气体, 固定 P)
    np.testing.assert_allclose(states[1], 2.0 * states[0], rtol=1e-6)


def test_batch_subset_state():
    W = build_formula_matrix(SPECIES, ELEMENTS)
    solver = ChemicalSolver(W, ideal_gas_model(U0), 2)
    solver.set_state_subset(jnp.array([1.0, 2.0, 3.0]), [1])
    states = solver.states()
    np.testing.assert_array_equal(states[0], jnp.zeros(3))
    np.testing.assert_array_equal(states[1], [1.0, 2.0, 3.0])

    with pytest.raises(ValueError):
        solver.equilibrate(jnp.ones((3, 2)))


if __name__ == "__main__":
    test_water_equilibrium()
    test_warm_start_reduces_iterations()
    test_batch_solver()
    print("Equilibrium tests passed.")
