"""
多样本化学平衡求解器

每个样本持有独立的 EquilibriumSolver 与 EquilibriumResult，样本之间互不影响；
上一次的结果自动作为下一次计算的初值 (warmstart)。
"""

from typing import List, Optional, Sequence

import jax.numpy as jnp

from peq.core.equilibrium import (
    EquilibriumProblem, EquilibriumOptions, EquilibriumResult, EquilibriumSolver,
)
from peq.utils.precision import to_fp64


class ChemicalSolver:
    """多样本平衡求解器

    Args:
        formula_matrix: 公式矩阵 W (n_elements, n_species)
        gibbs_model: Gibbs 模型，或每个样本一个模型的列表
        num_samples: 样本数
        options: 平衡计算配置 (所有样本共用)

    Example:
        solver = ChemicalSolver(W, model, 3)
        solver.set_state_all(jnp.ones(W.shape[1]))
        results = solver.equilibrate(b_samples)   # (3, n_elements)
    """

    def __init__(
        self,
        formula_matrix,
        gibbs_model,
        num_samples: int,
        options: Optional[EquilibriumOptions] = None
    ):
        if num_samples < 1:
            raise ValueError(f"num_samples must be >= 1, got {num_samples}")
        if isinstance(gibbs_model, (list, tuple)):
            if len(gibbs_model) != num_samples:
                raise ValueError(f"Expected {num_samples} Gibbs models, got {len(gibbs_model)}")
            self.models = list(gibbs_model)
        else:
            self.models = [gibbs_model] * num_samples

        self.formula_matrix = to_fp64(formula_matrix)
        self.num_samples = num_samples
        self.options = options or EquilibriumOptions()
        self.solvers = [EquilibriumSolver() for _ in range(num_samples)]
        self.results = [EquilibriumResult() for _ in range(num_samples)]

    @property
    def num_species(self) -> int:
        return self.formula_matrix.shape[1]

    def set_state_all(self, n):
        """所有样本使用同一初始物种量"""
        n = to_fp64(n).reshape(-1)
        for result in self.results:
            result.n = n

    def set_state_subset(self, n, indices: Sequence[int]):
        """指定样本使用同一初始物种量"""
        n = to_fp64(n).reshape(-1)
        for i in indices:
            self.results[i].n = n

    def states(self) -> jnp.ndarray:
        """当前各样本物种量 (num_samples, n_species)；未求解的样本为零"""
        rows = [
            r.n if r.n.shape[0] == self.num_species else jnp.zeros(self.num_species)
            for r in self.results
        ]
        return jnp.stack(rows)

    def equilibrate(self, element_amounts) -> List[EquilibriumResult]:
        """逐样本求解平衡

        Args:
            element_amounts: 元素总量 (num_samples, n_elements)

        Returns:
            每个样本的 EquilibriumResult
        """
        b = to_fp64(element_amounts)
        if b.ndim != 2 or b.shape[0] != self.num_samples:
            raise ValueError(f"element_amounts must have shape ({self.num_samples}, E), got {b.shape}")

        for k in range(self.num_samples):
            problem = EquilibriumProblem(self.formula_matrix, b[k], self.models[k])
            self.solvers[k].solve(problem, self.results[k], self.options)
            if not self.results[k].succeeded:
                print(f"WARNING: sample {k} did not converge "
                      f"(status={self.results[k].optimum.status}, error={self.results[k].optimum.error:.3e})")
        return self.results
