"""
理想混合 Gibbs 能模型

化学平衡适配层的参考热力学模型 (外部协作者边界)：

    G/RT = Σ n_i (u0_i + ln a_i)

- 多组分相: ln a_i = ln(n_i / n_phase)，气相另加 ln(P/P0)
- 纯相 (单一物种): ln a_i = 0
"""

from typing import NamedTuple, Optional, Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from peq.utils.precision import P_STANDARD, to_fp64


class PhaseSpec(NamedTuple):
    """相定义"""
    name: str
    species: Tuple[int, ...]    # 物种全局索引
    kind: str = 'gas'           # 'gas' | 'liquid' | 'solid'


class IdealGibbsModel:
    """理想混合 Gibbs 能模型

    Args:
        u0: 标准化学势 g0/RT (n_species,)
        phases: 相列表，None 表示所有物种构成单一气相
        P: 压力 (Pa)
        epsilon: 对数中物种量的下限，避免 ln(0)
    """

    def __init__(
        self,
        u0,
        phases: Optional[Sequence[PhaseSpec]] = None,
        P: float = P_STANDARD,
        epsilon: float = 1e-50
    ):
        self.u0 = to_fp64(u0).reshape(-1)
        n_species = self.u0.shape[0]
        if phases is None:
            phases = [PhaseSpec('gas', tuple(range(n_species)), 'gas')]
        self.phases = [PhaseSpec(p.name, tuple(p.species), p.kind) for p in phases]

        covered = sorted(i for p in self.phases for i in p.species)
        if covered != list(range(n_species)):
            raise ValueError(f"Phases must partition the {n_species} species exactly once, got indices {covered}")

        self.P = P
        self.epsilon = epsilon

    @property
    def num_species(self) -> int:
        return self.u0.shape[0]

    def _ln_activities(self, n: jnp.ndarray) -> jnp.ndarray:
        n_safe = jnp.maximum(n, self.epsilon)
        ln_a = jnp.zeros_like(n_safe)
        for phase in self.phases:
            idx = np.asarray(phase.species)
            if len(idx) > 1:
                n_phase = jnp.sum(n_safe[idx])
                ln_a = ln_a.at[idx].set(jnp.log(n_safe[idx]) - jnp.log(n_phase))
            if phase.kind == 'gas':
                ln_a = ln_a.at[idx].add(jnp.log(self.P / P_STANDARD))
        return ln_a

    def gibbs_energy(self, n: jnp.ndarray) -> jnp.ndarray:
        """无量纲 Gibbs 能 G/RT"""
        n = to_fp64(n)
        return jnp.sum(n * (self.u0 + self._ln_activities(n)))

    def chemical_potentials(self, n: jnp.ndarray) -> jnp.ndarray:
        """无量纲化学势 mu/RT = u0 + ln a (即 G/RT 的梯度)"""
        n = to_fp64(n)
        return self.u0 + self._ln_activities(n)

    def hessian_approximation(self, n: jnp.ndarray) -> jnp.ndarray:
        """理想混合解析 Hessian: 每个多组分相块为 diag(1/n) - 1/n_phase"""
        n_safe = jnp.maximum(to_fp64(n), self.epsilon)
        H = jnp.zeros((self.num_species, self.num_species))
        for phase in self.phases:
            idx = np.asarray(phase.species)
            if len(idx) > 1:
                block = jnp.diag(1.0 / n_safe[idx]) - 1.0 / jnp.sum(n_safe[idx])
                H = H.at[np.ix_(idx, idx)].set(block)
        return H

    def __call__(self, n: jnp.ndarray) -> jnp.ndarray:
        return self.gibbs_energy(n)


def ideal_gas_model(u0, P: float = P_STANDARD) -> IdealGibbsModel:
    """所有物种构成单一理想气相的快捷构造"""
    return IdealGibbsModel(u0, P=P)


__all__ = ['PhaseSpec', 'IdealGibbsModel', 'ideal_gas_model']
