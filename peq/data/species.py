"""
数据加载模块 - 物种数据

加载和管理物种 NASA 多项式数据与元素组成 (JSON)。

数据文件格式:
{
  "species": {
    "H2O": {"name": "Water", "formula": {"H": 2, "O": 1}, "phase": "gas",
            "molecular_weight": 18.015, "T_mid": 1000.0,
            "coeffs_low": [...], "coeffs_high": [...]}
  }
}
"""

import json
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Dict, Optional, List, Sequence, Union
import jax.numpy as jnp


@dataclass
class SpeciesData:
    """物种热力学数据结构"""
    name: str
    full_name: str
    formula: Dict[str, float]   # 元素 -> 原子数
    molecular_weight: float     # g/mol
    phase: str                  # 'gas', 'solid', 'liquid'
    coeffs_high: jnp.ndarray    # 高温多项式系数 (T > T_mid)
    coeffs_low: jnp.ndarray     # 低温多项式系数 (T <= T_mid)
    T_mid: float = 1000.0

    def get_coeffs(self, T: float) -> jnp.ndarray:
        """根据温度选择合适的多项式系数

        Args:
            T: 温度 (K)

        Returns:
            NASA 多项式系数
        """
        return jnp.where(T > self.T_mid, self.coeffs_high, self.coeffs_low)


# 全局缓存 (按文件路径)
_SPECIES_CACHE: Dict[Path, Dict[str, SpeciesData]] = {}
_DATA_ENV = "PEQ_SPECIES_DB"

PathLike = Union[str, Path]


def _get_data_path(path: Optional[PathLike]) -> Path:
    """获取数据文件路径：显式参数优先，其次环境变量 PEQ_SPECIES_DB"""
    if path is None:
        path = os.environ.get(_DATA_ENV)
    if path is None:
        raise FileNotFoundError(f"No species database given; pass a path or set {_DATA_ENV}")
    return Path(path).resolve()


def load_species(path: Optional[PathLike] = None, reload: bool = False) -> Dict[str, SpeciesData]:
    """加载物种数据库

    Args:
        path: JSON 文件路径 (默认读取环境变量 PEQ_SPECIES_DB)
        reload: 是否强制重新加载

    Returns:
        物种名称到 SpeciesData 的映射
    """
    data_path = _get_data_path(path)

    if data_path in _SPECIES_CACHE and not reload:
        return _SPECIES_CACHE[data_path]

    with open(data_path, 'r', encoding='utf-8') as f:
        raw_data = json.load(f)

    species = {}

    for name, data in raw_data.get('species', {}).items():
        coeffs_low = data.get('coeffs_low', data['coeffs_high'])
        if len(coeffs_low) != len(data['coeffs_high']):
            print(f"WARNING: {name}: low/high coefficient lengths differ, using high-T set for both")
            coeffs_low = data['coeffs_high']
        species[name] = SpeciesData(
            name=name,
            full_name=data.get('name', name),
            formula={e: float(c) for e, c in data['formula'].items()},
            molecular_weight=data.get('molecular_weight', 0.0),
            phase=data.get('phase', 'gas'),
            coeffs_high=jnp.array(data['coeffs_high']),
            coeffs_low=jnp.array(coeffs_low),
            T_mid=data.get('T_mid', 1000.0),
        )

    _SPECIES_CACHE[data_path] = species
    return species


def get_species(name: str, path: Optional[PathLike] = None) -> SpeciesData:
    """获取单个物种的数据

    Raises:
        KeyError: 如果物种不存在
    """
    species = load_species(path)
    if name not in species:
        raise KeyError(f"Unknown species: {name}. Available: {list(species.keys())}")
    return species[name]


def list_species(path: Optional[PathLike] = None) -> List[str]:
    """列出所有可用物种名称"""
    return list(load_species(path).keys())


def get_species_by_phase(phase: str, path: Optional[PathLike] = None) -> Dict[str, SpeciesData]:
    """获取指定相态的所有物种"""
    return {
        name: s for name, s in load_species(path).items()
        if s.phase == phase
    }


def species_formula_matrix(
    names: Sequence[str],
    elements: Sequence[str],
    path: Optional[PathLike] = None
) -> jnp.ndarray:
    """由数据库中的元素组成构造公式矩阵 W (n_elements, n_species)"""
    from peq.core.equilibrium import build_formula_matrix

    formulas = {name: get_species(name, path).formula for name in names}
    return build_formula_matrix(names, elements, formulas)


def species_standard_potentials(
    names: Sequence[str],
    T: float,
    path: Optional[PathLike] = None
) -> jnp.ndarray:
    """计算物种列表在温度 T 下的 g0/RT"""
    from peq.physics.thermo import compute_standard_chemical_potentials

    data = [get_species(name, path) for name in names]
    T_mids = {s.T_mid for s in data}
    if len(T_mids) > 1:
        # 分段温度不一致时逐个物种选择系数
        coeffs = jnp.stack([s.get_coeffs(T) for s in data])
        return compute_standard_chemical_potentials(coeffs, coeffs, T)
    return compute_standard_chemical_potentials(
        jnp.stack([s.coeffs_low for s in data]),
        jnp.stack([s.coeffs_high for s in data]),
        T,
        T_mids.pop(),
    )
