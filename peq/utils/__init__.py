"""PEQ Utils Module - 工具函数"""

from peq.utils.precision import to_fp64, as_vector, R_GAS
from peq.utils.solvers import fraction_to_the_boundary, compute_error_norms, all_finite
from peq.utils.outputs import Outputter, format_results
from peq.utils.memo import memoize_last

__all__ = [
    "to_fp64",
    "as_vector",
    "R_GAS",
    "fraction_to_the_boundary",
    "compute_error_norms",
    "all_finite",
    "Outputter",
    "format_results",
    "memoize_last",
]
