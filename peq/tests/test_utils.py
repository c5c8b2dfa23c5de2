import io
import json

import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np
import pytest

from peq.core.types import OutputOptions, OptimumResult
from peq.utils.outputs import Outputter, format_results
from peq.utils.memo import memoize_last
from peq.utils.precision import as_vector
from peq.utils.solvers import compute_error_norms, all_finite


def test_outputter_table():
    stream = io.StringIO()
    out = Outputter(OutputOptions(active=True, width=8, precision=2, stream=stream))
    out.add_entry("iter")
    out.add_entries("x", 2)
    out.add_entries("y", 1, names=("H",))
    out.output_header()

    out.add_value(0)
    out.add_values(jnp.array([1.0, 2.0]))
    out.add_value(0.5)
    out.output_state()

    lines = stream.getvalue().splitlines()
    assert "x[0]" in lines[1] and "H" in lines[1]
    assert lines[0] == "-" * len(lines[1])
    assert "1.00e+00" in lines[3]
    assert out.history == [{"iter": 0, "x[0]": 1.0, "x[1]": 2.0, "H": 0.5}]
    assert out.values == []


def test_outputter_inactive(capsys):
    out = Outputter()
    out.add_entry("iter")
    out.output_header()
    out.add_value(1)
    out.output_state()
    assert capsys.readouterr().out == ""
    assert out.history == []


def test_format_results():
    result = OptimumResult(succeeded=True, iterations=12, error=1.234567e-9, time=0.123456)
    data = format_results(result, 'dict', precision=3)
    assert data['iterations'] == 12
    assert data['time'] == 0.123

    parsed = json.loads(format_results(result, 'json'))
    assert parsed['status'] == 'running'

    table = format_results({'n': jnp.array([1.0, 2.0])}, 'table')
    assert table.startswith('n')

    with pytest.raises(ValueError):
        format_results(result, 'xml')


def test_memoize_last():
    calls = []

    @memoize_last
    def square(x):
        calls.append(1)
        return x * x

    x = jnp.array([1.0, 2.0])
    square(x)
    square(jnp.array([1.0, 2.0]))
    assert len(calls) == 1
    square(jnp.array([1.0, 3.0]))
    assert len(calls) == 2
    square(x)
    assert len(calls) == 3


def test_as_vector():
    assert as_vector(None).shape == (0,)
    np.testing.assert_array_equal(as_vector([[1.0], [2.0]]), [1.0, 2.0])
    np.testing.assert_array_equal(as_vector([1.0, 2.0], 3), np.zeros(3))


def test_error_norms():
    x = jnp.array([1.0, 2.0])
    z = jnp.array([0.5, 0.25])
    g = jnp.array([1.5, 1.25])
    A = jnp.array([[1.0, 1.0]])
    errors = compute_error_norms(x, jnp.array([1.0]), z, g, jnp.array([-0.1]), A, 0.5)
    assert errors.stationarity == pytest.approx(0.0)
    assert errors.feasibility == pytest.approx(0.1)
    assert errors.centrality == pytest.approx(0.0)
    assert errors.error == pytest.approx(0.1)


def test_all_finite():
    assert all_finite(1.0, jnp.ones(3))
    assert not all_finite(jnp.array([1.0, jnp.inf]))
    assert not all_finite(float('nan'))


if __name__ == "__main__":
    test_memoize_last()
    test_error_norms()
    print("Utils tests passed.")
