"""Jacobians of vector-valued functions by forward-mode automatic differentiation.

A functor takes one or more parameter blocks and returns a sequence of
outputs.  Every parameter block is replaced by a list of jets, where each
coordinate of each block owns one infinitesimal direction.  The functor runs
once.  Its outputs then hold both the function value and the derivatives
with respect to every block.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from balbundle.jet import Jet

__all__ = ["DifferentiationError", "differentiate", "MAX_PARAMETER_BLOCKS"]

MAX_PARAMETER_BLOCKS = 10


class DifferentiationError(RuntimeError):
    """Raised when the functor reports that it could not be evaluated."""


def differentiate(
    functor: Callable[..., Sequence],
    parameters: Sequence[Sequence[float]],
    num_outputs: int,
) -> tuple[np.ndarray, list[np.ndarray]]:
    """Evaluate ``functor`` on ``parameters`` and return its value and Jacobians.

    ``functor`` is called with one list of jets per parameter block.  It must
    return ``num_outputs`` values, which may be jets or plain numbers.  It
    may return ``None`` or ``False`` to signal failure, and
    :class:`DifferentiationError` is then raised.

    The result is ``(value, jacobians)``.  ``value`` has shape
    ``(num_outputs,)``.  ``jacobians[i]`` has shape ``(num_outputs, len(parameters[i]))``.
    """
    if num_outputs < 0:
        raise ValueError("num_outputs must be non-negative")
    blocks = [np.asarray(block, dtype=float).reshape(-1) for block in parameters]
    if len(blocks) > MAX_PARAMETER_BLOCKS:
        raise ValueError(
            f"at most {MAX_PARAMETER_BLOCKS} parameter blocks are supported, "
            f"got {len(blocks)}"
        )

    sizes = [block.size for block in blocks]
    total = sum(sizes)
    offsets = np.cumsum([0, *sizes[:-1]]).tolist() if sizes else []

    jet_blocks = [
        [Jet.variable(value, offset + j, total) for j, value in enumerate(block)]
        for block, offset in zip(blocks, offsets)
    ]

    result = functor(*jet_blocks)
    if result is None or result is False:
        raise DifferentiationError("functor failed to evaluate")
    outputs = list(result)
    if len(outputs) != num_outputs:
        raise ValueError(f"functor returned {len(outputs)} outputs, expected {num_outputs}")

    value = np.empty(num_outputs)
    full = np.zeros((num_outputs, total))
    for i, out in enumerate(outputs):
        if isinstance(out, Jet):
            if out.dimension != total:
                raise ValueError(
                    f"output {i} has jet dimension {out.dimension}, expected {total}"
                )
            value[i] = out.a
            full[i] = out.v
        else:
            value[i] = float(out)

    jacobians = [
        full[:, offset:offset + size].copy() for offset, size in zip(offsets, sizes)
    ]
    return value, jacobians