"""
Polynomial arithmetic and Lagrange interpolation over Z_R.

Shares are evaluations of a degree ``threshold - 1`` polynomial.  Party
*j* holds the evaluation at ``x = j + 1``; the point ``x = 0`` is
reserved for the secret itself.  Any ``threshold`` shareholders
reconstruct the secret as

    f(0) = Σ_i  λ_i · f(x_i),      λ_i = Π_{k≠i} x_k / (x_k - x_i)

and, by linearity, any commitment ``f(x_i)·G`` the same way.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .curve import Scalar


# ── polynomial representation ───────────────────────────────────────────
#  coefficients[i] = a_i   so  f(x) = a_0 + a_1 x + a_2 x^2 + …


def sample_polynomial(
    degree: int,
    constant: Optional[Scalar] = None,
) -> List[Scalar]:
    """
    Sample a uniformly random polynomial of the given degree.

    Parameters
    ----------
    degree : int  (≥ 0)
        Polynomial degree  d;  result has  d+1  coefficients.
    constant : Scalar or None
        If given, force a_0 = constant (used to share a secret).
    """
    if degree < 0:
        raise ValueError("degree must be ≥ 0")
    a0 = constant if constant is not None else Scalar.random()
    return [a0] + [Scalar.random() for _ in range(degree)]


def evaluate(coeffs: Sequence[Scalar], x: Scalar) -> Scalar:
    """Evaluate f(x) via Horner's method, O(d) mults."""
    if not coeffs:
        return Scalar.zero()
    result = coeffs[-1]
    for c in reversed(coeffs[:-1]):
        result = result * x + c
    return result


def evaluation_point(party_id: int) -> Scalar:
    """Party *j* holds the share at ``x = j + 1``."""
    return Scalar(party_id + 1)


# ── shared-inversion helper ─────────────────────────────────────────────

def batch_inverse(values: Sequence[Scalar]) -> List[Scalar]:
    """
    Invert every element of *values* with one field inversion.

    Running products are inverted once and unwound from the right.
    A zero anywhere makes the whole product zero and raises
    ``ZeroDivisionError``.
    """
    if not values:
        return []
    running: List[Scalar] = []
    acc = Scalar.one()
    for v in values:
        acc = acc * v
        running.append(acc)

    acc_inv = running[-1].inv()
    out = [Scalar.zero()] * len(values)
    for i in range(len(values) - 1, 0, -1):
        out[i] = acc_inv * running[i - 1]
        acc_inv = acc_inv * values[i]
    out[0] = acc_inv
    return out


# ── Lagrange coefficients ───────────────────────────────────────────────

def compute_lagrange_coefficients(
    ids: Sequence[int],
    threshold: int,
    num_peers: int,
) -> List[Scalar]:
    r"""
    Lagrange coefficients at zero for the producer set *ids*, laid out
    by party id.

    .. math::
        \lambda_{id_i} = \prod_{k \ne i}
            \frac{id_k + 1}{(id_k + 1) - (id_i + 1)}

    Returns a vector of length ``num_peers``; entries of parties not in
    *ids* are zero.

    Precondition: *ids* holds ``threshold`` distinct party ids, each
    below ``num_peers``.  This is not re-validated here; the state
    machine only calls this with the producer set it has collected.
    """
    xs = [evaluation_point(pid) for pid in ids[:threshold]]
    nums: List[Scalar] = []
    dens: List[Scalar] = []
    for i, xi in enumerate(xs):
        num = Scalar.one()
        den = Scalar.one()
        for k, xk in enumerate(xs):
            if k == i:
                continue
            num = num * xk
            den = den * (xk - xi)
        nums.append(num)
        dens.append(den)

    coeffs = [Scalar.zero()] * num_peers
    for pid, num, den_inv in zip(ids, nums, batch_inverse(dens)):
        coeffs[pid] = num * den_inv
    return coeffs


def lagrange_coefficient(
    target_id: int,
    ids: Sequence[int],
) -> Scalar:
    """Single Lagrange coefficient at zero for *target_id* in *ids*."""
    if target_id not in ids:
        raise ValueError(f"target_id {target_id} not in ids")
    xi = evaluation_point(target_id)
    num = Scalar.one()
    den = Scalar.one()
    for pid in ids:
        if pid == target_id:
            continue
        xk = evaluation_point(pid)
        num = num * xk
        den = den * (xk - xi)
    return num / den


def interpolate_at_zero(
    ids: Sequence[int],
    values: Sequence[Scalar],
) -> Scalar:
    """Reconstruct f(0) from the shares ``values[i] = f(ids[i] + 1)``."""
    if len(ids) != len(values):
        raise ValueError("ids and values must have equal length")
    return sum(
        (lagrange_coefficient(pid, ids) * v for pid, v in zip(ids, values)),
        Scalar.zero(),
    )
