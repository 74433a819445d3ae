"""
Elliptic curve arithmetic on BabyJubJub.

BabyJubJub is the twisted Edwards curve

    A·x² + y² = 1 + D·x²·y²   (mod Q)

defined over the BN254 scalar field, so that its arithmetic is cheap
inside SNARK circuits.  The curve has cofactor 8; every point that is
accepted as a protocol contribution must lie in the prime-order
subgroup of order *R*.

Scalar multiplication is done in extended twisted Edwards coordinates
(X : Y : T : Z) with x = X/Z, y = Y/Z, x·y = T/Z and converted back to
affine with a single field inversion.  Since A is a square and D is a
non-square mod Q, the unified addition law is complete: it has no
exceptional cases, including doubling and P + (-P).

References
----------
- EIP-2494  Baby Jubjub Elliptic Curve
- Hisil, Wong, Carter, Dawson (2008). "Twisted Edwards Curves
  Revisited."  ASIACRYPT 2008.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import List, Tuple

from .errors import IdentityPoint, PointNotInSubgroup, PointNotOnCurve

# ── BabyJubJub constants ────────────────────────────────────────────────
Q = 21888242871839275222246405745257275088548364400416034343698204186575808495617
R = 2736030358979909402780800718157159386076813972158567259200215660948447373041
A = 168700
D = 168696

ORDER = R
FIELD_PRIME = Q
SCALAR_BITS = 251
_SCALAR_MASK = (1 << SCALAR_BITS) - 1

_BASE8_X = 5299619240641551281634865583518297030282874472190772894086521144482721001553
_BASE8_Y = 16950150798460657717958625567821834550301663161624707787222815936182638968203


# ── Scalar  (Z_R arithmetic) ────────────────────────────────────────────
class Scalar:
    """Element of the scalar field  Z_R  where *R* = ``ORDER``."""

    __slots__ = ("_v",)

    def __init__(self, value: int) -> None:
        self._v = value % ORDER

    # constructors -----------------------------------------------------------
    @classmethod
    def zero(cls) -> Scalar:
        return cls(0)

    @classmethod
    def one(cls) -> Scalar:
        return cls(1)

    @classmethod
    def random(cls) -> Scalar:
        """Uniform in [1, R-1] via rejection sampling."""
        while True:
            c = secrets.randbits(SCALAR_BITS)
            if 0 < c < ORDER:
                return cls(c)

    @property
    def value(self) -> int:
        return self._v

    # arithmetic -------------------------------------------------------------
    def __add__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(self._v + o._v)

    def __radd__(self, o):
        if isinstance(o, int) and o == 0:
            return self                       # for sum()
        return NotImplemented

    def __sub__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return Scalar(self._v - o._v)

    def __mul__(self, o):
        if isinstance(o, Scalar):
            return Scalar(self._v * o._v)
        if isinstance(o, AffinePoint):
            return scalar_mul(self._v, o)
        return NotImplemented

    def __rmul__(self, o):
        if isinstance(o, int):
            return Scalar(o * self._v)
        return NotImplemented

    def __neg__(self) -> Scalar:
        return Scalar(-self._v)

    def __truediv__(self, o: Scalar) -> Scalar:
        if not isinstance(o, Scalar):
            return NotImplemented
        return self * o.inv()

    def inv(self) -> Scalar:
        """Multiplicative inverse via Fermat's little theorem."""
        if self._v == 0:
            raise ZeroDivisionError("cannot invert zero scalar")
        return Scalar(pow(self._v, ORDER - 2, ORDER))

    # comparison / hashing ---------------------------------------------------
    def __eq__(self, o: object) -> bool:
        if isinstance(o, Scalar):
            return self._v == o._v
        if isinstance(o, int):
            return self._v == o % ORDER
        return False

    def __hash__(self) -> int:
        return hash(self._v)

    def __bool__(self) -> bool:
        return self._v != 0

    def __int__(self) -> int:
        return self._v

    def __repr__(self) -> str:
        h = hex(self._v)
        return f"Scalar(0x{h[2:10]}…)" if len(h) > 14 else f"Scalar({h})"


# ── AffinePoint  (BabyJubJub group element) ─────────────────────────────
@dataclass(frozen=True)
class AffinePoint:
    """
    Point on BabyJubJub in affine coordinates.

    ``(0, 1)`` is the identity.  Coordinates are stored exactly as
    received and are *not* reduced, so that :func:`is_on_curve` can
    reject non-canonical encodings.
    """

    x: int
    y: int

    @classmethod
    def identity(cls) -> AffinePoint:
        return cls(0, 1)

    @classmethod
    def generator(cls) -> AffinePoint:
        """Generator of the prime-order subgroup (``Base8``)."""
        return cls(_BASE8_X, _BASE8_Y)

    @classmethod
    def from_scalar(cls, s) -> AffinePoint:
        """Compute *s · G*."""
        return scalar_mul(int(s), G)

    def is_identity(self) -> bool:
        return is_identity(self)

    def is_on_curve(self) -> bool:
        return is_on_curve(self)

    def is_in_correct_subgroup(self) -> bool:
        return is_in_correct_subgroup(self)

    def to_words(self) -> List[int]:
        return [self.x, self.y]

    # group operations -------------------------------------------------------
    def __add__(self, o: AffinePoint) -> AffinePoint:
        if not isinstance(o, AffinePoint):
            return NotImplemented
        return add(self, o)

    def __neg__(self) -> AffinePoint:
        return negate(self)

    def __sub__(self, o: AffinePoint) -> AffinePoint:
        return add(self, negate(o))

    def __rmul__(self, s) -> AffinePoint:
        if isinstance(s, Scalar):
            return scalar_mul(s.value, self)
        if isinstance(s, int):
            return scalar_mul(s, self)
        return NotImplemented

    def __repr__(self) -> str:
        if self.is_identity():
            return "AffinePoint(O)"
        return f"AffinePoint(0x{self.x:064x})"[:42] + "…)"


# ── predicates ──────────────────────────────────────────────────────────
def is_identity(p: AffinePoint) -> bool:
    return p.x == 0 and p.y == 1


def is_on_curve(p: AffinePoint) -> bool:
    """True iff *p* is the identity or a reduced point on the curve."""
    if is_identity(p):
        return True
    if not (0 <= p.x < Q and 0 <= p.y < Q):
        return False
    xx = p.x * p.x % Q
    yy = p.y * p.y % Q
    lhs = (A * xx + yy) % Q
    rhs = (1 + D * xx % Q * yy) % Q
    return lhs == rhs


def is_in_correct_subgroup(p: AffinePoint) -> bool:
    """
    Prime-order subgroup membership; *p* must already be on the curve.

    Rejects the small-order torsion points that would otherwise let a
    contributor inject a component invisible to the discrete-log
    relation the protocol relies on.
    """
    if p.y == 0:
        return False
    return is_identity(_mul(R, p))


def validate_point(p: AffinePoint, allow_identity: bool = False) -> None:
    """
    Raise the matching cryptographic error unless *p* is a trustworthy
    group element.
    """
    if not is_on_curve(p):
        raise PointNotOnCurve(p)
    if is_identity(p):
        if allow_identity:
            return
        raise IdentityPoint(p)
    if not is_in_correct_subgroup(p):
        raise PointNotInSubgroup(p)


# ── affine group law ────────────────────────────────────────────────────
def add(p: AffinePoint, q: AffinePoint) -> AffinePoint:
    r"""
    Unified twisted Edwards addition:

    .. math::
        x_3 = \frac{x_1 y_2 + y_1 x_2}{1 + D x_1 x_2 y_1 y_2}, \qquad
        y_3 = \frac{y_1 y_2 - A x_1 x_2}{1 - D x_1 x_2 y_1 y_2}
    """
    if is_identity(p):
        return q
    if is_identity(q):
        return p
    x1x2 = p.x * q.x % Q
    y1y2 = p.y * q.y % Q
    dxy = D * x1x2 % Q * y1y2 % Q
    x_num = (p.x * q.y + p.y * q.x) % Q
    y_num = (y1y2 - A * x1x2) % Q
    x3 = x_num * _inv(1 + dxy) % Q
    y3 = y_num * _inv(1 - dxy) % Q
    return AffinePoint(x3, y3)


def negate(p: AffinePoint) -> AffinePoint:
    return AffinePoint((-p.x) % Q, p.y)


def scalar_mul(k: int, p: AffinePoint) -> AffinePoint:
    """
    Compute *k · p* for a canonical scalar ``0 <= k < R``.

    Raises ``ValueError`` for out-of-range scalars.
    """
    if k < 0 or k >= R:
        raise ValueError("scalar out of range")
    if k == 0:
        return AffinePoint.identity()
    return _mul(k & _SCALAR_MASK, p)


# ── extended coordinates ────────────────────────────────────────────────
_Extended = Tuple[int, int, int, int]      # (X, Y, T, Z)


def _inv(a: int) -> int:
    a %= Q
    if a == 0:
        raise ZeroDivisionError("cannot invert zero field element")
    return pow(a, Q - 2, Q)


def _double(P: _Extended) -> _Extended:
    """dbl-2008-hwcd"""
    X1, Y1, _, Z1 = P
    a = X1 * X1 % Q
    b = Y1 * Y1 % Q
    c = 2 * Z1 * Z1 % Q
    d = A * a % Q
    e = ((X1 + Y1) * (X1 + Y1) - a - b) % Q
    g = (d + b) % Q
    f = (g - c) % Q
    h = (d - b) % Q
    return (e * f % Q, g * h % Q, e * h % Q, f * g % Q)


def _madd(P: _Extended, x2: int, y2: int, t2: int) -> _Extended:
    """madd-2008-hwcd: extended + affine (Z2 = 1)."""
    X1, Y1, T1, Z1 = P
    a = X1 * x2 % Q
    b = Y1 * y2 % Q
    c = T1 * D % Q * t2 % Q
    e = ((X1 + Y1) * (x2 + y2) - a - b) % Q
    f = (Z1 - c) % Q
    g = (Z1 + c) % Q
    h = (b - A * a) % Q
    return (e * f % Q, g * h % Q, e * h % Q, f * g % Q)


def _mul(k: int, p: AffinePoint) -> AffinePoint:
    """
    Big-endian double-and-add without range checks on *k*.

    Used directly by the subgroup check, which multiplies by *R*.
    """
    if k == 0 or is_identity(p):
        return AffinePoint.identity()
    x, y = p.x % Q, p.y % Q
    t = x * y % Q
    # skip leading zeros: start the accumulator at the top set bit
    acc: _Extended = (x, y, t, 1)
    for i in range(k.bit_length() - 2, -1, -1):
        acc = _double(acc)
        if (k >> i) & 1:
            acc = _madd(acc, x, y, t)
    X, Y, _, Z = acc
    z_inv = _inv(Z)
    return AffinePoint(X * z_inv % Q, Y * z_inv % Q)


# ── module-level generator ──────────────────────────────────────────────
G = AffinePoint.generator()
IDENTITY = AffinePoint.identity()
