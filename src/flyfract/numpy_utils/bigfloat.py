# -*- coding: utf-8 -*-
import math
import numbers

import numpy as np
import mpmath

import flyfract.numpy_utils.numba_limbs as ffl
from flyfract.numpy_utils.double_single import HiLo, ds_split
from flyfract.numpy_utils.numba_limbs import LIMB_BITS, LIMB_BASE, LIMB_MASK


PRECISION_MARGIN_BITS = 30
"""Extra bits absorbing the round-off growth along the iterations"""
MIN_LIMBS = 4
MAX_LIMBS = 16


def limbs_for_zoom(zoom_log):
    """
    Number of limbs needed for a full precision calculation at a given zoom
    depth.

    Parameters
    ----------
    zoom_log: float
        log2 of the zoom level

    Returns
    -------
    limbs: int
        in [MIN_LIMBS, MAX_LIMBS]. Beyond the zoom depth supported by
        MAX_LIMBS, accuracy degrades silently (no error is raised).
    """
    bits_needed = max(53, zoom_log + PRECISION_MARGIN_BITS)
    limbs = math.ceil(bits_needed / LIMB_BITS)
    return max(MIN_LIMBS, min(MAX_LIMBS, limbs))


class BigFloat:
    __slots__ = ("sign", "exponent", "mantissa")

    def __init__(self, value=0, precision=None):
        """
Arbitrary precision floating point number, stored as a fixed number of
limbs:

.. math::

    x = sign \\times \\sum_{i=0}^{p-1} m_i B^{p-1-i} \\times 2^{exponent}

where :math:`B = 2^{26}` is the limb base and :math:`p` the precision (number
of limbs). The exponent is kept on a limb grid (multiple of 26) and the
leading limb is nonzero, except for the canonical zero (null limbs, exponent
0, sign +1).

Instances are values: arithmetic operations return new objects and never
modify their operands.

Parameters
----------
value : int | float | str | BigFloat | mpmath.mpf
    Initial value. Strings are parsed with the native float parser, use
    `BigFloat.from_mpf` for an input beyond float64 precision.
precision : int
    Number of limbs, defaults to 4 (or to the precision of ``value`` if it
    is a BigFloat)
"""
        if precision is None:
            precision = value.precision if isinstance(value, BigFloat) else 4
        if precision < 1:
            raise ValueError(f"Invalid precision: {precision}")

        if isinstance(value, BigFloat):
            src = value.with_precision(precision)
        elif isinstance(value, str):
            src = BigFloat.from_string(value, precision)
        elif isinstance(value, mpmath.mpf):
            src = BigFloat.from_mpf(value, precision)
        elif isinstance(value, numbers.Real):
            src = BigFloat.from_number(value, precision)
        else:
            raise ValueError(f"Unsupported input type: {type(value)}")

        self.sign = src.sign
        self.exponent = src.exponent
        self.mantissa = src.mantissa

    @classmethod
    def _from_parts(cls, sign, exponent, mantissa):
        """ Wraps a normalized mantissa without copy """
        ret = cls.__new__(cls)
        if mantissa[0] == 0:
            sign = 1
            exponent = 0
        ret.sign = sign
        ret.exponent = exponent
        ret.mantissa = mantissa
        return ret

    @classmethod
    def zero(cls, precision=4):
        return cls._from_parts(
            1, 0, np.zeros([precision], dtype=ffl.limb_dtype)
        )

    @classmethod
    def from_number(cls, x, precision=4):
        """
        Builds a BigFloat from a native number.

        The binary exponent is extracted and the value is normalized so that
        the leading limb holds its most significant bits ; limbs are then
        filled by repeated fractional multiply-and-floor (exact operations in
        float64).
        """
        x = float(x)
        if x == 0.:
            return cls.zero(precision)

        sign = -1 if x < 0. else 1
        x = abs(x)

        # x in [2**(e-1), 2**e) ; the leading limb weight is aligned on the
        # limb grid, so that 1 <= x / 2**top_exp < LIMB_BASE
        _, e = math.frexp(x)
        top_exp = LIMB_BITS * ((e - 1) // LIMB_BITS)
        r = math.ldexp(x, -top_exp)

        limbs = []
        for _ in range(precision):
            limb = math.floor(r)
            limbs.append(limb)
            r = (r - limb) * LIMB_BASE

        mantissa = np.array(limbs, dtype=ffl.limb_dtype)
        exponent = top_exp - LIMB_BITS * (precision - 1)
        exponent = ffl.normalize_limbs(mantissa, exponent)
        return cls._from_parts(sign, exponent, mantissa)

    @classmethod
    def from_string(cls, text, precision=4):
        """
        Builds a BigFloat from a decimal string. The string is parsed to a
        native float, the precision is limited accordingly.
        """
        text = text.strip()
        if text in ("", "0"):
            return cls.zero(precision)

        sign = 1
        if text[0] in "+-":
            sign = -1 if text[0] == "-" else 1
            text = text[1:]
        return cls.from_number(sign * float(text), precision)

    @classmethod
    def from_mpf(cls, x, precision=4):
        """
        Builds a BigFloat from a mpmath real, truncated (toward zero) to
        `precision` limbs. No precision is lost in the conversion of the
        retained limbs.
        """
        x = mpmath.mpf(x)
        if x == 0:
            return cls.zero(precision)

        man, exp = x.man_exp
        sign = -1 if man < 0 else 1
        man = abs(man)

        # x in [2**h, 2**(h + 1))
        h = exp + man.bit_length() - 1
        top_exp = LIMB_BITS * (h // LIMB_BITS)
        exponent = top_exp - LIMB_BITS * (precision - 1)
        if exp >= exponent:
            m_int = man << (exp - exponent)
        else:
            m_int = man >> (exponent - exp)

        mantissa = np.array([
            (m_int >> (LIMB_BITS * (precision - 1 - i))) & LIMB_MASK
            for i in range(precision)
        ], dtype=ffl.limb_dtype)
        exponent = ffl.normalize_limbs(mantissa, exponent)
        return cls._from_parts(sign, exponent, mantissa)

    @property
    def precision(self):
        """ Number of limbs """
        return self.mantissa.shape[0]

    def is_zero(self):
        # By invariant, only the canonical zero has a null leading limb
        return self.mantissa[0] == 0

    def copy(self):
        return BigFloat._from_parts(
            self.sign, self.exponent, self.mantissa.copy()
        )

    def with_precision(self, precision):
        """
        Returns a copy with `precision` limbs: trailing limbs are dropped or
        null limbs appended, the leading limb weight is unchanged.
        """
        if precision < 1:
            raise ValueError(f"Invalid precision: {precision}")
        mantissa = np.zeros([precision], dtype=ffl.limb_dtype)
        n = min(precision, self.precision)
        mantissa[:n] = self.mantissa[:n]
        if self.is_zero():
            return BigFloat._from_parts(1, 0, mantissa)
        exponent = self.exponent + LIMB_BITS * (self.precision - precision)
        return BigFloat._from_parts(self.sign, exponent, mantissa)

    @property
    def _top_exp(self):
        """ base-2 weight of the leading limb """
        return self.exponent + LIMB_BITS * (self.precision - 1)

    def negate(self):
        ret = self.copy()
        if not ret.is_zero():
            ret.sign = -ret.sign
        return ret

    def add(self, other):
        """ Returns self + other """
        precision = max(self.precision, other.precision)
        if other.is_zero():
            return self.with_precision(precision)
        if self.is_zero():
            return other.with_precision(precision)

        if self.sign != other.sign:
            return self.sub(other.negate())

        return self._combine(self, other, 1, self.sign)

    def sub(self, other):
        """ Returns self - other """
        precision = max(self.precision, other.precision)
        if other.is_zero():
            return self.with_precision(precision)
        if self.is_zero():
            return other.with_precision(precision).negate()

        # a - (-b) = a + b
        if self.sign != other.sign:
            return self.add(other.negate())

        cmp = self.compare_magnitude(other)
        if cmp == 0:
            return BigFloat.zero(precision)
        if cmp > 0:
            return self._combine(self, other, -1, self.sign)
        return self._combine(other, self, -1, -self.sign)

    @staticmethod
    def _combine(larger, smaller, k, sign):
        """
        sign * (|larger| + k * |smaller|), k = +/-1.
        Operands are aligned on the leading limb weight of `larger` (for
        k = -1 `larger` has the larger magnitude) by whole-limb shifts ;
        the limbs shifted past the result precision are dropped.
        """
        precision = max(larger.precision, smaller.precision)
        top_exp = max(larger._top_exp, smaller._top_exp)
        exponent = top_exp - LIMB_BITS * (precision - 1)

        mantissa = np.zeros([precision], dtype=ffl.limb_dtype)
        ffl.add_shifted(
            mantissa, larger.mantissa,
            (top_exp - larger._top_exp) // LIMB_BITS, 1
        )
        ffl.add_shifted(
            mantissa, smaller.mantissa,
            (top_exp - smaller._top_exp) // LIMB_BITS, k
        )
        exponent = ffl.normalize_limbs(mantissa, exponent)
        return BigFloat._from_parts(sign, exponent, mantissa)

    def mul(self, other):
        """ Returns self * other, truncated to the larger operand precision """
        precision = max(self.precision, other.precision)
        if self.is_zero() or other.is_zero():
            return BigFloat.zero(precision)

        mantissa = np.empty([precision], dtype=ffl.limb_dtype)
        lead = ffl.mul_limbs(self.mantissa, other.mantissa, mantissa)
        # The double width product has self.precision + other.precision
        # limbs of which we keep `precision`, after `lead` null limbs
        exponent = self.exponent + other.exponent + LIMB_BITS * (
            self.precision + other.precision - lead - precision
        )
        exponent = ffl.normalize_limbs(mantissa, exponent)
        return BigFloat._from_parts(
            self.sign * other.sign, exponent, mantissa
        )

    def square(self):
        return self.mul(self)

    def compare_magnitude(self, other):
        """
        Compares abs(self) and abs(other)

        Returns -1 if abs(self) < abs(other), 0 if equal, 1 if greater
        """
        self_zero = self.is_zero()
        other_zero = other.is_zero()
        if self_zero or other_zero:
            return int(other_zero) - int(self_zero)

        self_top = self._top_exp
        other_top = other._top_exp
        if self_top != other_top:
            return 1 if self_top > other_top else -1
        return int(ffl.compare_limbs(self.mantissa, other.mantissa))

    def to_number(self):
        """
        Native float approximation (lossy). Limb contributions are summed
        from the least significant one.
        """
        if self.is_zero():
            return 0.
        p = self.precision
        limbs = self.mantissa.tolist()
        res = 0.
        for i in range(p - 1, -1, -1):
            if limbs[i]:
                res += math.ldexp(
                    float(limbs[i]), self.exponent + LIMB_BITS * (p - 1 - i)
                )
        return self.sign * res

    def to_hilo(self):
        """ Double-single split of the native approximation """
        return ds_split(self.to_number())

    def to_mpf(self):
        """ Exact conversion to a mpmath real """
        m_int = 0
        for limb in self.mantissa.tolist():
            m_int = (m_int << LIMB_BITS) | limb
        with mpmath.workprec(max(53, m_int.bit_length() + 1)):
            return self.sign * mpmath.ldexp(mpmath.mpf(m_int), self.exponent)

    def __add__(self, other):
        return self.add(_as_bigfloat(other, self.precision))

    def __radd__(self, other):
        return _as_bigfloat(other, self.precision).add(self)

    def __sub__(self, other):
        return self.sub(_as_bigfloat(other, self.precision))

    def __rsub__(self, other):
        return _as_bigfloat(other, self.precision).sub(self)

    def __mul__(self, other):
        return self.mul(_as_bigfloat(other, self.precision))

    def __rmul__(self, other):
        return _as_bigfloat(other, self.precision).mul(self)

    def __neg__(self):
        return self.negate()

    def __abs__(self):
        ret = self.copy()
        ret.sign = 1
        return ret

    def __float__(self):
        return self.to_number()

    def __eq__(self, other):
        if not isinstance(other, BigFloat):
            return NotImplemented
        return (
            self.sign == other.sign
            and self.compare_magnitude(other) == 0
        )

    __hash__ = None

    def __repr__(self):
        return (
            f"BigFloat(sign={self.sign}, exponent={self.exponent}, "
            f"mantissa={self.mantissa.tolist()})"
        )

    def __str__(self):
        return mpmath.nstr(self.to_mpf(), int(self.precision * 7.8))


def _as_bigfloat(value, precision):
    if isinstance(value, BigFloat):
        return value
    return BigFloat(value, precision)


class BigComplex:
    __slots__ = ("re", "im")

    def __init__(self, re=0, im=0, precision=None):
        """
A complex number whose real and imaginary parts are `BigFloat` sharing the
same precision.

Parameters
----------
re, im : BigFloat or any input accepted by `BigFloat`
    Real and imaginary parts
precision : int
    Number of limbs, defaults to the precision of the BigFloat parts if
    any, otherwise 4
"""
        if precision is None:
            precision = max(
                (x.precision for x in (re, im) if isinstance(x, BigFloat)),
                default=4
            )
        self.re = BigFloat(re, precision)
        self.im = BigFloat(im, precision)

    @classmethod
    def _from_parts(cls, re, im):
        ret = cls.__new__(cls)
        ret.re = re
        ret.im = im
        return ret

    @property
    def precision(self):
        return max(self.re.precision, self.im.precision)

    def copy(self):
        return BigComplex._from_parts(self.re.copy(), self.im.copy())

    def add(self, other):
        return BigComplex._from_parts(
            self.re.add(other.re), self.im.add(other.im)
        )

    def sub(self, other):
        return BigComplex._from_parts(
            self.re.sub(other.re), self.im.sub(other.im)
        )

    def mul(self, other):
        """ (a + bi)(c + di) = (ac - bd) + (ad + bc)i """
        ac = self.re.mul(other.re)
        bd = self.im.mul(other.im)
        ad = self.re.mul(other.im)
        bc = self.im.mul(other.re)
        return BigComplex._from_parts(ac.sub(bd), ad.add(bc))

    def square(self):
        """ (a + bi)**2 = (a**2 - b**2) + 2ab i """
        a2 = self.re.square()
        b2 = self.im.square()
        ab = self.re.mul(self.im)
        return BigComplex._from_parts(a2.sub(b2), ab.add(ab))

    def magnitude_squared(self):
        """ Squared modulus, as a native float (used for escape tests) """
        re, im = self.to_numbers()
        return re * re + im * im

    def to_numbers(self):
        return self.re.to_number(), self.im.to_number()

    def to_hilo(self):
        """
        Returns
        -------
        re, im: HiLo
            Double-single pairs for the real and imaginary parts
        """
        return self.re.to_hilo(), self.im.to_hilo()

    def __add__(self, other):
        return self.add(other)

    def __sub__(self, other):
        return self.sub(other)

    def __mul__(self, other):
        return self.mul(other)

    def __neg__(self):
        return BigComplex._from_parts(-self.re, -self.im)

    def __complex__(self):
        re, im = self.to_numbers()
        return complex(re, im)

    def __eq__(self, other):
        if not isinstance(other, BigComplex):
            return NotImplemented
        return (self.re == other.re) and (self.im == other.im)

    __hash__ = None

    def __repr__(self):
        return f"BigComplex(re={self.re!r}, im={self.im!r})"


__all__ = [
    "BigFloat", "BigComplex", "HiLo", "limbs_for_zoom",
    "PRECISION_MARGIN_BITS", "MIN_LIMBS", "MAX_LIMBS"
]
