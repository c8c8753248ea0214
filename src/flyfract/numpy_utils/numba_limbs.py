# -*- coding: utf-8 -*-
import numpy as np
import numba

"""
Low-level kernels for the multi-limb mantissas of
`flyfract.numpy_utils.bigfloat.BigFloat`.

A mantissa is a 1d int64 array of limbs, most significant limb first, each
limb in [0, LIMB_BASE). The associated base-2 exponents are always multiple of
LIMB_BITS, so that 2 operands can be aligned by whole-limb shifts.

LIMB_BITS is kept conservative: a limb x limb product stays below 2**52 and
is exact in float64 as well as in int64. The int64 convolution accumulator of
`mul_limbs` can sum up to 2**11 such products without overflow, far above the
16 limbs precision ceiling.

These functions work in place on their array arguments and are not meant to
be called directly by user code.
"""

LIMB_BITS = 26
LIMB_BASE = 1 << LIMB_BITS
LIMB_MASK = LIMB_BASE - 1

limb_dtype = np.int64


@numba.njit(nogil=True, cache=True)
def carry_limbs(m):
    """
    Carry (and borrow) propagation, in place, in one backward pass.
    Negative limbs are accepted and borrow from the next limb.

    Returns
    -------
    carry: int
        The carry out of the leading limb (>= 0 for a valid magnitude)
    """
    carry = 0
    for i in range(m.shape[0] - 1, -1, -1):
        val = m[i] + carry
        carry = val >> LIMB_BITS # arithmetic shift, floor division
        m[i] = val & LIMB_MASK
    return carry


@numba.njit(nogil=True, cache=True)
def leading_zeros(m):
    """ Number of leading null limbs """
    n = m.shape[0]
    lead = 0
    while (lead < n) and (m[lead] == 0):
        lead += 1
    return lead


@numba.njit(nogil=True, cache=True)
def normalize_limbs(m, exp):
    """
    In place normalization of a mantissa:

        - carry propagation
        - mantissa overflow: shift right by whole limbs, dropping the
          trailing limbs
        - removal of the leading null limbs

    Parameters
    ----------
    m: int64 array
        The mantissa, may hold limbs out of [0, LIMB_BASE)
    exp: int
        The exponent associated with m

    Returns
    -------
    exp: int
        The adjusted exponent, 0 for a null mantissa
    """
    n = m.shape[0]
    carry = carry_limbs(m)

    while carry > 0:
        for i in range(n - 1, 0, -1):
            m[i] = m[i - 1]
        m[0] = carry & LIMB_MASK
        carry = carry >> LIMB_BITS
        exp += LIMB_BITS

    lead = leading_zeros(m)
    if lead == n:
        return 0
    if lead > 0:
        for i in range(n - lead):
            m[i] = m[i + lead]
        for i in range(n - lead, n):
            m[i] = 0
        exp -= lead * LIMB_BITS
    return exp


@numba.njit(nogil=True, cache=True)
def add_shifted(out, m, shift, k):
    """
    out[i + shift] += k * m[i] for all valid indices.
    shift >= 0 is a right shift of m by whole limbs ; the limbs of m shifted
    past the end of out are dropped (truncation).
    """
    n_out = out.shape[0]
    for i in range(m.shape[0]):
        j = i + shift
        if j >= n_out:
            break
        out[j] += k * m[i]


@numba.njit(nogil=True, cache=True)
def mul_limbs(a, b, out):
    """
    Full limb-pair convolution of a and b, one carry pass, then truncation
    to the leading out.shape[0] limbs.

    The double-width product is stored with one extra leading slot for the
    final carry, i.e. a[i] * b[j] contributes to index i + j + 1.

    Returns
    -------
    lead: int
        number of leading null limbs stripped from the double-width product
        (the caller adjusts the exponent accordingly)
    """
    na = a.shape[0]
    nb = b.shape[0]
    acc = np.zeros(na + nb, dtype=np.int64)
    for i in range(na):
        ai = a[i]
        if ai == 0:
            continue
        for j in range(nb):
            acc[i + j + 1] += ai * b[j]
    carry_limbs(acc)

    lead = leading_zeros(acc)
    for i in range(out.shape[0]):
        k = i + lead
        if k < na + nb:
            out[i] = acc[k]
        else:
            out[i] = 0
    return lead


@numba.njit(nogil=True, cache=True)
def compare_limbs(a, b):
    """
    Lexicographic comparison, most significant limb first. The shortest
    mantissa is virtually padded with trailing null limbs.

    Returns -1, 0, 1
    """
    na = a.shape[0]
    nb = b.shape[0]
    for i in range(max(na, nb)):
        ai = a[i] if i < na else 0
        bi = b[i] if i < nb else 0
        if ai != bi:
            return 1 if ai > bi else -1
    return 0
