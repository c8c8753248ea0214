# -*- coding: utf-8 -*-
"""
Double-single (hi / lo) emulation.

An extended precision value is represented as the unevaluated sum of 2
floats ``hi + lo`` where ``hi`` is rounded to float32 and ``lo`` captures the
rounding residual. This is the format in which the camera center, the
reference point and the reference orbit are handed to the GPU (which only
has float32 arithmetic).
"""
import typing

import numpy as np


class HiLo(typing.NamedTuple):
    """ A double-single pair, value ~ hi + lo """
    hi: float
    lo: float


def ds_split(x):
    """
    Splits a float into a hi + lo pair ; hi is the float32 rounding of x
    and lo the residual (exact in float64).
    """
    hi = float(np.float32(x))
    return HiLo(hi, x - hi)


def ds_add(a, b):
    """
    Sum of 2 double-single pairs (Knuth two-sum on the hi parts, the lo
    parts are added to the error term).
    """
    t1 = a.hi + b.hi
    e = t1 - a.hi
    t2 = ((b.hi - e) + (a.hi - (t1 - e))) + a.lo + b.lo
    hi = t1 + t2
    lo = t2 - (hi - t1)
    return HiLo(hi, lo)


def ds_renorm(a):
    """ Renormalization, so that abs(lo) stays below the ulp of hi """
    t = a.hi + a.lo
    e = a.lo - (t - a.hi)
    return HiLo(t, e)


def ds_value(a):
    """ Native value of a double-single pair """
    return a.hi + a.lo


def split_hilo_array(arr):
    """
    Vectorized split of a float64 array

    Returns
    -------
    hi, lo: float32 arrays
        hi is arr rounded to float32, lo the float32 rounding of the residual
    """
    arr = np.asarray(arr, dtype=np.float64)
    hi = arr.astype(np.float32)
    lo = (arr - hi.astype(np.float64)).astype(np.float32)
    return hi, lo
