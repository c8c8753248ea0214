# -*- coding: utf-8 -*-
import asyncio
import logging
import math
import textwrap

import numpy as np

import flyfract as ff
from flyfract.numpy_utils.bigfloat import BigComplex, limbs_for_zoom
from flyfract.numpy_utils.double_single import ds_split, split_hilo_array


logger = logging.getLogger(__name__)


def should_use_deep_zoom(zoom_log):
    """
    True if the perturbation mode shall be used at this zoom depth.

    The standard shader emulates double precision with float32 hi / lo
    pairs, but accumulating them in float32 loses bits immediately: it
    degrades well before its theoretical limit. Hence the early switch
    (`ff.settings.deep_zoom_level`, 2**13 ~ 8Kx by default).
    """
    return zoom_log > ff.settings.deep_zoom_level


def calculate_delta_c(pixel_x, pixel_y, ref_x, ref_y):
    """
    Offset of a pixel from the reference point, as hi / lo pairs

    Returns
    -------
    delta_re, delta_im: HiLo
    """
    return ds_split(pixel_x - ref_x), ds_split(pixel_y - ref_y)


class ReferenceOrbit:

    def __init__(self):
        """
Full precision reference orbit for perturbation rendering.

The Mandelbrot iteration

.. math::

    Z_0 &= 0 \\\\
    Z_{n+1} &= Z_{n}^2 + C

is computed once, at the view center C, with `BigComplex` arithmetic. The
orbit is then exported as native precision samples :math:`Z_n` and
:math:`2 Z_n`. For a pixel at :math:`C + \\delta_C` the renderer only
iterates the perturbation:

.. math::

    \\delta_{n+1} = 2 Z_n \\delta_n + \\delta_n^2 + \\delta_C

which stays close to machine precision whatever the zoom depth.

Attributes
----------
orbit_re, orbit_im, orbit2_re, orbit2_im: float64 arrays
    Samples of :math:`Z_n` and :math:`2 Z_n`, sized to the iteration cap
orbit_length: int
    Number of valid samples. ``orbit_length < iter_limit`` iff the
    reference point escaped.
ref_point: BigComplex
    Full precision reference point
ref_hilo: (HiLo, HiLo)
    Reference point as double-single pairs
"""
        self.ref_point = None
        self.ref_hilo = None

        self.orbit_re = None
        self.orbit_im = None
        self.orbit2_re = None
        self.orbit2_im = None
        self.orbit_length = 0
        self.iter_limit = 0
        self.precision = None

        self.is_computing = False
        self.progress = 0.

        # Cache keys for invalidation
        self.cached_center_x = None
        self.cached_center_y = None
        self.cached_zoom_log = -math.inf

    @property
    def escaped(self):
        """ True if the reference point escaped before the iteration cap.
        Note that the opposite does not prove the point is inside the set """
        return (self.orbit_re is not None) and (
            self.orbit_length < self.iter_limit
        )

    def needs_update(self, center_x, center_y, zoom_log, max_iter):
        """
        True if the orbit shall be recomputed for this view.

        - no orbit stored yet
        - the center moved by more than a sub-pixel threshold, which
          shrinks with the zoom depth: 2**(-zoom_log - 20)
        - more iterations requested than 90 % of the stored orbit length
        """
        if (self.orbit_re is None) or (self.orbit_length == 0):
            return True

        threshold = 2. ** (-zoom_log - 20)
        dx = abs(center_x - self.cached_center_x)
        dy = abs(center_y - self.cached_center_y)
        if (dx > threshold) or (dy > threshold):
            return True

        if max_iter > self.orbit_length * 0.9:
            return True

        return False

    def compute_sync(self, center_x, center_y, zoom_log, max_iter,
                     on_progress=None):
        """
        Computes the reference orbit, blocking until completion.

        Parameters
        ----------
        center_x, center_y: float
            Reference point (view center)
        zoom_log: float
            log2 of the zoom level, drives the precision
        max_iter: int
            Requested iteration count ; the orbit is computed up to
            min(2 * max_iter, ff.settings.max_reference_iterations)
        on_progress: callable
            Optional, called with the progress in [0, 1] after each chunk
        """
        if self.is_computing:
            logger.debug("Reference orbit computation in progress, skipping")
            return
        self.is_computing = True
        try:
            for _ in self._iterate_chunks(
                center_x, center_y, zoom_log, max_iter, on_progress
            ):
                pass
        finally:
            self._end_computing(on_progress)

    async def compute(self, center_x, center_y, zoom_log, max_iter,
                      on_progress=None):
        """
        Computes the reference orbit, yielding to the event loop between
        2 chunks of `ff.settings.orbit_chunk_size` iterations.
        Same parameters as `compute_sync`. A call while a computation is in
        flight is ignored.
        """
        if self.is_computing:
            logger.debug("Reference orbit computation in progress, skipping")
            return
        self.is_computing = True
        try:
            for _ in self._iterate_chunks(
                center_x, center_y, zoom_log, max_iter, on_progress
            ):
                await asyncio.sleep(0)
        finally:
            self._end_computing(on_progress)

    def _end_computing(self, on_progress):
        self.is_computing = False
        if on_progress is not None:
            on_progress(1.)

    def _iterate_chunks(self, center_x, center_y, zoom_log, max_iter,
                        on_progress):
        """
        Generator implementation of the full precision loop, yields between
        chunks. The new orbit replaces the previous one (all arrays and
        cache keys together) only once the loop is completed.
        """
        precision = limbs_for_zoom(zoom_log)
        c = BigComplex(center_x, center_y, precision)

        iter_limit = min(2 * max_iter, ff.settings.max_reference_iterations)
        orbit_re = np.zeros([iter_limit], dtype=np.float64)
        orbit_im = np.zeros([iter_limit], dtype=np.float64)
        orbit2_re = np.zeros([iter_limit], dtype=np.float64)
        orbit2_im = np.zeros([iter_limit], dtype=np.float64)

        escape_radius_sq = ff.settings.escape_radius_sq
        chunk_size = ff.settings.orbit_chunk_size

        logger.debug(textwrap.dedent(f"""\
            Computing reference orbit:
              center: ({center_x!r}, {center_y!r}), zoom: 2^{zoom_log}
              precision: {precision} limbs, iteration limit: {iter_limit}"""
        ))
        self.progress = 0.

        z = BigComplex(0, 0, precision)
        n = 0
        escaped = False

        while (n < iter_limit) and not escaped:
            chunk_end = min(n + chunk_size, iter_limit)

            while n < chunk_end:
                zr, zi = z.to_numbers()
                orbit_re[n] = zr
                orbit_im[n] = zi
                orbit2_re[n] = 2. * zr
                orbit2_im[n] = 2. * zi

                if zr * zr + zi * zi > escape_radius_sq:
                    escaped = True
                    break

                z = z.square().add(c)
                n += 1

            self.progress = n / iter_limit
            if on_progress is not None:
                on_progress(self.progress)

            if (n < iter_limit) and not escaped:
                yield n

        self.orbit_re = orbit_re
        self.orbit_im = orbit_im
        self.orbit2_re = orbit2_re
        self.orbit2_im = orbit2_im
        self.orbit_length = n
        self.iter_limit = iter_limit
        self.precision = precision
        self.ref_point = c
        self.ref_hilo = c.to_hilo()

        self.cached_center_x = center_x
        self.cached_center_y = center_y
        self.cached_zoom_log = zoom_log

        if escaped:
            logger.info(
                f"Reference orbit escaped at iteration {n}, "
                f"|z|^2={orbit_re[n] ** 2 + orbit_im[n] ** 2:.2f}"
            )
        else:
            logger.info(
                f"Reference orbit did not escape after {iter_limit} "
                "iterations (point likely in set)"
            )

    def get_gpu_data(self):
        """
        Returns the reference point and orbit samples for the renderer

        Returns
        -------
        data: dict
            "ref_re", "ref_im": HiLo pairs of the reference point
            "orbit": dict with keys "re", "im", "re2", "im2" (arrays) and
            "length"
        """
        ref_re, ref_im = self.ref_hilo
        return {
            "ref_re": ref_re,
            "ref_im": ref_im,
            "orbit": {
                "re": self.orbit_re,
                "im": self.orbit_im,
                "re2": self.orbit2_re,
                "im2": self.orbit2_im,
                "length": self.orbit_length
            }
        }

    def orbit_hilo(self):
        """
        The valid orbit samples, each split into float32 hi / lo arrays

        Returns
        -------
        data: dict
            keys "re", "im", "re2", "im2" ; values (hi, lo) tuples of
            float32 arrays of length `orbit_length`
        """
        n = self.orbit_length
        return {
            "re": split_hilo_array(self.orbit_re[:n]),
            "im": split_hilo_array(self.orbit_im[:n]),
            "re2": split_hilo_array(self.orbit2_re[:n]),
            "im2": split_hilo_array(self.orbit2_im[:n]),
        }

    def texture_data(self, max_size):
        """
        Packs the orbit in a RGBA float32 2d array:
        texel n = (Z_n.re, Z_n.im, 2 Z_n.re, 2 Z_n.im), row-major.

        Index n maps to texel (n % width, n // width).

        Returns
        -------
        data: float32 array of shape (height, width, 4)
        width, height: int
            width = min(max_size, orbit_length)
            height = ceil(orbit_length / width)
        """
        n = self.orbit_length
        if n <= 0:
            raise ValueError(f"Cannot pack an empty orbit (length: {n})")

        width = min(max_size, n)
        height = (n + width - 1) // width
        data = np.zeros([height, width, 4], dtype=np.float32)
        flat = data.reshape(-1, 4)
        flat[:n, 0] = self.orbit_re[:n]
        flat[:n, 1] = self.orbit_im[:n]
        flat[:n, 2] = self.orbit2_re[:n]
        flat[:n, 3] = self.orbit2_im[:n]
        return data, width, height
