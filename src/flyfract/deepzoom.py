# -*- coding: utf-8 -*-
import dataclasses
import enum
import itertools
import logging
import textwrap
import time
import typing

import numpy as np

import flyfract as ff
from flyfract.numpy_utils.double_single import HiLo
from flyfract.perturbation import ReferenceOrbit, should_use_deep_zoom


logger = logging.getLogger(__name__)

DEEP_ZOOM_STATUS = enum.Enum(
    "DEEP_ZOOM_STATUS",
    ("idle", "computing", "ready", "error"),
    module=__name__
)

PERTURBATION_FRACTALS = ("mandelbrot",)
"""Fractal types with a perturbation (deep zoom) implementation"""


class OrbitTextureError(RuntimeError):
    """ The reference orbit could not be packed into a GPU texture (missing
    float texture capability, empty orbit, backend failure) """


@dataclasses.dataclass(frozen=True)
class OrbitTexture:
    """ Handle to the packed orbit texture, as created by a TextureBackend """
    handle: typing.Any
    width: int
    height: int
    length: int


@dataclasses.dataclass(frozen=True)
class DeepZoomSnapshot:
    """
    Per-frame state handed to the renderer.

    If `enabled` is False the renderer shall use the standard (non
    perturbation) shading.
    """
    enabled: bool
    reference_point: typing.Optional[typing.Tuple[HiLo, HiLo]]
    orbit_texture: typing.Optional[OrbitTexture]
    orbit_length: int
    status: DEEP_ZOOM_STATUS


class TextureBackend:
    """
    Interface to the storage of the packed reference orbit on the rendering
    device. Derived classes implement the actual resource management (e.g.
    OpenGL float textures).
    """
    max_texture_size: int = 4096

    def supports_float_textures(self) -> bool:
        """ True if RGBA float32 textures can be created """
        raise NotImplementedError("Derived classes shall implement")

    def create_texture(self, data, width, height):
        """
        Uploads a RGBA float32 array of shape (height, width, 4).

        Returns an opaque handle ; raises OrbitTextureError on failure
        """
        raise NotImplementedError("Derived classes shall implement")

    def delete_texture(self, handle):
        """ Releases the resource associated with handle """
        raise NotImplementedError("Derived classes shall implement")


class HostTextureBackend(TextureBackend):

    def __init__(self, float_textures=True, max_texture_size=4096):
        """
A TextureBackend keeping the textures as numpy arrays in host memory. Used
by CPU renderers and for testing.

Parameters
----------
float_textures: bool
    Emulates the availability of float textures on the device
max_texture_size: int
    Maximal texture dimension
"""
        self.float_textures = float_textures
        self.max_texture_size = max_texture_size
        self.textures = {}
        self._handles = itertools.count(1)

    def supports_float_textures(self):
        return self.float_textures

    def create_texture(self, data, width, height):
        if not self.float_textures:
            raise OrbitTextureError("Float textures not supported")
        if max(width, height) > self.max_texture_size:
            raise OrbitTextureError(
                f"Texture too large: {width} x {height} "
                f"(max: {self.max_texture_size})"
            )
        data = np.asarray(data, dtype=np.float32)
        if data.shape != (height, width, 4):
            raise OrbitTextureError(
                f"Unexpected texture data shape: {data.shape}"
            )
        handle = next(self._handles)
        self.textures[handle] = data.copy()
        return handle

    def delete_texture(self, handle):
        self.textures.pop(handle, None)

    def texel(self, handle, n):
        """ Returns the RGBA texel holding orbit index n """
        data = self.textures[handle]
        width = data.shape[1]
        return data[n // width, n % width, :]


class DeepZoomManager:

    def __init__(self):
        """
Owns the reference orbit, decides when to recompute it and packs it for the
renderer.

Status transitions:

    - idle -> computing: deep zoom requested and cached orbit stale
    - computing -> ready: orbit computed and packed into a texture
    - computing -> error: packing failed, deep zoom is disabled

The error status is sticky: it is left (through idle) only once the
texture backend supports float textures.

The manager is single-slot: a trigger received while a computation is in
flight is dropped. The latest dropped view is checked for staleness once
the computation completes.
"""
        self.reference_orbit = ReferenceOrbit()
        self.orbit_texture = None
        self.backend = None
        self.enabled = False
        self.status = DEEP_ZOOM_STATUS.idle
        self.progress = 0.

        self._busy = False
        self._dropped_request = None

    def init(self, backend):
        """ Attach the texture backend """
        self.backend = backend
        if backend.supports_float_textures():
            logger.info(
                "Float textures available - deep zoom textures enabled"
            )
        else:
            logger.error(
                "Float textures NOT available - deep zoom will NOT work"
            )

    def has_deep_zoom(self):
        """ True if the perturbation mode is available for this session """
        return (
            ff.settings.enable_deep_zoom
            and (self.backend is not None)
            and self.backend.supports_float_textures()
        )

    def supports_deep_zoom(self, fractal_type="mandelbrot"):
        """ True if the perturbation mode can be used for `fractal_type` """
        return (fractal_type in PERTURBATION_FRACTALS) and self.has_deep_zoom()

    def _set_progress(self, progress):
        self.progress = progress

    def _set_status(self, status):
        if status is not self.status:
            logger.debug(f"Deep zoom status: {self.status.name} -> "
                         f"{status.name}")
        self.status = status

    def _needs_compute(self, center_x, center_y, zoom_log, max_iter):
        """
        Status update before a computation ; returns True if the reference
        orbit shall be computed (the status is then `computing`).
        """
        if self.status is DEEP_ZOOM_STATUS.error:
            if (self.backend is None) or (
                not self.backend.supports_float_textures()
            ):
                self.enabled = False
                return False
            logger.info("Float textures available again, leaving error status")
            self._set_status(DEEP_ZOOM_STATUS.idle)

        if not (
            ff.settings.enable_deep_zoom and should_use_deep_zoom(zoom_log)
        ):
            self.enabled = False
            self._set_status(DEEP_ZOOM_STATUS.idle)
            return False

        self.enabled = True
        if (self.orbit_texture is not None) and (
            not self.reference_orbit.needs_update(
                center_x, center_y, zoom_log, max_iter
            )
        ):
            self._set_status(DEEP_ZOOM_STATUS.ready)
            return False

        self._set_status(DEEP_ZOOM_STATUS.computing)
        self.progress = 0.
        return True

    def update_sync(self, center_x, center_y, zoom_log, max_iter):
        """
        Updates the reference orbit if needed, blocking until done.

        Parameters
        ----------
        center_x, center_y: float
            View center
        zoom_log: float
            log2 of the zoom level
        max_iter: int
            Iteration count targeted by the renderer

        Returns
        -------
        status: DEEP_ZOOM_STATUS
        """
        if self._busy:
            self._drop(center_x, center_y, zoom_log, max_iter)
            return self.status

        self._busy = True
        try:
            if self._needs_compute(center_x, center_y, zoom_log, max_iter):
                self.reference_orbit.compute_sync(
                    center_x, center_y, zoom_log, max_iter,
                    on_progress=self._set_progress
                )
                self._publish_orbit()
        finally:
            self._busy = False
        return self.status

    async def update(self, center_x, center_y, zoom_log, max_iter):
        """
        Asynchronous version of `update_sync` ; the reference orbit is
        computed by chunks, yielding to the event loop in between.
        """
        if self._busy:
            self._drop(center_x, center_y, zoom_log, max_iter)
            return self.status

        self._busy = True
        try:
            request = (center_x, center_y, zoom_log, max_iter)
            while request is not None:
                self._dropped_request = None
                if self._needs_compute(*request):
                    await self.reference_orbit.compute(
                        *request, on_progress=self._set_progress
                    )
                    self._publish_orbit()
                # The view may have changed during the computation
                request = self._dropped_request
        finally:
            self._busy = False
            self._dropped_request = None
        return self.status

    def _drop(self, *request):
        logger.debug("Deep zoom update in progress, dropping trigger")
        self._dropped_request = request

    def _publish_orbit(self):
        """ computing -> ready | error """
        try:
            self._pack_orbit_texture()
        except OrbitTextureError as exc:
            logger.error(textwrap.dedent(f"""\
                Unable to pack the reference orbit, deep zoom disabled:
                  {exc}"""
            ))
            self.enabled = False
            self._set_status(DEEP_ZOOM_STATUS.error)
            return
        self._set_status(DEEP_ZOOM_STATUS.ready)

    def _pack_orbit_texture(self):
        """
        Replaces the orbit texture. This is not frame-atomic: the previous
        texture is released before the new one is created.
        """
        backend = self.backend
        if backend is None:
            raise OrbitTextureError("No texture backend attached")
        if not backend.supports_float_textures():
            raise OrbitTextureError("Float textures not supported")

        orbit = self.reference_orbit
        if orbit.orbit_length <= 0:
            raise OrbitTextureError(
                f"Cannot pack orbit of length {orbit.orbit_length}"
            )

        self.release_texture()

        max_size = min(ff.settings.max_orbit_texture_size,
                       backend.max_texture_size)
        data, width, height = orbit.texture_data(max_size)
        handle = backend.create_texture(data, width, height)
        self.orbit_texture = OrbitTexture(
            handle, width, height, orbit.orbit_length
        )
        logger.debug(
            f"Orbit texture created: {width} x {height} for "
            f"{orbit.orbit_length} iterations"
        )

    def release_texture(self):
        if self.orbit_texture is not None:
            if self.backend is not None:
                self.backend.delete_texture(self.orbit_texture.handle)
            self.orbit_texture = None

    def snapshot(self):
        """
        Returns the per-frame deep zoom state for the renderer.

        Returns
        -------
        snapshot: DeepZoomSnapshot
            Disabled unless the status is ready and a texture is available
        """
        texture = self.orbit_texture
        if (
            self.enabled
            and (self.status is DEEP_ZOOM_STATUS.ready)
            and (texture is not None)
        ):
            return DeepZoomSnapshot(
                enabled=True,
                reference_point=self.reference_orbit.ref_hilo,
                orbit_texture=texture,
                orbit_length=self.reference_orbit.orbit_length,
                status=self.status
            )
        return DeepZoomSnapshot(
            enabled=False,
            reference_point=None,
            orbit_texture=None,
            orbit_length=0,
            status=self.status
        )

    def dispose(self):
        """ Clean up resources """
        self.release_texture()


class DeepZoomScheduler:

    def __init__(self, manager, clock=time.perf_counter):
        """
Frame-level deep zoom policy for the application shell.

    - While a gesture is in progress, deep zoom is suspended (the standard
      shader pixelates at deep zoom but stays smooth) and an update is
      remembered for the end of the gesture.
    - Otherwise the reference orbit updates are throttled to one every
      `ff.settings.deep_zoom_throttle` seconds.

Parameters
----------
manager: DeepZoomManager
clock: callable
    Returns the current time in seconds
"""
        self.manager = manager
        self.clock = clock
        self.pending_update = False
        self.active = False
        self._last_update = -np.inf

    def frame_update(self, view, max_iter, is_gesturing=False,
                     fractal_type="mandelbrot"):
        """
        To be called once per frame before rendering.

        Parameters
        ----------
        view: flyfract.view.ViewState
        max_iter: int
            Iteration target of the frame
        is_gesturing: bool
            True while the user is panning / zooming

        Returns
        -------
        snapshot: DeepZoomSnapshot
        """
        manager = self.manager
        zoom_log = view.zoom_log
        use_deep = (
            should_use_deep_zoom(zoom_log)
            and manager.supports_deep_zoom(fractal_type)
        )

        if is_gesturing:
            self.active = False
            self.pending_update = use_deep
            return self._disabled_snapshot()

        self.active = use_deep
        if not use_deep:
            self.pending_update = False
            return self._disabled_snapshot()

        center_x, center_y = view.center
        needs_update = manager.reference_orbit.needs_update(
            center_x, center_y, zoom_log, max_iter
        )
        if needs_update or self.pending_update:
            now = self.clock()
            if now - self._last_update > ff.settings.deep_zoom_throttle:
                logger.debug(
                    f"Updating reference orbit at zoom 2^{zoom_log:.1f}"
                )
                manager.update_sync(center_x, center_y, zoom_log, max_iter)
                self._last_update = now
                self.pending_update = False

        return manager.snapshot()

    def _disabled_snapshot(self):
        return DeepZoomSnapshot(
            enabled=False,
            reference_point=None,
            orbit_texture=None,
            orbit_length=0,
            status=self.manager.status
        )
