# -*- coding: utf-8 -*-
import math
import logging

import flyfract as ff
from flyfract.numpy_utils.double_single import (
    ds_split, ds_add, ds_renorm, ds_value
)


logger = logging.getLogger(__name__)

DEFAULT_CENTER = (-0.5, 0.)


class ViewState:

    def __init__(self, screen_width=800, screen_height=600):
        """
Camera state of the interactive view.

The center coordinates are stored as double-single pairs (`HiLo`) and
updated by double-single additions, so that the small pan / zoom deltas of
a deep view are not lost. The zoom is stored as its log2, for smooth
interpolation.

Parameters
----------
screen_width, screen_height: int
    Size of the rendering surface, in pixels
"""
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.color_offset = 0.
        self.reset()

    def reset(self):
        """ Back to the default view """
        x, y = DEFAULT_CENTER
        self.center_x = ds_split(x)
        self.center_y = ds_split(y)
        self.zoom_log = 0.
        self.zoom = 1.
        self.rotation = 0.

    @property
    def zoom_level(self):
        return 2. ** self.zoom_log

    @property
    def center(self):
        """ The center as native floats """
        return ds_value(self.center_x), ds_value(self.center_y)

    def set_screen_size(self, width, height):
        self.screen_width = width
        self.screen_height = height

    def _pixel_scale(self, zoom):
        """ Size of a screen pixel in fractal space """
        return 2. / (zoom * min(self.screen_width, self.screen_height))

    def _move_center(self, dx, dy):
        self.center_x = ds_renorm(ds_add(self.center_x, ds_split(dx)))
        self.center_y = ds_renorm(ds_add(self.center_y, ds_split(dy)))

    def pan(self, dx, dy):
        """
        Pans the view by a screen delta (in pixels). The delta is rotated
        back to fractal space ; fractal y axis points upward.
        """
        scale = self._pixel_scale(self.zoom)
        cos_r = math.cos(-self.rotation)
        sin_r = math.sin(-self.rotation)
        rot_dx = dx * cos_r - dy * sin_r
        rot_dy = dx * sin_r + dy * cos_r
        self._move_center(-rot_dx * scale, rot_dy * scale)

    def rotate(self, angle):
        """ Rotates the view, rotation kept in [0, 2 pi) """
        two_pi = 2. * math.pi
        self.rotation = (self.rotation + angle) % two_pi

    def zoom_at(self, factor, screen_x, screen_y):
        """
        Zooms by `factor` (> 1 zooms in), keeping the fractal point under
        the screen position (screen_x, screen_y) fixed.
        """
        old_zoom = self.zoom
        self.zoom_log = min(
            ff.settings.max_zoom_log,
            max(ff.settings.min_zoom_log, self.zoom_log + math.log2(factor))
        )
        self.zoom = 2. ** self.zoom_log

        scale = self._pixel_scale(old_zoom)
        fx = (screen_x - self.screen_width / 2.) * scale
        fy = -(screen_y - self.screen_height / 2.) * scale

        # Actual factor, after clamping
        adjust = 1. - old_zoom / self.zoom
        self._move_center(fx * adjust, fy * adjust)

    def set_view(self, center_x, center_y, zoom):
        """ Sets the view to the given center and zoom level """
        self.center_x = ds_split(center_x)
        self.center_y = ds_split(center_y)
        self.zoom = zoom
        self.zoom_log = math.log2(zoom)
        self.rotation = 0.
        logger.debug(
            f"View set to ({center_x!r}, {center_y!r}), "
            f"zoom 2^{self.zoom_log:.2f}"
        )

    def get_uniforms(self):
        """ Camera data for the standard shader """
        return {
            "center": (
                self.center_x.hi, self.center_x.lo,
                self.center_y.hi, self.center_y.lo
            ),
            "zoom": self.zoom,
            "rotation": self.rotation,
            "color_offset": self.color_offset
        }

    def get_max_iterations(self, is_gesturing=False):
        """
        Iteration target for the current zoom depth: grows with the zoom,
        capped at 1000, and reduced during gestures.
        """
        base_iter = 100 + int(max(0., self.zoom_log) * 25)
        max_iter = min(1000, base_iter)
        if is_gesturing:
            return max(50, int(max_iter * 0.65))
        return max_iter
