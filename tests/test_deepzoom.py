# -*- coding: utf-8 -*-
import asyncio
import unittest

import numpy as np

import test_config
import flyfract as ff
from flyfract.deepzoom import (
    DeepZoomManager, DeepZoomScheduler, HostTextureBackend,
    DEEP_ZOOM_STATUS, OrbitTextureError
)
from flyfract.view import ViewState


class Test_HostTextureBackend(unittest.TestCase):

    def test_create_delete(self):
        backend = HostTextureBackend()
        data = np.ones([2, 3, 4], dtype=np.float32)
        handle = backend.create_texture(data, 3, 2)
        self.assertIn(handle, backend.textures)
        np.testing.assert_array_equal(backend.texel(handle, 4), [1.] * 4)
        backend.delete_texture(handle)
        self.assertNotIn(handle, backend.textures)
        # Deleting twice is harmless
        backend.delete_texture(handle)

    def test_errors(self):
        data = np.ones([2, 3, 4], dtype=np.float32)
        with self.assertRaises(OrbitTextureError):
            HostTextureBackend(float_textures=False).create_texture(
                data, 3, 2
            )
        with self.assertRaises(OrbitTextureError):
            HostTextureBackend(max_texture_size=2).create_texture(data, 3, 2)
        with self.assertRaises(OrbitTextureError):
            HostTextureBackend().create_texture(data, 2, 3)


class Test_DeepZoomManager(unittest.TestCase):

    def setUp(self):
        self.backend = HostTextureBackend()
        self.manager = DeepZoomManager()
        self.manager.init(self.backend)

    def tearDown(self):
        self.manager.dispose()

    def test_shallow_zoom(self):
        manager = self.manager
        status = manager.update_sync(-0.5, 0., 10, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.idle)
        self.assertFalse(manager.enabled)
        self.assertIsNone(manager.reference_orbit.orbit_re)
        snapshot = manager.snapshot()
        self.assertFalse(snapshot.enabled)
        self.assertIsNone(snapshot.orbit_texture)

    def test_ready(self):
        manager = self.manager
        status = manager.update_sync(-0.5, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.ready)
        self.assertTrue(manager.enabled)
        self.assertEqual(manager.progress, 1.)

        snapshot = manager.snapshot()
        self.assertTrue(snapshot.enabled)
        self.assertIs(snapshot.status, DEEP_ZOOM_STATUS.ready)
        self.assertEqual(snapshot.orbit_length, 1000)
        self.assertEqual(snapshot.reference_point[0].hi, -0.5)
        texture = snapshot.orbit_texture
        self.assertEqual((texture.width, texture.height), (1000, 1))
        self.assertEqual(texture.length, 1000)
        np.testing.assert_array_equal(
            self.backend.texel(texture.handle, 1), [-0.5, 0., -1., 0.]
        )

    def test_no_recompute(self):
        manager = self.manager
        manager.update_sync(-0.5, 0., 20, 500)
        handle = manager.orbit_texture.handle
        orbit_re = manager.reference_orbit.orbit_re
        manager.update_sync(-0.5, 0., 20, 500)
        self.assertIs(manager.status, DEEP_ZOOM_STATUS.ready)
        self.assertEqual(manager.orbit_texture.handle, handle)
        self.assertIs(manager.reference_orbit.orbit_re, orbit_re)

    def test_recompute_releases_texture(self):
        manager = self.manager
        manager.update_sync(-0.5, 0., 20, 500)
        old_handle = manager.orbit_texture.handle
        manager.update_sync(-0.6, 0.1, 20, 500)
        self.assertIs(manager.status, DEEP_ZOOM_STATUS.ready)
        new_handle = manager.orbit_texture.handle
        self.assertNotEqual(new_handle, old_handle)
        self.assertNotIn(old_handle, self.backend.textures)
        self.assertEqual(list(self.backend.textures.keys()), [new_handle])

        manager.dispose()
        self.assertEqual(self.backend.textures, {})
        self.assertIsNone(manager.orbit_texture)

    def test_texture_layout(self):
        backend = HostTextureBackend(max_texture_size=64)
        manager = DeepZoomManager()
        manager.init(backend)
        manager.update_sync(-0.5, 0., 20, 500)
        texture = manager.orbit_texture
        self.assertEqual((texture.width, texture.height), (64, 16))
        orbit = manager.reference_orbit
        n = 130
        np.testing.assert_array_equal(
            backend.texel(texture.handle, n),
            np.array([orbit.orbit_re[n], orbit.orbit_im[n],
                      orbit.orbit2_re[n], orbit.orbit2_im[n]],
                     dtype=np.float32)
        )
        with test_config.patched_settings(max_orbit_texture_size=32):
            manager.update_sync(-0.6, 0., 20, 500)
        self.assertEqual(manager.orbit_texture.width, 32)

    @test_config.no_stdout
    def test_no_float_textures(self):
        backend = HostTextureBackend(float_textures=False)
        manager = DeepZoomManager()
        manager.init(backend)
        self.assertFalse(manager.has_deep_zoom())
        self.assertFalse(manager.supports_deep_zoom("mandelbrot"))

        status = manager.update_sync(-0.5, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.error)
        self.assertFalse(manager.enabled)
        self.assertFalse(manager.snapshot().enabled)

        # error is sticky
        status = manager.update_sync(-0.6, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.error)
        status = manager.update_sync(-0.6, 0., 5, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.error)

        # ... until float textures are available
        backend.float_textures = True
        status = manager.update_sync(-0.6, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.ready)
        self.assertTrue(manager.snapshot().enabled)

    @test_config.no_stdout
    def test_no_backend(self):
        manager = DeepZoomManager()
        self.assertFalse(manager.has_deep_zoom())
        status = manager.update_sync(-0.5, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.error)
        self.assertFalse(manager.snapshot().enabled)

    def test_supports_deep_zoom(self):
        manager = self.manager
        self.assertTrue(manager.has_deep_zoom())
        self.assertTrue(manager.supports_deep_zoom())
        self.assertTrue(manager.supports_deep_zoom("mandelbrot"))
        self.assertFalse(manager.supports_deep_zoom("julia"))
        with test_config.patched_settings(enable_deep_zoom=False):
            self.assertFalse(manager.has_deep_zoom())
            status = manager.update_sync(-0.5, 0., 20, 500)
            self.assertIs(status, DEEP_ZOOM_STATUS.idle)
            self.assertFalse(manager.enabled)

    def test_busy_drop(self):
        manager = self.manager
        manager._busy = True
        status = manager.update_sync(-0.5, 0., 20, 500)
        self.assertIs(status, DEEP_ZOOM_STATUS.idle)
        self.assertIsNone(manager.reference_orbit.orbit_re)
        manager._busy = False

    def test_async_update(self):
        manager = self.manager

        async def run():
            task = asyncio.ensure_future(manager.update(-0.5, 0., 20, 500))
            await asyncio.sleep(0)
            self.assertIs(manager.status, DEEP_ZOOM_STATUS.computing)
            dropped_status = await manager.update(-0.6, 0.1, 20, 500)
            status = await task
            return dropped_status, status

        with test_config.patched_settings(orbit_chunk_size=100):
            dropped_status, status = asyncio.run(run())

        self.assertIs(dropped_status, DEEP_ZOOM_STATUS.computing)
        self.assertIs(status, DEEP_ZOOM_STATUS.ready)
        # The dropped view was found stale and computed afterwards
        self.assertEqual(manager.reference_orbit.cached_center_x, -0.6)
        self.assertEqual(manager.reference_orbit.cached_center_y, 0.1)
        self.assertEqual(len(self.backend.textures), 1)
        self.assertFalse(manager._busy)


class Test_DeepZoomScheduler(unittest.TestCase):

    def setUp(self):
        self.now = 0.
        self.manager = DeepZoomManager()
        self.manager.init(HostTextureBackend())
        self.scheduler = DeepZoomScheduler(
            self.manager, clock=lambda: self.now
        )
        self.view = ViewState()
        self.view.set_view(-0.5, 0., 2. ** 20)

    def test_shallow(self):
        self.view.set_view(-0.5, 0., 2. ** 5)
        snapshot = self.scheduler.frame_update(self.view, 500)
        self.assertFalse(snapshot.enabled)
        self.assertFalse(self.scheduler.active)
        self.assertIsNone(self.manager.reference_orbit.orbit_re)

    def test_gesture(self):
        scheduler = self.scheduler
        snapshot = scheduler.frame_update(self.view, 500, is_gesturing=True)
        self.assertFalse(snapshot.enabled)
        self.assertTrue(scheduler.pending_update)
        self.assertFalse(scheduler.active)
        self.assertIsNone(self.manager.reference_orbit.orbit_re)

        # End of gesture
        snapshot = scheduler.frame_update(self.view, 500)
        self.assertTrue(snapshot.enabled)
        self.assertTrue(scheduler.active)
        self.assertFalse(scheduler.pending_update)
        self.assertEqual(snapshot.orbit_length, 1000)

        # Deep zoom suspended during the next gesture
        snapshot = scheduler.frame_update(self.view, 500, is_gesturing=True)
        self.assertFalse(snapshot.enabled)

    def test_throttle(self):
        scheduler = self.scheduler
        snapshot = scheduler.frame_update(self.view, 500)
        self.assertTrue(snapshot.enabled)
        handle = snapshot.orbit_texture.handle

        # center moved, but within the throttle delay
        self.view.pan(10., 0.)
        self.now += 0.01
        snapshot = scheduler.frame_update(self.view, 500)
        self.assertTrue(snapshot.enabled)
        self.assertEqual(snapshot.orbit_texture.handle, handle)

        self.now += 1.
        snapshot = scheduler.frame_update(self.view, 500)
        self.assertTrue(snapshot.enabled)
        self.assertNotEqual(snapshot.orbit_texture.handle, handle)
        self.assertEqual(
            self.manager.reference_orbit.cached_center_x, self.view.center[0]
        )

    def test_unsupported_fractal(self):
        snapshot = self.scheduler.frame_update(
            self.view, 500, fractal_type="julia"
        )
        self.assertFalse(snapshot.enabled)
        self.assertFalse(self.scheduler.active)


if __name__ == "__main__":
    runner = unittest.TextTestRunner(verbosity=2)
    runner.run(test_config.suite([
        Test_HostTextureBackend,
        Test_DeepZoomManager,
        Test_DeepZoomScheduler,
    ]))
