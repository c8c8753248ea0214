# -*- coding: utf-8 -*-
import math
import unittest

import test_config
import flyfract as ff
from flyfract.view import ViewState


class Test_ViewState(unittest.TestCase):

    def setUp(self):
        self.view = ViewState(800, 600)

    def test_default(self):
        view = self.view
        self.assertEqual(view.center, (-0.5, 0.))
        self.assertEqual(view.zoom_log, 0.)
        self.assertEqual(view.zoom_level, 1.)
        self.assertEqual(view.rotation, 0.)

    def test_pan(self):
        view = self.view
        # pixel scale: 2 / 600
        view.pan(60., 0.)
        self.assertAlmostEqual(view.center[0], -0.7, places=14)
        self.assertAlmostEqual(view.center[1], 0., places=14)
        view.pan(0., 30.)
        self.assertAlmostEqual(view.center[1], 0.1, places=14)

    def test_pan_rotated(self):
        view = self.view
        view.rotate(math.pi)
        view.pan(60., 0.)
        self.assertAlmostEqual(view.center[0], -0.3, places=14)

    def test_rotate(self):
        view = self.view
        view.rotate(3. * math.pi)
        self.assertAlmostEqual(view.rotation, math.pi, places=12)
        view.rotate(-2. * math.pi)
        self.assertAlmostEqual(view.rotation, math.pi, places=12)
        self.assertTrue(0. <= view.rotation < 2. * math.pi)

    def test_zoom_at(self):
        view = self.view
        # zoom at the screen center: center unchanged
        view.zoom_at(2., 400., 300.)
        self.assertEqual(view.center, (-0.5, 0.))
        self.assertEqual(view.zoom_log, 1.)

        view.reset()
        # The point under the cursor (0., 0.) is kept fixed
        view.zoom_at(2., 700., 300.)
        self.assertAlmostEqual(view.center[0], 0., places=14)
        self.assertEqual(view.zoom_level, 2.)

    def test_zoom_clamp(self):
        view = self.view
        view.zoom_at(2. ** 50, 400., 300.)
        self.assertEqual(view.zoom_log, ff.settings.max_zoom_log)
        view.zoom_at(2. ** -100, 400., 300.)
        self.assertEqual(view.zoom_log, ff.settings.min_zoom_log)

    def test_deep_pan(self):
        view = self.view
        view.set_view(-0.5, 0., 2. ** 30)
        step = 2. / (2. ** 30 * 600.)
        for _ in range(1000):
            view.pan(-1., 0.)
        self.assertAlmostEqual(view.center[0], -0.5 + 1000 * step,
                               delta=1e-15)
        uniforms = view.get_uniforms()
        hi, lo, _, _ = uniforms["center"]
        self.assertAlmostEqual(hi + lo, view.center[0], delta=1e-16)
        self.assertEqual(uniforms["zoom"], 2. ** 30)

    def test_max_iterations(self):
        view = self.view
        self.assertEqual(view.get_max_iterations(), 100)
        self.assertEqual(view.get_max_iterations(is_gesturing=True), 65)
        view.set_view(-0.5, 0., 2. ** 40)
        self.assertEqual(view.get_max_iterations(), 1000)
        self.assertEqual(view.get_max_iterations(is_gesturing=True), 650)

    def test_screen_size(self):
        view = self.view
        view.set_screen_size(1200, 300)
        view.pan(30., 0.)
        # pixel scale: 2 / 300
        self.assertAlmostEqual(view.center[0], -0.7, places=14)


if __name__ == "__main__":
    runner = unittest.TextTestRunner(verbosity=2)
    runner.run(test_config.suite([Test_ViewState]))
