# -*- coding: utf-8 -*-
__license__ = "MIT"
__version__ = "0.1.0"

import numpy as np
import warnings

from . import settings
from . import utils
from .settings import verbosity, log_directory
from .numpy_utils.bigfloat import BigFloat, BigComplex, limbs_for_zoom
from .numpy_utils.double_single import HiLo
from .perturbation import ReferenceOrbit, should_use_deep_zoom
from .deepzoom import (
    DeepZoomManager, DeepZoomScheduler, DeepZoomSnapshot, DEEP_ZOOM_STATUS,
    TextureBackend, HostTextureBackend, OrbitTexture, OrbitTextureError
)
from .view import ViewState
from .log import set_log_handlers

# Disable numpy warnings (float32 overflow of the hi / lo splits)
if verbosity < 3:
    np.seterr(all="ignore")
    warnings.filterwarnings(
        action="ignore",
        message="overflow encountered in"
    )
