# -*- coding: utf-8 -*-
"""
General settings at application-level
"""

enable_deep_zoom: bool = True
"""Turn on or off the perturbation (deep zoom) mode. If False, the deep zoom
manager always reports a disabled snapshot and the renderer stays in
standard precision (useful for debugging)"""

deep_zoom_level: float = 13.
"""Zoom depth (log2 of the magnification) above which the perturbation mode
is activated. The double-single camera arithmetic of the standard shader
degrades before its theoretical limit, so we switch early (2**13 ~ 8Kx)"""

escape_radius_sq: float = 256.
"""Squared escape radius used for the reference orbit. A radius of 16
(instead of the usual 2) reduces banding near the set boundary"""

max_reference_iterations: int = 100000
"""Hard cap on the number of iterations stored for a reference orbit"""

orbit_chunk_size: int = 1000
"""Number of full precision iterations computed between two yields to the
event loop (asynchronous reference orbit computation)"""

max_orbit_texture_size: int = 4096
"""Maximal width of the packed orbit texture. The height is adjusted to hold
all the stored iterations"""

deep_zoom_throttle: float = 0.1
"""Minimal delay (in seconds) between 2 reference orbit updates triggered by
the frame scheduler"""

min_zoom_log: float = -10.
"""Lowest zoom depth (log2) reachable by the camera"""

max_zoom_log: float = 40.
"""Deepest zoom depth (log2) reachable by the camera. The camera center is
stored as 2 double-single pairs, going deeper is pointless"""

verbosity: int = 1
"""
Controls the verbosity for the log messages:

    - 0: WARNING & higher severity, output to stderr
    - 1 (default): INFO & higher severity, output to stdout
    - 2:

        - INFO & higher severity, output to stdout
        - DEBUG & higher severity, output to a log file

    - 3 (highest verbosity):

        - INFO & higher severity, output to stdout
        - ALL message (incl. NOTSET), output to a log file

Note: Severities in descending order:
CRITICAL, ERROR, WARNING, INFO, DEBUG, NOTSET """

log_directory: str = None
""" The logging directory for this session - as str"""
