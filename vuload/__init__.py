"""Virtual-user load generation engine.

Reproduces ramping-VU scenario semantics (staged concurrency targets,
tagged requests, checks and think-time) against a single HTTP endpoint.
"""

from ._version import __version__

__all__ = ["__version__"]
