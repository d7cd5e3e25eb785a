"""bent - build and run Go benchmarks across a matrix of toolchain configurations."""

from bent.version.bent_version import BENT_VERSION, Version

__version__ = str(BENT_VERSION)
__version_info__ = BENT_VERSION

__all__ = [
    "BENT_VERSION",
    "Version",
    "__version__",
    "__version_info__",
]
