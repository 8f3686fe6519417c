"""ForwardAuth session gateway for applications behind a reverse proxy."""

from importlib.metadata import PackageNotFoundError, version

__version__: str
"""The version string of Porthor (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("porthor")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"

__all__ = ["__version__"]
