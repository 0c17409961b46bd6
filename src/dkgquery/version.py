"""Version information for dkgquery."""

__all__ = ["VERSION", "get_version"]

VERSION = "0.1.0"


def get_version() -> str:
    """Get the dkgquery version string."""
    return VERSION
