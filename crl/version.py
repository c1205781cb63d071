"""
crl/version.py
==============
Version of the CRL-Core engines, as a string and as a comparable tuple.

    from crl.version import __version__, VERSION_INFO
    VERSION_INFO >= (0, 2)      # True
"""

from __future__ import annotations

from typing import NamedTuple


class VersionInfo(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


VERSION_INFO = VersionInfo(major=0, minor=2, patch=0)

__version__: str = str(VERSION_INFO)

FRAMEWORK_NAME = "CRL-Core"
FRAMEWORK_SLUG = "crl-core"     # distribution name, also reported by /health
