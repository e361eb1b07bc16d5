"""Well-known locations for adapter tests.

``PROJECT_ROOT`` is the adapter project under test: ``HarnessSettings.project_root``
when set, else the current working directory (pytest's invocation directory).
Test programs live in ``DATA_ROOT``, its ``testdata/`` directory. Both end with
a path separator and are resolved from the settings each time they are read.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from dap_harness.config import get_settings

if TYPE_CHECKING:
    from dap_harness.config import HarnessSettings

DATA_DIR = "testdata"


def lowercase_drive_letter(path: str) -> str:
    """Lower-case the first character, so ``C:\\x`` and ``c:\\x`` compare equal.

    Adapters report Windows paths with a lower-case drive letter; POSIX paths
    start with ``/`` and pass through unchanged.
    """
    return path[:1].lower() + path[1:]


def project_root(settings: HarnessSettings | None = None) -> str:
    """Root of the adapter project under test."""
    settings = settings or get_settings()
    root = os.path.abspath(settings.project_root or os.getcwd())
    return lowercase_drive_letter(os.path.join(root, ""))


def data_root(settings: HarnessSettings | None = None) -> str:
    """Directory holding the programs the tests debug."""
    return os.path.join(project_root(settings), DATA_DIR, "")


def __getattr__(name: str) -> str:
    if name == "PROJECT_ROOT":
        return project_root()
    if name == "DATA_ROOT":
        return data_root()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
