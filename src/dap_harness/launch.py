"""Launch argument patching.

Every launch made through the harness runs with verbose diagnostic logging,
and on nightly runtimes swaps in the nightly executable.
"""

from __future__ import annotations

import functools
import logging
import shutil
import subprocess
import sys
from typing import TYPE_CHECKING
from typing import Any

from pydantic import BaseModel
from pydantic import Field

from dap_harness.dap.client import DebugClient

if TYPE_CHECKING:
    from dap_harness.config import HarnessSettings
    from dap_harness.dap.client import TransportFactory
    from dap_harness.dap.messages import DAPResponse

logger = logging.getLogger(__name__)


def nightly_executable_name(platform: str, base: str = "node-nightly") -> str:
    """Name of the nightly runtime binary on ``platform``."""
    return f"{base}.cmd" if platform.startswith("win") else base


class RuntimeDescriptor(BaseModel):
    """The debuggee runtime the harness launches programs with."""

    platform: str = Field(default=sys.platform)
    version: str = ""
    nightly_version_prefix: str = "v6.2"
    nightly_executable: str = "node-nightly"

    model_config = {"frozen": True}

    @property
    def is_nightly(self) -> bool:
        return bool(self.version) and self.version.startswith(self.nightly_version_prefix)

    @property
    def runtime_executable(self) -> str | None:
        """Executable to force on launches, or None to leave the launch config alone."""
        if not self.is_nightly:
            return None
        return nightly_executable_name(self.platform, self.nightly_executable)


@functools.cache
def detect_runtime_version(runtime: str) -> str:
    """Ask ``runtime --version``; empty when the runtime can't be run."""
    executable = shutil.which(runtime)
    if executable is None:
        logger.warning("Runtime %r not found on PATH; assuming a release build", runtime)
        return ""
    try:
        result = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Could not query %s version: %s", runtime, e)
        return ""
    return result.stdout.strip()


def resolve_runtime(settings: HarnessSettings) -> RuntimeDescriptor:
    """Build the runtime descriptor for ``settings``, probing the version at most once."""
    version = settings.runtime_version
    if version is None:
        version = detect_runtime_version(settings.runtime)
    return RuntimeDescriptor(
        version=version,
        nightly_version_prefix=settings.nightly_version_prefix,
        nightly_executable=settings.nightly_executable,
    )


def patch_launch_args(launch_args: dict[str, Any], runtime: RuntimeDescriptor) -> dict[str, Any]:
    """Add the harness launch settings to ``launch_args`` in place."""
    launch_args["verboseDiagnosticLogging"] = True
    executable = runtime.runtime_executable
    if executable is not None:
        launch_args["runtimeExecutable"] = executable
    return launch_args


class HarnessDebugClient(DebugClient):
    """DebugClient whose launches always go through ``patch_launch_args``."""

    def __init__(
        self,
        runtime: str,
        adapter_path: str,
        adapter_id: str,
        *,
        runtime_descriptor: RuntimeDescriptor,
        timeout: float = 5.0,
        cwd: str | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        super().__init__(
            runtime,
            adapter_path,
            adapter_id,
            timeout=timeout,
            cwd=cwd,
            transport_factory=transport_factory,
        )
        self.runtime_descriptor = runtime_descriptor

    async def launch(self, launch_args: dict[str, Any]) -> DAPResponse:
        patch_launch_args(launch_args, self.runtime_descriptor)
        return await super().launch(launch_args)

    async def hit_breakpoint(
        self, launch_args: dict[str, Any], *args: Any, **kwargs: Any
    ) -> DAPResponse:
        patch_launch_args(launch_args, self.runtime_descriptor)
        return await super().hit_breakpoint(launch_args, *args, **kwargs)
