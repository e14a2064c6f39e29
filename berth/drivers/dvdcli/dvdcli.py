"""dvdcli driver - mounts volumes through the Docker volume driver CLI.

Invocations:
    <tool> mount --volumename=<name> --volumedriver=<driver> [--volumeopts=<opts>]
    <tool> unmount --volumename=<name>

Arguments are passed as an argv list (no shell). Volume names and drivers
have already been restricted to a safe character set by the environment
validator; options travel as a single argument.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from berth.drivers.base import MountDriver
from berth.errors import ExternalToolError
from berth.models.mount import mount_point_for

if TYPE_CHECKING:
    from berth.config import ToolConfig
    from berth.models.mount import ExternalMount

logger = structlog.get_logger()

VOL_NAME_OPTION = "--volumename="
VOL_DRIVER_OPTION = "--volumedriver="
VOL_OPTS_OPTION = "--volumeopts="


class DvdcliDriver(MountDriver):
    """MountDriver backed by the dvdcli executable."""

    def __init__(self, tool: ToolConfig, *, mount_prefix: str) -> None:
        self._tool_path = tool.path
        self._timeout = tool.timeout_seconds
        self._mount_prefix = mount_prefix
        self._log = logger.bind(driver="dvdcli")

    def build_mount_command(self, mount: ExternalMount) -> list[str]:
        argv = [
            self._tool_path,
            "mount",
            f"{VOL_NAME_OPTION}{mount.volume_name}",
            f"{VOL_DRIVER_OPTION}{mount.volume_driver}",
        ]
        if mount.options:
            argv.append(f"{VOL_OPTS_OPTION}{mount.options}")
        return argv

    def build_unmount_command(self, mount: ExternalMount) -> list[str]:
        return [self._tool_path, "unmount", f"{VOL_NAME_OPTION}{mount.volume_name}"]

    async def _run(self, argv: list[str]) -> tuple[int | None, str]:
        """Run the tool to completion.

        Returns:
            Tuple of (exit_code, combined stdout/stderr)

        Raises:
            ExternalToolError: If the tool cannot be started or times out
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise ExternalToolError(
                f"Cannot execute {self._tool_path}: {e}",
                details={"tool": self._tool_path},
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass
            raise ExternalToolError(
                f"{self._tool_path} timed out after {self._timeout}s",
                details={"tool": self._tool_path, "timeout_seconds": self._timeout},
            )

        output = "\n".join(
            part.strip()
            for part in (
                stdout.decode("utf-8", errors="replace"),
                stderr.decode("utf-8", errors="replace"),
            )
            if part.strip()
        )
        return process.returncode, output

    async def mount(self, mount: ExternalMount) -> str:
        argv = self.build_mount_command(mount)
        self._log.info(
            "dvdcli.mount",
            container_id=mount.container_id,
            volume_name=mount.volume_name,
            volume_driver=mount.volume_driver,
        )

        exit_code, output = await self._run(argv)
        if exit_code != 0:
            self._log.error(
                "dvdcli.mount.failed",
                container_id=mount.container_id,
                volume_name=mount.volume_name,
                exit_code=exit_code,
                output=output,
            )
            raise ExternalToolError(
                f"Mount of volume {mount.volume_name} failed with exit code {exit_code}",
                exit_code=exit_code,
                output=output,
            )

        mount_point = mount_point_for(self._mount_prefix, mount.volume_name)
        self._log.info(
            "dvdcli.mount.done",
            container_id=mount.container_id,
            volume_name=mount.volume_name,
            mount_point=mount_point,
        )
        return mount_point

    async def unmount(self, mount: ExternalMount) -> None:
        argv = self.build_unmount_command(mount)
        self._log.info(
            "dvdcli.unmount",
            container_id=mount.container_id,
            volume_name=mount.volume_name,
        )

        exit_code, output = await self._run(argv)
        if exit_code != 0:
            self._log.error(
                "dvdcli.unmount.failed",
                container_id=mount.container_id,
                volume_name=mount.volume_name,
                exit_code=exit_code,
                output=output,
            )
            raise ExternalToolError(
                f"Unmount of volume {mount.volume_name} failed with exit code {exit_code}",
                exit_code=exit_code,
                output=output,
            )

        self._log.info("dvdcli.unmount.done", volume_name=mount.volume_name)
