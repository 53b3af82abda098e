"""Install/build subprocesses for the generated apps."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
import shlex
import time

import structlog

from sitegen.errors import BuildError

logger = structlog.get_logger()

OUTPUT_TAIL_CHARS = 2000


@dataclass
class BuildStep:
    app: str
    command: str
    exit_code: int
    duration_ms: int


@dataclass
class BuildReport:
    steps: list[BuildStep] = field(default_factory=list)
    skipped: bool = False


def _tail(text: str, limit: int = OUTPUT_TAIL_CHARS) -> str:
    return text[-limit:] if len(text) > limit else text


class BuildRunner:
    """Runs the install and build commands in every app directory.

    Each command is bounded by ``timeout_seconds``; a command that outlives
    it is killed.
    """

    def __init__(
        self,
        install_command: str = "npm install --no-audit --no-fund",
        build_command: str = "npm run build",
        timeout_seconds: float = 600,
        enabled: bool = True,
    ):
        self.install_command = install_command
        self.build_command = build_command
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled

    async def run(self, app_dirs: list[Path]) -> BuildReport:
        """Install and build each app directory in order.

        Raises:
            BuildError: non-zero exit, spawn failure or timeout.
        """
        report = BuildReport()
        if not self.enabled:
            logger.info("build_skipped", reason="disabled")
            report.skipped = True
            return report

        for app_dir in app_dirs:
            if not (app_dir / "package.json").exists():
                logger.debug("build_dir_skipped", app=app_dir.name, reason="no package.json")
                continue
            for command in (self.install_command, self.build_command):
                report.steps.append(await self._run_command(app_dir, command))
        return report

    async def _run_command(self, cwd: Path, command: str) -> BuildStep:
        app = cwd.name
        logger.info("build_command_started", app=app, command=command)
        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *shlex.split(command),
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("build_spawn_failed", app=app, command=command, error=str(e))
            raise BuildError(f"{app}: could not start '{command}': {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout_seconds
            )
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            logger.error(
                "build_timed_out", app=app, command=command, timeout_seconds=self.timeout_seconds
            )
            raise BuildError(
                f"{app}: '{command}' timed out after {self.timeout_seconds}s"
            ) from e

        duration_ms = int((time.monotonic() - started) * 1000)
        stderr = stderr_bytes.decode(errors="replace").strip()
        stdout = stdout_bytes.decode(errors="replace").strip()

        if proc.returncode != 0:
            output = _tail(stderr or stdout)
            logger.error(
                "build_failed",
                app=app,
                command=command,
                exit_code=proc.returncode,
                stderr=output,
            )
            raise BuildError(
                f"{app}: '{command}' exited with code {proc.returncode}: {output or 'no output'}",
                exit_code=proc.returncode,
                output=output,
            )

        logger.info("build_command_finished", app=app, command=command, duration_ms=duration_ms)
        return BuildStep(app=app, command=command, exit_code=0, duration_ms=duration_ms)
