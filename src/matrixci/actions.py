# actions.py
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from .errors import ActionFailure, ActionTimeout
from .model import PlatformDescriptor

# Process invocation boundary:
#   (cwd, command, env) -> (exit status, combined output)
# Output is never parsed here, only carried back for the report.

OUTPUT_TAIL = 4000

TOOL_HINTS = {
    "cargo": "Install Rust (rustup) or fix PATH.",
    "rustc": "Install Rust (rustup) or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
    "apt-get": "apt-get is only available on Debian/Ubuntu hosts.",
    "brew": "Install Homebrew (https://brew.sh).",
    "choco": "Install Chocolatey (https://chocolatey.org).",
}


def _text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


@dataclass(frozen=True)
class ActionResult:
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ActionContext:
    """What a builtin step gets to see: its platform, working tree and env."""
    step: str
    platform: PlatformDescriptor
    workdir: Path
    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict)
    timeout: float | None = None


class ActionRunner:
    # False when commands run outside the host, so the env handed to run()
    # holds only plan, step and MATRIX_* values
    inherits_host_env = True

    def run(
        self,
        command: str,
        *,
        step: str,
        cwd: Path,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> ActionResult:
        raise NotImplementedError


# ----------------------------------------------------------------------
# Local shell
# ----------------------------------------------------------------------

class LocalRunner(ActionRunner):
    """Runs commands through the host shell, stderr merged into stdout."""

    def run(
        self,
        command: str,
        *,
        step: str,
        cwd: Path,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> ActionResult:
        if not cwd.exists():
            raise ActionFailure(
                step=step,
                message=f"cwd not found: {cwd}",
                command=command,
            )

        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=str(cwd),
                env=dict(env),
                encoding="utf-8",
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ActionTimeout(
                step=step,
                message=f"timed out after {timeout}s",
                command=command,
                output=_text(e.output)[-OUTPUT_TAIL:],
                timeout=timeout,
            )
        except OSError as e:
            raise ActionFailure(
                step=step,
                message=f"could not launch: {e}",
                command=command,
            )

        return ActionResult(exit_code=proc.returncode, output=proc.stdout or "")


# ----------------------------------------------------------------------
# Docker
# ----------------------------------------------------------------------

CONTAINER_WORKDIR = "/workspace"


class DockerRunner(ActionRunner):
    """
    Runs each command inside a throwaway container of `image`, with the working
    tree mounted at /workspace. Every variable in `env` is passed with -e.
    """

    inherits_host_env = False

    def __init__(
        self,
        image: str,
        workdir: str | Path,
        *,
        volumes: list[str] | None = None,
        user: str | None = None,
    ):
        self.image = image
        self.workdir = Path(workdir).resolve()
        self.volumes = list(volumes or [])
        self.user = user

    def build_command(self, command: str, *, cwd: Path, env: Mapping[str, str]) -> list[str]:
        cmd = ["docker", "run", "--rm"]

        cmd.extend(["-v", f"{self.workdir}:{CONTAINER_WORKDIR}"])
        for vol in self.volumes:
            cmd.extend(["-v", vol])

        try:
            rel = Path(cwd).resolve().relative_to(self.workdir).as_posix()
        except ValueError:
            rel = "."
        container_cwd = CONTAINER_WORKDIR if rel == "." else f"{CONTAINER_WORKDIR}/{rel}"
        cmd.extend(["-w", container_cwd])

        for key, value in env.items():
            cmd.extend(["-e", f"{key}={value}"])

        if self.user:
            cmd.extend(["--user", self.user])

        cmd.append(self.image)
        cmd.extend(["sh", "-c", command])
        return cmd

    def run(
        self,
        command: str,
        *,
        step: str,
        cwd: Path,
        env: Mapping[str, str],
        timeout: float | None = None,
    ) -> ActionResult:
        docker_cmd = self.build_command(command, cwd=cwd, env=env)

        try:
            proc = subprocess.run(
                docker_cmd,
                shell=False,
                encoding="utf-8",
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ActionTimeout(
                step=step,
                message=f"timed out after {timeout}s",
                command=command,
                output=_text(e.output)[-OUTPUT_TAIL:],
                timeout=timeout,
            )
        except FileNotFoundError:
            raise ActionFailure(
                step=step,
                message="could not launch: docker is not available",
                command=command,
                details={"hint": TOOL_HINTS["docker"]},
            )
        except OSError as e:
            raise ActionFailure(step=step, message=f"could not launch: {e}", command=command)

        return ActionResult(exit_code=proc.returncode, output=proc.stdout or "")


RunnerFactory = Callable[[PlatformDescriptor], ActionRunner]


def select_runner(platform: PlatformDescriptor, workdir: str | Path) -> ActionRunner:
    """Platforms with an `image` attribute run in Docker, everything else locally."""
    image = platform.get("image")
    if image:
        return DockerRunner(image, workdir, user=platform.get("docker_user"))
    return LocalRunner()


def variant_env(
    platform: PlatformDescriptor,
    *layers: Optional[Mapping[str, str]],
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Merge os.environ (or `base`) + each layer, then expose the platform:
      MATRIX_PLATFORM=<id>, MATRIX_<ATTR>=<value>
    """
    env = dict(os.environ if base is None else base)
    for layer in layers:
        env.update(layer or {})
    env["MATRIX_PLATFORM"] = platform.id
    for key, value in platform.attributes.items():
        env[f"MATRIX_{key.upper().replace('-', '_')}"] = value
    return env
