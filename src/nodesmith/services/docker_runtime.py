"""Docker runtime services for Nodesmith."""

import subprocess
from typing import List, Sequence

from nodesmith.errors import RuntimeCommandError
from nodesmith.errors_catalog import actionable_error


class DockerRuntimeService:
    """Detects docker compose and starts services of a generated manifest."""

    def __init__(self, logger, console, subprocess_module=subprocess):
        self.logger = logger
        self.console = console
        self.subprocess = subprocess_module

    def get_docker_compose_cmd(self) -> List[str]:
        try:
            self.subprocess.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"]
        except (self.subprocess.CalledProcessError, FileNotFoundError):
            try:
                self.subprocess.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"]
            except (self.subprocess.CalledProcessError, FileNotFoundError):
                raise RuntimeCommandError(actionable_error("compose_unavailable"))

    def up_command(self, compose_cmd: Sequence[str], manifest_path: str, services: Sequence[str]) -> List[str]:
        return list(compose_cmd) + ["-f", manifest_path, "up", "-d"] + list(services)

    def start_services(self, compose_cmd: Sequence[str], manifest_path: str, services: Sequence[str]):
        self.console.print(f"[blue]Starting services: {', '.join(services)}[/blue]")
        self._run(self.up_command(compose_cmd, manifest_path, services))
        self.show_containers(compose_cmd, manifest_path)

    def show_containers(self, compose_cmd: Sequence[str], manifest_path: str):
        result = self._run(list(compose_cmd) + ["-f", manifest_path, "ps"])
        if result.stdout:
            self.console.print(result.stdout.rstrip(), markup=False, highlight=False)

    def _run(self, cmd: List[str]):
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)
        try:
            result = self.subprocess.run(cmd, text=True, capture_output=True)
        except FileNotFoundError as exc:
            raise RuntimeCommandError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc

        if result.returncode != 0:
            message = f"Command failed ({result.returncode}): {cmd_str}"
            stderr = (result.stderr or "").strip()
            if stderr:
                message = f"{message}\n{stderr}"
            raise RuntimeCommandError(message)
        return result
