"""Generation pipeline: compose, clean, write, then read back the published ports."""

import os
import re
from typing import Dict, List, Optional, Tuple

import yaml

from nodesmith.constants import ENV_FILE_NAME, MANIFEST_FILE_NAME
from nodesmith.errors import ArtifactWriteError, FilesystemError, TemplateIntegrityError
from nodesmith.errors_catalog import actionable_error
from nodesmith.models import (
    CONSENSUS,
    EXECUTION,
    ClientSelection,
    GenerationOptions,
    GenerationResult,
)
from nodesmith.services.composer import TemplateComposer
from nodesmith.services.filesystem import FileSystemService

_EMPTY_ASSIGNMENT = re.compile(r"^\s*(?:-\s+)?[A-Za-z_][A-Za-z0-9_]*=\s*$")

API_PORT_VARIABLES = ((EXECUTION, "EC_API_PORT"), (CONSENSUS, "CC_API_PORT"))


def clean_generated_text(text: str) -> str:
    """Drops ``KEY=`` lines with no value and collapses runs of blank lines. Idempotent."""
    cleaned: List[str] = []
    for raw_line in text.splitlines():
        line = raw_line.rstrip()
        if _EMPTY_ASSIGNMENT.match(line):
            continue
        if not line and (not cleaned or not cleaned[-1]):
            continue
        cleaned.append(line)

    while cleaned and not cleaned[-1]:
        cleaned.pop()
    return "\n".join(cleaned) + "\n" if cleaned else ""


def parse_env_text(text: str) -> Dict[str, str]:
    values = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, _, value = stripped.partition("=")
        values[key.strip()] = value
    return values


def published_host_port(port_bindings, container_port: int) -> Optional[int]:
    """Finds the host side of a ``[ip:]host:container[/proto]`` binding for a TCP port."""
    for binding in port_bindings or ():
        spec, _, protocol = str(binding).partition("/")
        if protocol and protocol != "tcp":
            continue
        parts = spec.split(":")
        if len(parts) < 2:
            continue
        try:
            if int(parts[-1]) == container_port:
                return int(parts[-2])
        except ValueError:
            continue
    return None


class GenerationPipeline:
    """Turns a resolved selection into `.env` and `docker-compose.yml` on disk."""

    def __init__(
        self,
        composer: Optional[TemplateComposer] = None,
        filesystem_service: Optional[FileSystemService] = None,
    ):
        self.composer = composer or TemplateComposer()
        self.filesystem_service = filesystem_service or FileSystemService()

    def generate(self, selection: ClientSelection, options: GenerationOptions) -> GenerationResult:
        env_document, manifest_document = self.composer.compose(selection, options)
        env_text = clean_generated_text(env_document.render())
        manifest_text = clean_generated_text(manifest_document.render())

        self.filesystem_service.ensure_dir(options.path)
        env_path = os.path.join(options.path, ENV_FILE_NAME)
        manifest_path = os.path.join(options.path, MANIFEST_FILE_NAME)

        # The manifest interpolates values from the environment file, so it goes second.
        written: List[str] = []
        current_path = env_path
        try:
            for current_path, content in ((env_path, env_text), (manifest_path, manifest_text)):
                self.filesystem_service.write_text_atomic(current_path, content)
                written.append(current_path)
        except OSError as exc:
            leftovers = self.filesystem_service.remove_files(written)
            message = actionable_error("artifact_write_failed", path=current_path, reason=str(exc))
            if leftovers:
                message = f"{message} Could not remove: {', '.join(leftovers)}"
            raise ArtifactWriteError(message) from exc

        execution_port, consensus_port = self.resolve_ports(env_path, manifest_path)
        return GenerationResult(
            env_file_path=env_path,
            manifest_path=manifest_path,
            execution_port=execution_port,
            consensus_port=consensus_port,
        )

    def resolve_ports(self, env_path: str, manifest_path: str) -> Tuple[Optional[int], Optional[int]]:
        try:
            with open(env_path, "r", encoding="utf-8") as file_obj:
                env_values = parse_env_text(file_obj.read())
            with open(manifest_path, "r", encoding="utf-8") as file_obj:
                manifest = yaml.safe_load(file_obj)
        except OSError as exc:
            raise FilesystemError(f"Could not read generated artifacts: {exc}") from exc
        except yaml.YAMLError as exc:
            raise TemplateIntegrityError(f"Generated manifest is not valid YAML: {exc}") from exc

        services = (manifest or {}).get("services") or {}
        ports = []
        for service_name, variable in API_PORT_VARIABLES:
            container_port = env_values.get(variable)
            service = services.get(service_name) or {}
            if not container_port or not container_port.isdigit():
                ports.append(None)
                continue
            ports.append(published_host_port(service.get("ports"), int(container_port)))
        return ports[0], ports[1]
