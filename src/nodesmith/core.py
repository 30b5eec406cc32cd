import dataclasses
import logging
import os
import subprocess
from typing import Dict, Iterable, List, Optional, Sequence

from rich.console import Console

from .constants import (
    DEFAULT_GENERATION_PATH,
    JWT_SECRET_FILE_NAME,
    SYNC_DEADLINE_SECONDS,
    SYNC_POLL_INTERVAL_SECONDS,
)
from .errors import EndpointConfigurationError, NodesmithError, SyncTimeoutError
from .models import (
    CONSENSUS,
    EXECUTION,
    VALIDATOR,
    ClientSelection,
    GenerationOptions,
    GenerationResult,
    SyncReport,
    SyncStatus,
)
from .services.composer import TemplateComposer
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.generation import GenerationPipeline
from .services.resolver import CombinationResolver, parse_client_flag
from .services.sync_tracker import CANCELLED, SyncTracker
from .services.validation import ValidationService
from .templates import CLIENT_TEMPLATES, FALLBACK, template_location

console = Console()
logger = logging.getLogger("nodesmith")


class NodeSetup:
    def __init__(
        self,
        network: str = "mainnet",
        path: str = DEFAULT_GENERATION_PATH,
        execution: Optional[str] = None,
        consensus: Optional[str] = None,
        validator: Optional[str] = None,
        checkpoint_sync_url: Optional[str] = None,
        fee_recipient: Optional[str] = None,
        no_mev_boost: bool = False,
        mev_boost_image: Optional[str] = None,
        relay_urls: Iterable[str] = (),
        no_validator: bool = False,
        jwt_secret_path: Optional[str] = None,
        graffiti: Optional[str] = None,
        run: bool = False,
        map_all: bool = False,
        run_clients: Sequence[str] = (EXECUTION, CONSENSUS),
        fallback_execution_urls: Iterable[str] = (),
        extra_flags: Optional[Dict[str, Sequence[str]]] = None,
        logging_driver: str = "json-file",
        sync_timeout_minutes: float = SYNC_DEADLINE_SECONDS / 60,
    ):
        self.network = network
        self.path = path
        self.execution = execution or ""
        self.consensus = consensus or ""
        self.validator = validator or ""
        self.checkpoint_sync_url = checkpoint_sync_url or ""
        self.fee_recipient = fee_recipient or ""
        self.no_mev_boost = no_mev_boost
        self.mev_boost_image = mev_boost_image or ""
        self.relay_urls = tuple(relay_urls)
        self.no_validator = no_validator
        self.jwt_secret_path = jwt_secret_path or ""
        self.graffiti = graffiti or ""
        self.run_services = run
        self.map_all = map_all
        self.run_clients = list(run_clients)
        self.fallback_execution_urls = tuple(fallback_execution_urls)
        self.extra_flags = {role: tuple(flags) for role, flags in (extra_flags or {}).items() if flags}
        self.logging_driver = logging_driver
        self.sync_timeout_minutes = sync_timeout_minutes

        self.resolver = CombinationResolver()
        self.validation_service = ValidationService()
        self.filesystem_service = FileSystemService(logger=logger)
        self.pipeline = GenerationPipeline(
            composer=TemplateComposer(resolver=self.resolver, validation_service=self.validation_service),
            filesystem_service=self.filesystem_service,
        )
        self.docker_runtime_service = DockerRuntimeService(
            logger=logger,
            console=console,
            subprocess_module=subprocess,
        )
        self.tracker_factory = SyncTracker
        self.compose_cmd: Optional[List[str]] = None
        self.generated_jwt_path: Optional[str] = None
        self._created_jwt_dir: Optional[str] = None

    def resolve_selection(self) -> ClientSelection:
        execution, execution_image = parse_client_flag(self.execution)
        consensus, consensus_image = parse_client_flag(self.consensus)
        validator, validator_image = parse_client_flag(self.validator)
        return self.resolver.resolve(
            self.network,
            execution=execution,
            consensus=consensus,
            validator=validator,
            images={
                EXECUTION: execution_image,
                CONSENSUS: consensus_image,
                VALIDATOR: validator_image,
            },
            omit_validator=self.no_validator,
        )

    def warn_about_options(self, selection: ClientSelection):
        for spec in selection.active():
            if spec.docker_image:
                logger.warning(
                    "Using custom image '%s' for the %s client %s. Compatibility is not guaranteed.",
                    spec.docker_image,
                    spec.role,
                    spec.name,
                )
        if self.map_all:
            logger.warning(
                "Mapping all client ports to the host. Anyone who can reach this machine can reach the clients."
            )
        if self.checkpoint_sync_url:
            logger.warning(
                "Checkpoint sync from %s. Only use a checkpoint provider you trust.",
                self.checkpoint_sync_url,
            )
        consensus_template = CLIENT_TEMPLATES.get(template_location(CONSENSUS, selection.consensus.name))
        if self.fallback_execution_urls and consensus_template and not consensus_template.supports(FALLBACK):
            logger.warning(
                "The %s consensus client does not support fallback execution endpoints. "
                "Ignoring --fallback-execution-urls.",
                selection.consensus.name,
            )

    def build_options(self) -> GenerationOptions:
        jwt_path = self.jwt_secret_path
        if jwt_path and not os.path.isabs(jwt_path):
            jwt_path = os.path.abspath(jwt_path)

        return GenerationOptions(
            network=self.network,
            path=self.path,
            checkpoint_sync_url=self.checkpoint_sync_url,
            fee_recipient=self.fee_recipient,
            jwt_path=jwt_path,
            graffiti=self.graffiti,
            fallback_execution_urls=self.fallback_execution_urls,
            extra_flags=self.extra_flags,
            map_all_ports=self.map_all,
            mev_enabled=not self.no_mev_boost,
            mev_image=self.mev_boost_image,
            relay_urls=self.relay_urls,
            logging_driver=self.logging_driver,
        )

    def prepare_jwt_secret(self, options: GenerationOptions) -> GenerationOptions:
        """Plans and writes a fresh JWT secret when the network needs one and none was given."""
        profile = self.resolver.network_profile(options.network)
        if options.jwt_path or not profile.requires_auth_token:
            return options

        planned_path = os.path.join(os.path.abspath(options.path), JWT_SECRET_FILE_NAME)
        options = dataclasses.replace(options, jwt_path=planned_path)
        self.validation_service.validate_options(options, profile)

        output_dir = os.path.dirname(planned_path)
        created_dir = not os.path.exists(output_dir)
        console.print("[blue]Generating JWT secret...[/blue]")
        self.filesystem_service.write_jwt_secret(planned_path)
        self.generated_jwt_path = planned_path
        self._created_jwt_dir = output_dir if created_dir else None
        return options

    def discard_generated_jwt_secret(self):
        """Removes a JWT secret written by this run, and its directory when this run created it empty."""
        if not self.generated_jwt_path:
            return
        leftovers = self.filesystem_service.remove_files([self.generated_jwt_path])
        if leftovers:
            logger.warning("Could not remove generated JWT secret %s", self.generated_jwt_path)
        elif self._created_jwt_dir:
            try:
                os.rmdir(self._created_jwt_dir)
            except OSError:
                logger.debug("Keeping %s, it is not empty", self._created_jwt_dir)
        self.generated_jwt_path = None
        self._created_jwt_dir = None

    def print_artifacts(self, result: GenerationResult):
        for path in (result.env_file_path, result.manifest_path):
            console.print(f"[bold blue]Generated {path}[/bold blue]")
            with open(path, "r", encoding="utf-8") as file_obj:
                console.print(file_obj.read(), markup=False, highlight=False)

    def _get_docker_compose_cmd(self) -> List[str]:
        if self.compose_cmd is None:
            self.compose_cmd = self.docker_runtime_service.get_docker_compose_cmd()
        return self.compose_cmd

    def start_services(self, result: GenerationResult, services: Sequence[str]):
        self.docker_runtime_service.start_services(
            self._get_docker_compose_cmd(),
            result.manifest_path,
            services,
        )

    def print_run_command(self, result: GenerationResult):
        compose_cmd = ["docker", "compose"]
        command = self.docker_runtime_service.up_command(compose_cmd, result.manifest_path, self.run_clients)
        console.print("[green]Generation finished. Start the clients with:[/green]")
        console.print(" ".join(command), markup=False, highlight=False)

    def _log_progress(self, status: SyncStatus, ticks: int):
        logger.info(
            "Sync check #%d: execution synced=%s, consensus synced=%s",
            ticks,
            status.execution_synced,
            status.consensus_synced,
        )
        if status.last_error:
            logger.debug("Last sync query error: %s", status.last_error)

    def track_sync(self, result: GenerationResult) -> SyncReport:
        if result.execution_port is None or result.consensus_port is None:
            raise EndpointConfigurationError(
                "Could not find published API ports for the execution and consensus clients."
            )

        tracker = self.tracker_factory(
            f"http://localhost:{result.execution_port}",
            f"http://localhost:{result.consensus_port}",
            interval=SYNC_POLL_INTERVAL_SECONDS,
            deadline=float(self.sync_timeout_minutes) * 60,
            on_progress=self._log_progress,
        )
        console.print("[blue]Waiting for the execution and consensus clients to sync...[/blue]")
        try:
            report = tracker.run()
        except KeyboardInterrupt:
            tracker.stop()
            raise

        try:
            report.raise_for_state()
        except SyncTimeoutError as exc:
            logger.warning(str(exc))
        return report

    def run(self) -> int:
        try:
            logger.info("Starting Nodesmith for network %s...", self.network)

            selection = self.resolve_selection()
            logger.info(
                "Selected clients: execution=%s consensus=%s validator=%s",
                selection.execution.name,
                selection.consensus.name,
                selection.validator.name or "<none>",
            )
            self.warn_about_options(selection)
            if selection.validator.omitted and VALIDATOR in self.run_clients:
                logger.info("No validator in this setup, it will not be started.")
                self.run_clients = [role for role in self.run_clients if role != VALIDATOR]

            options = self.prepare_jwt_secret(self.build_options())
            try:
                result = self.pipeline.generate(selection, options)
            except BaseException:
                self.discard_generated_jwt_secret()
                raise
            self.print_artifacts(result)

            if not self.run_clients:
                console.print("[green]Generation finished. No clients were requested to run.[/green]")
                return 0

            if not self.run_services:
                self.print_run_command(result)
                return 0

            self.start_services(result, self.run_clients)

            if selection.validator.omitted or VALIDATOR in self.run_clients:
                console.print("[green]Node setup finished.[/green]")
                return 0

            report = self.track_sync(result)
            if report.state == CANCELLED:
                console.print("[bold red]Sync tracking cancelled.[/bold red]")
                return 1

            self.start_services(result, [VALIDATOR])
            console.print("[green]Node setup finished.[/green]")
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except NodesmithError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1
