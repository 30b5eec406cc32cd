"""Template composition: merges network, client and feature fragments.

Composition runs an ordered list of steps over a shared accumulator. The
environment side is an ordered key/value document where a later ``set``
overrides an earlier one in place; the manifest side is a structured
docker-compose document that only grows. Text is produced at the very end
so output never depends on anything but the selection and the options.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Tuple

import yaml

from nodesmith.constants import (
    BLOCKER_IMAGE,
    DEFAULT_MEV_IMAGE,
    DOCKER_NETWORK,
    JWT_CONTAINER_PATH,
    KEYSTORE_CONTAINER_PATH,
    MEV_BOOST_PORT,
)
from nodesmith.errors import MissingTemplateError, TemplateIntegrityError, UnsupportedClientError
from nodesmith.errors_catalog import actionable_error
from nodesmith.models import (
    CONSENSUS,
    EXECUTION,
    ROLES,
    VALIDATOR,
    ClientSelection,
    GenerationOptions,
    NetworkProfile,
)
from nodesmith.services.resolver import CombinationResolver
from nodesmith.services.validation import ValidationService
from nodesmith.templates import (
    API,
    AUTH,
    BOOTNODES,
    CHECKPOINT,
    CLIENT_TEMPLATES,
    ENV_PREFIXES,
    FALLBACK,
    FEE_RECIPIENT,
    GRAFFITI,
    MEV,
    P2P,
    ClientTemplate,
    PortSpec,
)

MEV_SERVICE = "mev-boost"
BLOCKER_SERVICE = "validator-blocker"
IMPORT_SERVICE = "validator-import"


class EnvDocument:
    """Ordered ``KEY=VALUE`` document grouped in commented sections."""

    def __init__(self):
        self._sections: Dict[str, Dict[str, str]] = {}
        self._owners: Dict[str, str] = {}

    def set(self, section: str, key: str, value: Any):
        owner = self._owners.get(key)
        if owner is None:
            self._owners[key] = section
            owner = section
        self._sections.setdefault(owner, {})[key] = "" if value is None else str(value)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        owner = self._owners.get(key)
        if owner is None:
            return default
        return self._sections[owner][key]

    def __contains__(self, key: str) -> bool:
        return key in self._owners

    def items(self) -> List[Tuple[str, str]]:
        return [(key, value) for entries in self._sections.values() for key, value in entries.items()]

    def render(self) -> str:
        lines: List[str] = []
        for section, entries in self._sections.items():
            lines.append(f"# --- {section} ---")
            lines.extend(f"{key}={value}" for key, value in entries.items())
            lines.append("")
        return "\n".join(lines) + "\n"


class ManifestDocument:
    """docker-compose document: services, networks and named volumes."""

    def __init__(self):
        self.services: Dict[str, Dict[str, Any]] = {}
        self.networks: Dict[str, Dict[str, Any]] = {}
        self.volumes: Dict[str, Dict[str, Any]] = {}

    def add_service(self, name: str, block: Dict[str, Any]):
        if name in self.services:
            raise TemplateIntegrityError(f"Service '{name}' is defined by more than one fragment.")
        self.services[name] = block

    def add_volume(self, name: str):
        self.volumes.setdefault(name, {})

    def add_network(self, name: str, block: Dict[str, Any]):
        self.networks.setdefault(name, block)

    def to_dict(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {"services": self.services}
        if self.networks:
            document["networks"] = self.networks
        if self.volumes:
            document["volumes"] = self.volumes
        return document

    def render(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False, width=4096)


@dataclass
class CompositionContext:
    selection: ClientSelection
    options: GenerationOptions
    network: NetworkProfile
    templates: Mapping[str, ClientTemplate]
    env: EnvDocument = field(default_factory=EnvDocument)
    manifest: ManifestDocument = field(default_factory=ManifestDocument)
    port_specs: Dict[str, Tuple[PortSpec, ...]] = field(default_factory=dict)

    def features_for(self, role: str) -> Set[str]:
        features = set()
        if self.network.requires_auth_token:
            features.add(AUTH)
        if role == EXECUTION and self.network.default_execution_bootnodes:
            features.add(BOOTNODES)
        if role == CONSENSUS and self.network.default_consensus_bootnodes:
            features.add(BOOTNODES)
        if self.options.checkpoint_sync_url:
            features.add(CHECKPOINT)
        if self.options.fee_recipient:
            features.add(FEE_RECIPIENT)
        if self.options.graffiti:
            features.add(GRAFFITI)
        if self.options.mev_enabled:
            features.add(MEV)
        if self.options.fallback_execution_urls:
            features.add(FALLBACK)
        return features


def _base_service(container_name: str, image: str) -> Dict[str, Any]:
    return {
        "container_name": container_name,
        "image": image,
        "restart": "unless-stopped",
        "networks": [DOCKER_NETWORK],
    }


def apply_network_base(ctx: CompositionContext):
    section = "Network"
    ctx.env.set(section, "NETWORK", ctx.network.name)
    ctx.env.set(section, "GENESIS_FORK_VERSION", ctx.network.genesis_fork_version_hex)
    ctx.env.set(section, "EC_BOOTNODES", ",".join(ctx.network.default_execution_bootnodes))
    ctx.env.set(section, "CC_BOOTNODES", ",".join(ctx.network.default_consensus_bootnodes))
    ctx.manifest.add_network(DOCKER_NETWORK, {"name": f"{DOCKER_NETWORK}-network"})


def apply_client_fragments(ctx: CompositionContext):
    for spec in ctx.selection.active():
        template = ctx.templates[spec.role]
        prefix = ENV_PREFIXES[spec.role]
        section = f"{spec.role.capitalize()} client: {template.name}"

        ctx.env.set(section, f"{prefix}_IMAGE_VERSION", spec.docker_image or template.image)
        ctx.env.set(section, f"{prefix}_DATA_DIR", template.data_dir)
        for port in template.ports:
            ctx.env.set(section, port.variable, port.container_port)
        _set_role_variables(ctx, spec.role, template, section)

        volume = f"{spec.role}-data"
        ctx.manifest.add_volume(volume)

        features = ctx.features_for(spec.role)
        command = list(template.command)
        for feature, args in template.feature_args:
            if feature in features:
                for arg in args:
                    _merge_argument(command, arg)

        block = _base_service(f"{spec.role}-client", f"${{{prefix}_IMAGE_VERSION}}")
        block["volumes"] = [f"{volume}:${{{prefix}_DATA_DIR}}"]
        block["command"] = command
        if spec.role == CONSENSUS:
            block["depends_on"] = [EXECUTION]
        ctx.manifest.add_service(spec.role, block)
        ctx.port_specs[spec.role] = template.ports

        if spec.role == VALIDATOR:
            _add_validator_services(ctx, template, block)


def _merge_argument(command: List[str], arg: str):
    """A feature ``--flag=value`` replaces a base argument with the same flag, anything else is appended."""
    flag, separator, _ = arg.partition("=")
    if separator:
        for index, existing in enumerate(command):
            if existing.startswith(flag + "="):
                command[index] = arg
                return
    command.append(arg)


def _set_role_variables(ctx: CompositionContext, role: str, template: ClientTemplate, section: str):
    options = ctx.options
    if role == EXECUTION:
        ctx.env.set(section, "EC_AUTH_URL", f"http://{EXECUTION}:{template.port('EC_AUTH_PORT')}")
    elif role == CONSENSUS:
        ctx.env.set(section, "CC_API_URL", f"http://{CONSENSUS}:{template.port('CC_API_PORT')}")
        rpc_port = template.port("CC_RPC_PORT")
        if rpc_port is not None:
            ctx.env.set(section, "CC_RPC_URL", f"{CONSENSUS}:{rpc_port}")
        ctx.env.set(section, "CHECKPOINT_SYNC_URL", options.checkpoint_sync_url)
        ctx.env.set(section, "FEE_RECIPIENT", options.fee_recipient)
    elif role == VALIDATOR:
        ctx.env.set(section, "FEE_RECIPIENT", options.fee_recipient)
        ctx.env.set(section, "GRAFFITI", options.graffiti)
        ctx.env.set(section, "KEYSTORE_DIR", "./keystore")


def _add_validator_services(ctx: CompositionContext, template: ClientTemplate, validator_block):
    blocker = _base_service(BLOCKER_SERVICE, BLOCKER_IMAGE)
    blocker["restart"] = "no"
    blocker["command"] = [
        "sh",
        "-c",
        "until wget -q -O /dev/null ${CC_API_URL}/eth/v1/node/health; "
        "do echo waiting for consensus; sleep 5; done",
    ]
    blocker["depends_on"] = [CONSENSUS]
    ctx.manifest.add_service(BLOCKER_SERVICE, blocker)

    validator_block["volumes"].append(f"${{KEYSTORE_DIR}}:{KEYSTORE_CONTAINER_PATH}:ro")
    depends_on = {BLOCKER_SERVICE: {"condition": "service_completed_successfully"}}

    if template.import_command:
        importer = _base_service(IMPORT_SERVICE, "${VL_IMAGE_VERSION}")
        importer["restart"] = "no"
        importer["volumes"] = [
            f"{VALIDATOR}-data:${{VL_DATA_DIR}}",
            f"${{KEYSTORE_DIR}}:{KEYSTORE_CONTAINER_PATH}",
        ]
        importer["command"] = list(template.import_command)
        ctx.manifest.add_service(IMPORT_SERVICE, importer)
        depends_on[IMPORT_SERVICE] = {"condition": "service_completed_successfully"}

    validator_block["depends_on"] = depends_on


def apply_auth_token(ctx: CompositionContext):
    if not ctx.network.requires_auth_token:
        return
    ctx.env.set("Authentication", "JWT_SECRET_PATH", ctx.options.jwt_path)
    for role in (EXECUTION, CONSENSUS):
        service = ctx.manifest.services.get(role)
        if service is not None:
            service["volumes"].append(f"${{JWT_SECRET_PATH}}:{JWT_CONTAINER_PATH}:ro")


def apply_fallback_urls(ctx: CompositionContext):
    if ctx.options.fallback_execution_urls:
        ctx.env.set(
            "Fallback execution endpoints",
            "EC_FALLBACK_URLS",
            ",".join(ctx.options.fallback_execution_urls),
        )


def apply_mev_boost(ctx: CompositionContext):
    if not ctx.options.mev_enabled or ctx.selection.validator.omitted:
        return

    # Assumption: a non-empty user relay list replaces the network defaults.
    relays = ctx.options.relay_urls or ctx.network.default_relay_urls
    section = "MEV-boost"
    ctx.env.set(section, "MEV_IMAGE", ctx.options.mev_image or DEFAULT_MEV_IMAGE)
    ctx.env.set(section, "RELAY_URLS", ",".join(relays))
    ctx.env.set(section, "MEV_BOOST_URL", f"http://{MEV_SERVICE}:{MEV_BOOST_PORT}")

    block = _base_service(MEV_SERVICE, "${MEV_IMAGE}")
    block["command"] = [
        "-addr",
        f"0.0.0.0:{MEV_BOOST_PORT}",
        "-${NETWORK}",
        "-relay-check",
        "-relays",
        "${RELAY_URLS}",
    ]
    ctx.manifest.add_service(MEV_SERVICE, block)
    ctx.port_specs[MEV_SERVICE] = (PortSpec("MEV_BOOST_PORT", MEV_BOOST_PORT),)


def apply_extra_flags(ctx: CompositionContext):
    for role in ROLES:
        flags = ctx.options.extra_flags.get(role) or ()
        service = ctx.manifest.services.get(role)
        if flags and service is not None:
            service["command"].extend(flags)


def apply_port_mapping(ctx: CompositionContext):
    for service_name, specs in ctx.port_specs.items():
        bindings = []
        for spec in specs:
            binding = f"{spec.container_port}:{spec.container_port}"
            if spec.protocol == "udp":
                binding += "/udp"
            if ctx.options.map_all_ports or spec.scope == P2P:
                bindings.append(binding)
            elif spec.scope == API:
                bindings.append(f"127.0.0.1:{binding}")
        if bindings:
            ctx.manifest.services[service_name]["ports"] = bindings


def apply_logging(ctx: CompositionContext):
    if not ctx.options.logging_driver:
        return
    for block in ctx.manifest.services.values():
        block["logging"] = {"driver": ctx.options.logging_driver}


COMPOSITION_STEPS: Tuple[Callable[[CompositionContext], None], ...] = (
    apply_network_base,
    apply_client_fragments,
    apply_auth_token,
    apply_fallback_urls,
    apply_mev_boost,
    apply_extra_flags,
    apply_port_mapping,
    apply_logging,
)


class TemplateComposer:
    """Builds the environment document and the compose manifest for one selection."""

    def __init__(
        self,
        resolver: Optional[CombinationResolver] = None,
        templates: Mapping[str, ClientTemplate] = CLIENT_TEMPLATES,
        validation_service: Optional[ValidationService] = None,
    ):
        self.resolver = resolver or CombinationResolver()
        self.templates = templates
        self.validation_service = validation_service or ValidationService()

    def compose(
        self, selection: ClientSelection, options: GenerationOptions
    ) -> Tuple[EnvDocument, ManifestDocument]:
        network = self.resolver.network_profile(options.network)
        self.validation_service.validate_options(options, network)
        self.validation_service.validate_selection(selection)

        options = self.resolver.normalize_options(selection, options)
        ctx = CompositionContext(
            selection=selection,
            options=options,
            network=network,
            templates=self._load_templates(selection, network.name),
        )
        for step in COMPOSITION_STEPS:
            step(ctx)
        return ctx.env, ctx.manifest

    def _load_templates(self, selection: ClientSelection, network: str) -> Dict[str, ClientTemplate]:
        entry = self.resolver.catalog_entry(network)
        loaded = {}
        for spec in selection.active():
            location = entry.template_location(spec.role, spec.name)
            if location is None:
                raise UnsupportedClientError(
                    spec.role,
                    spec.name,
                    network,
                    actionable_error(
                        "unsupported_client",
                        role=spec.role,
                        client=spec.name,
                        network=network,
                        supported=", ".join(entry.clients(spec.role)),
                    ),
                )

            template = self.templates.get(location)
            if template is None or template.role != spec.role:
                raise MissingTemplateError(
                    actionable_error(
                        "missing_template",
                        location=location,
                        role=spec.role,
                        client=spec.name,
                        network=network,
                    )
                )
            loaded[spec.role] = template
        return loaded
