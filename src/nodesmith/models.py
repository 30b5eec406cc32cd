"""Shared domain models for Nodesmith."""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from .errors import SyncTimeoutError, SyncTrackingError
from .errors_catalog import actionable_error

EXECUTION = "execution"
CONSENSUS = "consensus"
VALIDATOR = "validator"
ROLES = (EXECUTION, CONSENSUS, VALIDATOR)

PRE_MERGE = "pre-merge"
MERGE = "merge"


@dataclass(frozen=True)
class NetworkProfile:
    """Static description of a supported network."""

    name: str
    requires_auth_token: bool
    service_type: str
    genesis_fork_version: bytes
    default_execution_bootnodes: Tuple[str, ...] = ()
    default_consensus_bootnodes: Tuple[str, ...] = ()
    default_relay_urls: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.genesis_fork_version) != 4:
            raise ValueError(f"Genesis fork version of {self.name} must be 4 bytes.")
        if self.service_type not in (PRE_MERGE, MERGE):
            raise ValueError(f"Unknown service type for {self.name}: {self.service_type}")

    @property
    def genesis_fork_version_hex(self) -> str:
        return "0x" + self.genesis_fork_version.hex()


@dataclass(frozen=True)
class ClientSpec:
    role: str
    name: str
    docker_image: Optional[str] = None
    omitted: bool = False


@dataclass(frozen=True)
class ClientSelection:
    execution: ClientSpec
    consensus: ClientSpec
    validator: ClientSpec

    def active(self) -> Tuple[ClientSpec, ...]:
        """Non-omitted clients in role order."""
        return tuple(
            spec for spec in (self.execution, self.consensus, self.validator) if not spec.omitted
        )

    def by_role(self, role: str) -> ClientSpec:
        return {
            EXECUTION: self.execution,
            CONSENSUS: self.consensus,
            VALIDATOR: self.validator,
        }[role]


@dataclass(frozen=True)
class GenerationOptions:
    """Immutable snapshot of everything the composer needs besides the clients."""

    network: str
    path: str
    checkpoint_sync_url: str = ""
    fee_recipient: str = ""
    jwt_path: str = ""
    graffiti: str = ""
    fallback_execution_urls: Tuple[str, ...] = ()
    extra_flags: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    map_all_ports: bool = False
    mev_enabled: bool = False
    mev_image: str = ""
    relay_urls: Tuple[str, ...] = ()
    logging_driver: str = "json-file"


@dataclass(frozen=True)
class GenerationResult:
    env_file_path: str
    manifest_path: str
    execution_port: Optional[int]
    consensus_port: Optional[int]


@dataclass
class SyncStatus:
    execution_synced: bool = False
    consensus_synced: bool = False
    last_error: Optional[str] = None

    @property
    def synced(self) -> bool:
        return self.execution_synced and self.consensus_synced


@dataclass
class SyncReport:
    state: str
    status: SyncStatus
    ticks: int
    deadline: float

    def raise_for_state(self):
        if self.state == "timed-out":
            raise SyncTimeoutError(
                actionable_error(
                    "sync_timeout",
                    minutes=f"{self.deadline / 60:g}",
                    execution=str(self.status.execution_synced),
                    consensus=str(self.status.consensus_synced),
                )
            )
        if self.state == "errored":
            raise SyncTrackingError(f"Sync tracking failed: {self.status.last_error}")
