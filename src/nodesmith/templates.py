"""Per-client template fragments.

Every fragment describes one client image: its default image, data
directory, declared ports and command line. Command arguments reference
variables of the generated `.env` file (``${NAME}``) so that the manifest
and the environment document stay consistent. Feature arguments are only
appended when the matching feature is active for the deployment.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .constants import JWT_CONTAINER_PATH, KEYSTORE_CONTAINER_PATH
from .models import CONSENSUS, EXECUTION, VALIDATOR

P2P = "p2p"
API = "api"
INTERNAL = "internal"

AUTH = "auth"
BOOTNODES = "bootnodes"
CHECKPOINT = "checkpoint"
FEE_RECIPIENT = "fee_recipient"
GRAFFITI = "graffiti"
MEV = "mev"
FALLBACK = "fallback"

ENV_PREFIXES = {EXECUTION: "EC", CONSENSUS: "CC", VALIDATOR: "VL"}

_KEYS_DIR = f"{KEYSTORE_CONTAINER_PATH}/validator_keys"
_KEYS_PASSWORD = f"{KEYSTORE_CONTAINER_PATH}/keystore_password.txt"


@dataclass(frozen=True)
class PortSpec:
    variable: str
    container_port: int
    protocol: str = "tcp"
    scope: str = INTERNAL


@dataclass(frozen=True)
class ClientTemplate:
    role: str
    name: str
    image: str
    data_dir: str
    ports: Tuple[PortSpec, ...]
    command: Tuple[str, ...]
    feature_args: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    import_command: Optional[Tuple[str, ...]] = None

    def port(self, variable: str) -> Optional[int]:
        for spec in self.ports:
            if spec.variable == variable:
                return spec.container_port
        return None

    def supports(self, feature: str) -> bool:
        return any(name == feature for name, _ in self.feature_args)


def _execution_ports(api: int = 8545, auth: int = 8551, metrics: int = 6060, p2p: int = 30303):
    return (
        PortSpec("EC_API_PORT", api, scope=API),
        PortSpec("EC_AUTH_PORT", auth),
        PortSpec("EC_METRICS_PORT", metrics),
        PortSpec("EC_DISCOVERY_PORT", p2p, scope=P2P),
        PortSpec("EC_DISCOVERY_PORT", p2p, protocol="udp", scope=P2P),
    )


def _consensus_ports(api: int, metrics: int = 5054, p2p: int = 9000, rpc: Optional[int] = None):
    ports = [
        PortSpec("CC_API_PORT", api, scope=API),
        PortSpec("CC_METRICS_PORT", metrics),
        PortSpec("CC_DISCOVERY_PORT", p2p, scope=P2P),
        PortSpec("CC_DISCOVERY_PORT", p2p, protocol="udp", scope=P2P),
    ]
    if rpc is not None:
        ports.insert(1, PortSpec("CC_RPC_PORT", rpc))
    return tuple(ports)


def _validator_ports(metrics: int = 5056):
    return (PortSpec("VL_METRICS_PORT", metrics),)


_TEMPLATES = (
    # Execution clients
    ClientTemplate(
        role=EXECUTION,
        name="geth",
        image="ethereum/client-go:v1.13.14",
        data_dir="/var/lib/geth",
        ports=_execution_ports(),
        command=(
            "--${NETWORK}",
            "--datadir=${EC_DATA_DIR}",
            "--http",
            "--http.addr=0.0.0.0",
            "--http.port=${EC_API_PORT}",
            "--http.vhosts=*",
            "--http.api=eth,net,web3",
            "--authrpc.addr=0.0.0.0",
            "--authrpc.port=${EC_AUTH_PORT}",
            "--authrpc.vhosts=*",
            "--port=${EC_DISCOVERY_PORT}",
            "--metrics",
            "--metrics.addr=0.0.0.0",
            "--metrics.port=${EC_METRICS_PORT}",
            "--syncmode=snap",
        ),
        feature_args=(
            (AUTH, (f"--authrpc.jwtsecret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootnodes=${EC_BOOTNODES}",)),
        ),
    ),
    ClientTemplate(
        role=EXECUTION,
        name="nethermind",
        image="nethermind/nethermind:1.25.4",
        data_dir="/nethermind/data",
        ports=_execution_ports(),
        command=(
            "--config=${NETWORK}",
            "--datadir=${EC_DATA_DIR}",
            "--JsonRpc.Enabled=true",
            "--JsonRpc.Host=0.0.0.0",
            "--JsonRpc.Port=${EC_API_PORT}",
            "--JsonRpc.EngineHost=0.0.0.0",
            "--JsonRpc.EnginePort=${EC_AUTH_PORT}",
            "--Network.P2PPort=${EC_DISCOVERY_PORT}",
            "--Network.DiscoveryPort=${EC_DISCOVERY_PORT}",
            "--Metrics.Enabled=true",
            "--Metrics.ExposePort=${EC_METRICS_PORT}",
            "--Sync.SnapSync=true",
        ),
        feature_args=(
            (AUTH, (f"--JsonRpc.JwtSecretFile={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--Discovery.Bootnodes=${EC_BOOTNODES}",)),
        ),
    ),
    ClientTemplate(
        role=EXECUTION,
        name="besu",
        image="hyperledger/besu:24.1.2",
        data_dir="/var/lib/besu",
        ports=_execution_ports(metrics=9545),
        command=(
            "--network=${NETWORK}",
            "--data-path=${EC_DATA_DIR}",
            "--rpc-http-enabled=true",
            "--rpc-http-host=0.0.0.0",
            "--rpc-http-port=${EC_API_PORT}",
            "--host-allowlist=*",
            "--engine-rpc-port=${EC_AUTH_PORT}",
            "--engine-host-allowlist=*",
            "--p2p-port=${EC_DISCOVERY_PORT}",
            "--metrics-enabled=true",
            "--metrics-host=0.0.0.0",
            "--metrics-port=${EC_METRICS_PORT}",
            "--sync-mode=SNAP",
        ),
        feature_args=(
            (AUTH, (f"--engine-jwt-secret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootnodes=${EC_BOOTNODES}",)),
        ),
    ),
    ClientTemplate(
        role=EXECUTION,
        name="erigon",
        image="thorax/erigon:v2.58.2",
        data_dir="/home/erigon/.local/share/erigon",
        ports=_execution_ports(),
        command=(
            "--chain=${NETWORK}",
            "--datadir=${EC_DATA_DIR}",
            "--http",
            "--http.addr=0.0.0.0",
            "--http.port=${EC_API_PORT}",
            "--http.vhosts=*",
            "--http.api=eth,erigon,web3,net",
            "--authrpc.addr=0.0.0.0",
            "--authrpc.port=${EC_AUTH_PORT}",
            "--authrpc.vhosts=*",
            "--port=${EC_DISCOVERY_PORT}",
            "--metrics",
            "--metrics.addr=0.0.0.0",
            "--metrics.port=${EC_METRICS_PORT}",
            "--externalcl",
        ),
        feature_args=(
            (AUTH, (f"--authrpc.jwtsecret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootnodes=${EC_BOOTNODES}",)),
        ),
    ),
    # Consensus clients
    ClientTemplate(
        role=CONSENSUS,
        name="lighthouse",
        image="sigp/lighthouse:v5.1.2",
        data_dir="/var/lib/lighthouse",
        ports=_consensus_ports(api=5052),
        command=(
            "lighthouse",
            "bn",
            "--network=${NETWORK}",
            "--datadir=${CC_DATA_DIR}",
            "--http",
            "--http-address=0.0.0.0",
            "--http-port=${CC_API_PORT}",
            "--port=${CC_DISCOVERY_PORT}",
            "--execution-endpoint=${EC_AUTH_URL}",
            "--metrics",
            "--metrics-address=0.0.0.0",
            "--metrics-port=${CC_METRICS_PORT}",
        ),
        feature_args=(
            (AUTH, (f"--execution-jwt={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--boot-nodes=${CC_BOOTNODES}",)),
            (CHECKPOINT, ("--checkpoint-sync-url=${CHECKPOINT_SYNC_URL}",)),
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (MEV, ("--builder=${MEV_BOOST_URL}",)),
        ),
    ),
    ClientTemplate(
        role=CONSENSUS,
        name="prysm",
        image="gcr.io/prysmaticlabs/prysm/beacon-chain:v5.0.1",
        data_dir="/var/lib/prysm",
        ports=_consensus_ports(api=3500, metrics=8080, rpc=4000),
        command=(
            "--datadir=${CC_DATA_DIR}",
            "--${NETWORK}",
            "--accept-terms-of-use",
            "--rpc-host=0.0.0.0",
            "--rpc-port=${CC_RPC_PORT}",
            "--grpc-gateway-host=0.0.0.0",
            "--grpc-gateway-port=${CC_API_PORT}",
            "--p2p-tcp-port=${CC_DISCOVERY_PORT}",
            "--p2p-udp-port=${CC_DISCOVERY_PORT}",
            "--execution-endpoint=${EC_AUTH_URL}",
            "--monitoring-host=0.0.0.0",
            "--monitoring-port=${CC_METRICS_PORT}",
        ),
        feature_args=(
            (AUTH, (f"--jwt-secret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootstrap-node=${CC_BOOTNODES}",)),
            (
                CHECKPOINT,
                (
                    "--checkpoint-sync-url=${CHECKPOINT_SYNC_URL}",
                    "--genesis-beacon-api-url=${CHECKPOINT_SYNC_URL}",
                ),
            ),
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (MEV, ("--http-mev-relay=${MEV_BOOST_URL}",)),
            (FALLBACK, ("--fallback-web3provider=${EC_FALLBACK_URLS}",)),
        ),
    ),
    ClientTemplate(
        role=CONSENSUS,
        name="teku",
        image="consensys/teku:24.3.0",
        data_dir="/var/lib/teku",
        ports=_consensus_ports(api=5051, metrics=8008),
        command=(
            "--network=${NETWORK}",
            "--data-path=${CC_DATA_DIR}",
            "--rest-api-enabled=true",
            "--rest-api-interface=0.0.0.0",
            "--rest-api-host-allowlist=*",
            "--rest-api-port=${CC_API_PORT}",
            "--p2p-port=${CC_DISCOVERY_PORT}",
            "--ee-endpoint=${EC_AUTH_URL}",
            "--metrics-enabled=true",
            "--metrics-interface=0.0.0.0",
            "--metrics-host-allowlist=*",
            "--metrics-port=${CC_METRICS_PORT}",
        ),
        feature_args=(
            (AUTH, (f"--ee-jwt-secret-file={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--p2p-discovery-bootnodes=${CC_BOOTNODES}",)),
            (CHECKPOINT, ("--initial-state=${CHECKPOINT_SYNC_URL}/eth/v2/debug/beacon/states/finalized",)),
            (FEE_RECIPIENT, ("--validators-proposer-default-fee-recipient=${FEE_RECIPIENT}",)),
            (MEV, ("--builder-endpoint=${MEV_BOOST_URL}",)),
        ),
    ),
    ClientTemplate(
        role=CONSENSUS,
        name="lodestar",
        image="chainsafe/lodestar:v1.17.0",
        data_dir="/var/lib/lodestar",
        ports=_consensus_ports(api=9596, metrics=8008),
        command=(
            "beacon",
            "--network=${NETWORK}",
            "--dataDir=${CC_DATA_DIR}",
            "--rest",
            "--rest.address=0.0.0.0",
            "--rest.port=${CC_API_PORT}",
            "--port=${CC_DISCOVERY_PORT}",
            "--execution.urls=${EC_AUTH_URL}",
            "--metrics",
            "--metrics.address=0.0.0.0",
            "--metrics.port=${CC_METRICS_PORT}",
        ),
        feature_args=(
            (AUTH, (f"--jwt-secret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootnodes=${CC_BOOTNODES}",)),
            (CHECKPOINT, ("--checkpointSyncUrl=${CHECKPOINT_SYNC_URL}",)),
            (FEE_RECIPIENT, ("--suggestedFeeRecipient=${FEE_RECIPIENT}",)),
            (MEV, ("--builder", "--builder.urls=${MEV_BOOST_URL}")),
            (FALLBACK, ("--execution.urls=${EC_AUTH_URL},${EC_FALLBACK_URLS}",)),
        ),
    ),
    ClientTemplate(
        role=CONSENSUS,
        name="nimbus",
        image="statusim/nimbus-eth2:multiarch-v24.3.0",
        data_dir="/home/user/nimbus-eth2/build/data",
        ports=_consensus_ports(api=5052, metrics=8008),
        command=(
            "--network=${NETWORK}",
            "--data-dir=${CC_DATA_DIR}",
            "--rest",
            "--rest-address=0.0.0.0",
            "--rest-port=${CC_API_PORT}",
            "--tcp-port=${CC_DISCOVERY_PORT}",
            "--udp-port=${CC_DISCOVERY_PORT}",
            "--web3-url=${EC_AUTH_URL}",
            "--metrics",
            "--metrics-address=0.0.0.0",
            "--metrics-port=${CC_METRICS_PORT}",
            "--non-interactive",
        ),
        feature_args=(
            (AUTH, (f"--jwt-secret={JWT_CONTAINER_PATH}",)),
            (BOOTNODES, ("--bootstrap-node=${CC_BOOTNODES}",)),
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (MEV, ("--payload-builder=true", "--payload-builder-url=${MEV_BOOST_URL}")),
        ),
    ),
    # Validator clients
    ClientTemplate(
        role=VALIDATOR,
        name="lighthouse",
        image="sigp/lighthouse:v5.1.2",
        data_dir="/var/lib/lighthouse-validator",
        ports=_validator_ports(),
        command=(
            "lighthouse",
            "vc",
            "--network=${NETWORK}",
            "--datadir=${VL_DATA_DIR}",
            "--beacon-nodes=${CC_API_URL}",
            "--metrics",
            "--metrics-address=0.0.0.0",
            "--metrics-port=${VL_METRICS_PORT}",
        ),
        feature_args=(
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (GRAFFITI, ("--graffiti=${GRAFFITI}",)),
            (MEV, ("--builder-proposals",)),
        ),
        import_command=(
            "lighthouse",
            "account",
            "validator",
            "import",
            "--network=${NETWORK}",
            "--datadir=${VL_DATA_DIR}",
            f"--directory={_KEYS_DIR}",
            f"--password-file={_KEYS_PASSWORD}",
            "--reuse-password",
        ),
    ),
    ClientTemplate(
        role=VALIDATOR,
        name="prysm",
        image="gcr.io/prysmaticlabs/prysm/validator:v5.0.1",
        data_dir="/var/lib/prysm-validator",
        ports=_validator_ports(metrics=8081),
        command=(
            "--datadir=${VL_DATA_DIR}",
            "--${NETWORK}",
            "--accept-terms-of-use",
            "--beacon-rpc-provider=${CC_RPC_URL}",
            "--wallet-dir=${VL_DATA_DIR}/wallet",
            f"--wallet-password-file={_KEYS_PASSWORD}",
            "--monitoring-host=0.0.0.0",
            "--monitoring-port=${VL_METRICS_PORT}",
        ),
        feature_args=(
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (GRAFFITI, ("--graffiti=${GRAFFITI}",)),
            (MEV, ("--enable-builder",)),
        ),
        import_command=(
            "accounts",
            "import",
            "--${NETWORK}",
            "--accept-terms-of-use",
            f"--keys-dir={_KEYS_DIR}",
            "--wallet-dir=${VL_DATA_DIR}/wallet",
            f"--wallet-password-file={_KEYS_PASSWORD}",
            f"--account-password-file={_KEYS_PASSWORD}",
        ),
    ),
    ClientTemplate(
        role=VALIDATOR,
        name="teku",
        image="consensys/teku:24.3.0",
        data_dir="/var/lib/teku-validator",
        ports=_validator_ports(metrics=8009),
        command=(
            "validator-client",
            "--network=${NETWORK}",
            "--data-path=${VL_DATA_DIR}",
            "--beacon-node-api-endpoint=${CC_API_URL}",
            f"--validator-keys={_KEYS_DIR}:{_KEYS_PASSWORD}",
            "--validators-keystore-locking-enabled=false",
            "--metrics-enabled=true",
            "--metrics-interface=0.0.0.0",
            "--metrics-host-allowlist=*",
            "--metrics-port=${VL_METRICS_PORT}",
        ),
        feature_args=(
            (FEE_RECIPIENT, ("--validators-proposer-default-fee-recipient=${FEE_RECIPIENT}",)),
            (GRAFFITI, ("--validators-graffiti=${GRAFFITI}",)),
            (MEV, ("--validators-builder-registration-default-enabled=true",)),
        ),
    ),
    ClientTemplate(
        role=VALIDATOR,
        name="lodestar",
        image="chainsafe/lodestar:v1.17.0",
        data_dir="/var/lib/lodestar-validator",
        ports=_validator_ports(),
        command=(
            "validator",
            "--network=${NETWORK}",
            "--dataDir=${VL_DATA_DIR}",
            "--beaconNodes=${CC_API_URL}",
            "--metrics",
            "--metrics.address=0.0.0.0",
            "--metrics.port=${VL_METRICS_PORT}",
        ),
        feature_args=(
            (FEE_RECIPIENT, ("--suggestedFeeRecipient=${FEE_RECIPIENT}",)),
            (GRAFFITI, ("--graffiti=${GRAFFITI}",)),
            (MEV, ("--builder",)),
        ),
        import_command=(
            "validator",
            "import",
            "--network=${NETWORK}",
            "--dataDir=${VL_DATA_DIR}",
            f"--importKeystores={_KEYS_DIR}",
            f"--importKeystoresPassword={_KEYS_PASSWORD}",
        ),
    ),
    ClientTemplate(
        role=VALIDATOR,
        name="nimbus",
        image="statusim/nimbus-validator-client:multiarch-v24.3.0",
        data_dir="/home/user/validator-data",
        ports=_validator_ports(metrics=8108),
        command=(
            "--data-dir=${VL_DATA_DIR}",
            "--beacon-node=${CC_API_URL}",
            "--metrics",
            "--metrics-address=0.0.0.0",
            "--metrics-port=${VL_METRICS_PORT}",
        ),
        feature_args=(
            (FEE_RECIPIENT, ("--suggested-fee-recipient=${FEE_RECIPIENT}",)),
            (GRAFFITI, ("--graffiti=${GRAFFITI}",)),
            (MEV, ("--payload-builder=true",)),
        ),
    ),
)


def template_location(role: str, client: str) -> str:
    return f"{role}/{client}"


CLIENT_TEMPLATES: Mapping[str, ClientTemplate] = MappingProxyType(
    {template_location(template.role, template.name): template for template in _TEMPLATES}
)
