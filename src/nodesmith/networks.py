"""Network registry: static per-network constants keyed by network name."""

from types import MappingProxyType
from typing import Mapping, Tuple

from .models import MERGE, NetworkProfile

_MAINNET_EXECUTION_BOOTNODES = (
    "enode://d860a01f9722d78051619d1e2351aba3f43f943f6f00718d1b9baa4101932a1f5011f16bb2b1bb35db20d6fe28fa0bf09636d26a87d31de9ec6203eeedb1f666@18.138.108.67:30303",
    "enode://22a8232c3abc76a16ae9d6c3b164f98775fe226f0917b0ca871128a74a8e9630b458460865bab457221f1d448dd9791d24c4e5d88786180ac185df813a68d4de@3.209.45.79:30303",
    "enode://2b252ab6a1d0f971d9722cb839a42cb81db019ba44c08754628ab4a823487071b5695317c8ccd085219c3a03af063495b2f1da8d18218da2d6a82981b45e6ffc@65.108.70.101:30303",
    "enode://4aeb4ab6c14b23e2c4cfdce879c04b0748a20d8e9b59e25ded2a08143e265c6c25936e74cbc8e641e3312ca288673d91f2f93f8e277de3cfa444ecdaaf982052@157.90.35.166:30303",
)

_SEPOLIA_EXECUTION_BOOTNODES = (
    "enode://4e5e92199ee224a01932a377160aa432f31d0b351f84ab413a8e0a42f4f36476f8fb1cbe914af0d9aef0d51665c214cf653c651c4bbd9d5550a934f241f1682b@138.197.51.181:30303",
    "enode://143e11fb766781d22d92a2e33f8f104cddae4411a122295ed1fdb6638de96a6ce65f5b7c964ba3763bba27961738fef7d3ecc739268f3e5e771fb4c87b6234ba@146.190.1.103:30303",
)

_MAINNET_RELAYS = (
    "https://0xac6e77dfe25ecd6110b8e780608cce0dab71fdd5ebea22a16c0205200f2f8e2e3ad3b71d3499c54ad14d6c21b41a37ae@boost-relay.flashbots.net",
    "https://0xa1559ace749633b997cb3fdacffb890aeebdb0f5a3b6aaa7eeeaf1a38af0a8fe88b9e4b1f61f236d2e64d95733327a62@relay.ultrasound.money",
    "https://0x8b5d2e73e2a3a55c6c87b8b6eb92e0149a125c852751db1422fa951e42a09b82c142c3ea98d0d9930b056a3bc9896b8f@bloxroute.max-profit.blxrbdn.com",
    "https://0xa7ab7a996c8584251c8f925da3170bdfd6ebc75d50f5ddc4050a6fdc77f2a3b5fce2cc750d0865e05d7228af97d69561@agnostic-relay.net",
)

_SEPOLIA_RELAYS = (
    "https://0x845bd072b7cd566f02faeb0a4033ce9399e42839ced64e8b2adcfc859ed1e8e1a5a293336a49feac6d9a5edb779be53a@boost-relay-sepolia.flashbots.net",
)

_HOLESKY_RELAYS = (
    "https://0xafa4c6985aa049fb79dd37010438cfebeb0f2bd42b115b89dd678dab0670c1de38da0c4e9138c9290a398ecd9a0b3110@boost-relay-holesky.flashbots.net",
)


def _profiles(*profiles: NetworkProfile) -> Mapping[str, NetworkProfile]:
    table = {}
    for profile in profiles:
        if profile.name in table:
            raise ValueError(f"Duplicate network profile: {profile.name}")
        table[profile.name] = profile
    return MappingProxyType(table)


NETWORKS: Mapping[str, NetworkProfile] = _profiles(
    NetworkProfile(
        name="mainnet",
        requires_auth_token=True,
        service_type=MERGE,
        genesis_fork_version=bytes.fromhex("00000000"),
        default_execution_bootnodes=_MAINNET_EXECUTION_BOOTNODES,
        default_relay_urls=_MAINNET_RELAYS,
    ),
    NetworkProfile(
        name="sepolia",
        requires_auth_token=True,
        service_type=MERGE,
        genesis_fork_version=bytes.fromhex("90000069"),
        default_execution_bootnodes=_SEPOLIA_EXECUTION_BOOTNODES,
        default_relay_urls=_SEPOLIA_RELAYS,
    ),
    NetworkProfile(
        name="holesky",
        requires_auth_token=True,
        service_type=MERGE,
        genesis_fork_version=bytes.fromhex("01017000"),
        default_relay_urls=_HOLESKY_RELAYS,
    ),
    NetworkProfile(
        name="gnosis",
        requires_auth_token=True,
        service_type=MERGE,
        genesis_fork_version=bytes.fromhex("00000064"),
    ),
    NetworkProfile(
        name="chiado",
        requires_auth_token=True,
        service_type=MERGE,
        genesis_fork_version=bytes.fromhex("0000006f"),
    ),
)


def supported_networks() -> Tuple[str, ...]:
    return tuple(NETWORKS)
