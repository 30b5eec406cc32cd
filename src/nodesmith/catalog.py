"""Client catalog: which clients each network supports and how they pair."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .models import CONSENSUS, EXECUTION, ROLES, VALIDATOR
from .templates import template_location

_ETHEREUM_EXECUTION = ("geth", "nethermind", "besu", "erigon")
_ETHEREUM_CONSENSUS = ("lighthouse", "prysm", "teku", "lodestar", "nimbus")

# Prysm validators talk gRPC to a Prysm beacon node; everything else uses the
# standard beacon API and is interchangeable.
_BEACON_API_FAMILY = ("lighthouse", "teku", "lodestar", "nimbus")
_PRYSM_FAMILY = ("prysm",)


@dataclass(frozen=True)
class CatalogEntry:
    execution: Tuple[str, ...]
    consensus: Tuple[str, ...]
    validator: Tuple[str, ...]
    families: Tuple[Tuple[str, ...], ...]
    template_locations: Mapping[Tuple[str, str], str]

    def clients(self, role: str) -> Tuple[str, ...]:
        return {
            EXECUTION: self.execution,
            CONSENSUS: self.consensus,
            VALIDATOR: self.validator,
        }[role]

    def family_of(self, client: str) -> Optional[Tuple[str, ...]]:
        for family in self.families:
            if client in family:
                return family
        return None

    def template_location(self, role: str, client: str) -> Optional[str]:
        return self.template_locations.get((role, client))


def _entry(
    execution: Tuple[str, ...],
    consensus: Tuple[str, ...],
    validator: Tuple[str, ...],
    families: Tuple[Tuple[str, ...], ...],
) -> CatalogEntry:
    clients = {EXECUTION: execution, CONSENSUS: consensus, VALIDATOR: validator}
    locations = {
        (role, client): template_location(role, client) for role in ROLES for client in clients[role]
    }
    return CatalogEntry(
        execution=execution,
        consensus=consensus,
        validator=validator,
        families=families,
        template_locations=MappingProxyType(locations),
    )


_ETHEREUM_ENTRY = _entry(
    _ETHEREUM_EXECUTION,
    _ETHEREUM_CONSENSUS,
    _ETHEREUM_CONSENSUS,
    (_BEACON_API_FAMILY, _PRYSM_FAMILY),
)

CLIENT_CATALOG: Mapping[str, CatalogEntry] = MappingProxyType(
    {
        "mainnet": _ETHEREUM_ENTRY,
        "sepolia": _ETHEREUM_ENTRY,
        "holesky": _ETHEREUM_ENTRY,
        "gnosis": _entry(
            ("nethermind", "erigon"),
            _BEACON_API_FAMILY,
            _BEACON_API_FAMILY,
            (_BEACON_API_FAMILY,),
        ),
        "chiado": _entry(
            ("nethermind",),
            ("lighthouse", "teku", "lodestar"),
            ("lighthouse", "teku", "lodestar"),
            (_BEACON_API_FAMILY,),
        ),
    }
)
