"""Client combination resolution and option normalization."""

import dataclasses
from typing import Mapping, Optional, Tuple

from nodesmith.catalog import CLIENT_CATALOG, CatalogEntry
from nodesmith.errors import (
    IncompatiblePairError,
    UnsupportedClientError,
    UnsupportedNetworkError,
)
from nodesmith.errors_catalog import actionable_error
from nodesmith.models import (
    CONSENSUS,
    EXECUTION,
    VALIDATOR,
    ClientSelection,
    ClientSpec,
    GenerationOptions,
    NetworkProfile,
)
from nodesmith.networks import NETWORKS

NO_VALIDATOR = "none"


def parse_client_flag(value: Optional[str]) -> Tuple[str, Optional[str]]:
    """Split ``<CLIENT>:<DOCKER_IMAGE>`` into the client name and the image override."""
    if not value:
        return "", None
    name, _, image = value.partition(":")
    return name.strip().lower(), (image.strip() or None)


class CombinationResolver:
    """Checks a client triple against the network registry and client catalog."""

    def __init__(
        self,
        networks: Mapping[str, NetworkProfile] = NETWORKS,
        catalog: Mapping[str, CatalogEntry] = CLIENT_CATALOG,
    ):
        self.networks = networks
        self.catalog = catalog

    def network_profile(self, network: str) -> NetworkProfile:
        profile = self.networks.get(network)
        if profile is None or network not in self.catalog:
            supported = ", ".join(name for name in self.networks if name in self.catalog)
            raise UnsupportedNetworkError(
                network,
                actionable_error("unknown_network", network=network, supported=supported),
            )
        return profile

    def catalog_entry(self, network: str) -> CatalogEntry:
        self.network_profile(network)
        return self.catalog[network]

    def resolve(
        self,
        network: str,
        execution: str = "",
        consensus: str = "",
        validator: str = "",
        images: Optional[Mapping[str, Optional[str]]] = None,
        omit_validator: bool = False,
    ) -> ClientSelection:
        entry = self.catalog_entry(network)
        images = images or {}

        execution_name = self._pick(entry, network, EXECUTION, execution)
        consensus_name = self._pick(entry, network, CONSENSUS, consensus)

        omit_validator = omit_validator or validator == NO_VALIDATOR
        if omit_validator:
            validator_spec = ClientSpec(role=VALIDATOR, name="", omitted=True)
        else:
            validator_name = validator or self._default_validator(entry, consensus_name)
            validator_name = self._pick(entry, network, VALIDATOR, validator_name)
            self._check_family(entry, network, consensus_name, validator_name)
            validator_spec = ClientSpec(
                role=VALIDATOR,
                name=validator_name,
                docker_image=images.get(VALIDATOR),
            )

        return ClientSelection(
            execution=ClientSpec(EXECUTION, execution_name, docker_image=images.get(EXECUTION)),
            consensus=ClientSpec(CONSENSUS, consensus_name, docker_image=images.get(CONSENSUS)),
            validator=validator_spec,
        )

    def normalize_options(
        self, selection: ClientSelection, options: GenerationOptions
    ) -> GenerationOptions:
        """Applies every option downgrade implied by the selection and the network."""
        changes = {}

        if selection.validator.omitted:
            if options.mev_enabled:
                changes["mev_enabled"] = False
            if options.extra_flags.get(VALIDATOR):
                changes["extra_flags"] = {
                    role: flags for role, flags in options.extra_flags.items() if role != VALIDATOR
                }
        elif options.mev_enabled and not options.relay_urls:
            profile = self.network_profile(options.network)
            if not profile.default_relay_urls:
                changes["mev_enabled"] = False

        if not changes:
            return options
        return dataclasses.replace(options, **changes)

    def _pick(self, entry: CatalogEntry, network: str, role: str, name: str) -> str:
        supported = entry.clients(role)
        if not name:
            return supported[0]

        clean_name = name.strip().lower()
        if clean_name not in supported:
            raise UnsupportedClientError(
                role,
                name,
                network,
                actionable_error(
                    "unsupported_client",
                    role=role,
                    client=name,
                    network=network,
                    supported=", ".join(supported),
                ),
            )
        return clean_name

    def _default_validator(self, entry: CatalogEntry, consensus: str) -> str:
        if consensus in entry.validator:
            return consensus
        family = entry.family_of(consensus) or ()
        for candidate in entry.validator:
            if candidate in family:
                return candidate
        return entry.validator[0]

    def _check_family(self, entry: CatalogEntry, network: str, consensus: str, validator: str):
        family = entry.family_of(consensus)
        if family is not None and validator in family:
            return

        suggestions = [client for client in entry.validator if family and client in family]
        raise IncompatiblePairError(
            consensus,
            validator,
            network,
            actionable_error(
                "incompatible_pair",
                consensus=consensus,
                validator=validator,
                network=network,
                suggestion=", ".join(suggestions) or consensus,
            ),
        )
