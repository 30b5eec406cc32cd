from nodesmith.catalog import CLIENT_CATALOG
from nodesmith.models import MERGE, ROLES
from nodesmith.networks import NETWORKS, supported_networks
from nodesmith.templates import CLIENT_TEMPLATES, ENV_PREFIXES


def test_every_catalog_location_has_a_template_for_the_same_role():
    for network, entry in CLIENT_CATALOG.items():
        for role in ROLES:
            for client in entry.clients(role):
                location = entry.template_location(role, client)
                template = CLIENT_TEMPLATES.get(location)

                assert template is not None, f"{network}: {location}"
                assert template.role == role
                assert template.name == client


def test_every_network_has_a_catalog_entry_and_valid_profile():
    assert set(supported_networks()) == set(CLIENT_CATALOG)

    for name, profile in NETWORKS.items():
        assert profile.name == name
        assert profile.service_type == MERGE
        assert len(profile.genesis_fork_version) == 4
        assert profile.genesis_fork_version_hex.startswith("0x")


def test_mainnet_genesis_fork_version_and_relays():
    mainnet = NETWORKS["mainnet"]

    assert mainnet.genesis_fork_version_hex == "0x00000000"
    assert mainnet.requires_auth_token is True
    assert "boost-relay.flashbots.net" in mainnet.default_relay_urls[0]


def test_validator_clients_belong_to_a_family():
    for entry in CLIENT_CATALOG.values():
        for client in entry.validator:
            assert entry.family_of(client) is not None


def test_template_port_variables_use_role_prefix():
    for template in CLIENT_TEMPLATES.values():
        prefix = ENV_PREFIXES[template.role]
        for port in template.ports:
            assert port.variable.startswith(f"{prefix}_")
