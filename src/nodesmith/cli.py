import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_CONFIG_FILE, DEFAULT_GENERATION_PATH, LOGGING_DRIVERS
from .core import NodeSetup
from .errors import NodesmithError
from .models import CONSENSUS, EXECUTION, ROLES, VALIDATOR
from .networks import supported_networks
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _split_csv(values):
    items = []
    for value in values or ():
        items.extend(part.strip() for part in str(value).split(",") if part.strip())
    return items


def parse_run_clients(values, no_validator: bool = False):
    """Expands ``all``/``none`` and rejects unknown or ambiguous role lists."""
    services = [value.lower() for value in _split_csv(values)]
    if "all" in services or "none" in services:
        if len(services) != 1:
            raise click.UsageError(
                f"Invalid --run-clients value {','.join(services)}: 'all' and 'none' must be used alone."
            )
        services = list(ROLES) if services[0] == "all" else []
    else:
        unknown = [service for service in services if service not in ROLES]
        if unknown:
            raise click.UsageError(
                f"Invalid --run-clients value {','.join(services)}. "
                f"Possible values: {', '.join(ROLES)}, all, none."
            )

    if no_validator:
        services = [service for service in services if service != VALIDATOR]
    return services


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--execution",
    "-e",
    required=False,
    help="Execution client, e.g. geth, nethermind, besu, erigon. Use '<CLIENT>:<DOCKER_IMAGE>' to override the image.",
)
@click.option(
    "--consensus",
    "-c",
    required=False,
    help="Consensus client, e.g. lighthouse, prysm, teku, lodestar, nimbus. Accepts '<CLIENT>:<DOCKER_IMAGE>'.",
)
@click.option(
    "--validator",
    "-v",
    required=False,
    help="Validator client from the consensus client's family. Accepts '<CLIENT>:<DOCKER_IMAGE>'.",
)
@click.option(
    "--path",
    "-p",
    required=False,
    type=click.Path(),
    help=f"Generation path for the environment file and compose manifest (default: {DEFAULT_GENERATION_PATH}).",
)
@click.option(
    "--network",
    "-n",
    required=False,
    type=click.Choice(supported_networks()),
    help="Target network (default: mainnet).",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--checkpoint-sync-url", required=False, help="Trusted endpoint the consensus client syncs from.")
@click.option("--fee-recipient", required=False, help="Suggested fee recipient address (0x + 40 hex characters).")
@click.option("--no-mev-boost", is_flag=True, default=None, help="Do not add mev-boost to the setup.")
@click.option("--mev-boost-image", "-m", required=False, help="Custom docker image for mev-boost.")
@click.option(
    "--relay-url",
    "relay_urls",
    multiple=True,
    help="MEV relay URL. Repeat for several relays. Replaces the network defaults.",
)
@click.option(
    "--no-validator",
    is_flag=True,
    default=None,
    help="Exclude the validator from the setup. Disables mev-boost as well.",
)
@click.option("--jwt-secret-path", required=False, type=click.Path(), help="Path to an existing JWT secret file.")
@click.option("--graffiti", required=False, help="Graffiti used by the validator.")
@click.option("--run", "-r", is_flag=True, default=None, help="Start the generated services with docker compose.")
@click.option("--map-all", is_flag=True, default=None, help="Map all client ports to the host. Use with care.")
@click.option(
    "--run-clients",
    required=False,
    help="Comma separated clients to start: execution, consensus, validator, all or none (default: execution,consensus).",
)
@click.option(
    "--fallback-execution-urls",
    required=False,
    help="Comma separated fallback execution endpoints for the consensus client.",
)
@click.option("--el-extra-flag", multiple=True, help="Extra argument for the execution client. Repeatable.")
@click.option("--cl-extra-flag", multiple=True, help="Extra argument for the consensus client. Repeatable.")
@click.option("--vl-extra-flag", multiple=True, help="Extra argument for the validator client. Repeatable.")
@click.option(
    "--logging",
    "logging_flag",
    required=False,
    type=click.Choice(sorted(LOGGING_DRIVERS)),
    help="Docker logging driver for every service. 'none' keeps the docker default (default: json).",
)
@click.option(
    "--sync-timeout-minutes",
    required=False,
    type=float,
    default=None,
    help="How long to wait for the clients to sync before starting the validator (default: 5).",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    execution,
    consensus,
    validator,
    path,
    network,
    config,
    checkpoint_sync_url,
    fee_recipient,
    no_mev_boost,
    mev_boost_image,
    relay_urls,
    no_validator,
    jwt_secret_path,
    graffiti,
    run,
    map_all,
    run_clients,
    fallback_execution_urls,
    el_extra_flag,
    cl_extra_flag,
    vl_extra_flag,
    logging_flag,
    sync_timeout_minutes,
    verbose,
    log_file,
):
    """Generate and run an Ethereum node setup with docker compose."""
    logger = logging.getLogger("nodesmith")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except NodesmithError as exc:
        raise click.ClickException(str(exc)) from exc

    execution = _resolve_option(execution, config_values, "execution")
    consensus = _resolve_option(consensus, config_values, "consensus")
    validator = _resolve_option(validator, config_values, "validator")
    path = _resolve_option(path, config_values, "path", default=DEFAULT_GENERATION_PATH)
    network = _resolve_option(network, config_values, "network", default="mainnet")
    checkpoint_sync_url = _resolve_option(checkpoint_sync_url, config_values, "checkpoint_sync_url")
    fee_recipient = _resolve_option(fee_recipient, config_values, "fee_recipient")
    no_mev_boost = bool(_resolve_option(no_mev_boost, config_values, "no_mev_boost", default=False))
    mev_boost_image = _resolve_option(mev_boost_image, config_values, "mev_boost_image")
    relay_urls = _resolve_option(relay_urls or None, config_values, "relay_urls", default=[])
    no_validator = bool(_resolve_option(no_validator, config_values, "no_validator", default=False))
    jwt_secret_path = _resolve_option(jwt_secret_path, config_values, "jwt_secret_path")
    graffiti = _resolve_option(graffiti, config_values, "graffiti")
    run = bool(_resolve_option(run, config_values, "run", default=False))
    map_all = bool(_resolve_option(map_all, config_values, "map_all", default=False))
    run_clients = _resolve_option(
        [run_clients] if run_clients is not None else None,
        config_values,
        "run_clients",
        default=[EXECUTION, CONSENSUS],
    )
    fallback_execution_urls = _resolve_option(
        [fallback_execution_urls] if fallback_execution_urls is not None else None,
        config_values,
        "fallback_execution_urls",
        default=[],
    )
    el_extra_flag = _resolve_option(el_extra_flag or None, config_values, "el_extra_flags", default=[])
    cl_extra_flag = _resolve_option(cl_extra_flag or None, config_values, "cl_extra_flags", default=[])
    vl_extra_flag = _resolve_option(vl_extra_flag or None, config_values, "vl_extra_flags", default=[])
    logging_flag = _resolve_option(logging_flag, config_values, "logging", default="json")
    sync_timeout_minutes = float(
        _resolve_option(sync_timeout_minutes, config_values, "sync_timeout_minutes", default=5)
    )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if logging_flag not in LOGGING_DRIVERS:
        raise click.ClickException(
            f"Invalid logging value '{logging_flag}'. Possible values: {', '.join(sorted(LOGGING_DRIVERS))}."
        )
    if sync_timeout_minutes <= 0:
        raise click.ClickException("--sync-timeout-minutes must be greater than zero.")

    run_clients = parse_run_clients(run_clients, no_validator=no_validator)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        setup = NodeSetup(
            network=network,
            path=path,
            execution=execution,
            consensus=consensus,
            validator=validator,
            checkpoint_sync_url=checkpoint_sync_url,
            fee_recipient=fee_recipient,
            no_mev_boost=no_mev_boost,
            mev_boost_image=mev_boost_image,
            relay_urls=relay_urls,
            no_validator=no_validator,
            jwt_secret_path=jwt_secret_path,
            graffiti=graffiti,
            run=run,
            map_all=map_all,
            run_clients=run_clients,
            fallback_execution_urls=_split_csv(fallback_execution_urls),
            extra_flags={
                EXECUTION: list(el_extra_flag),
                CONSENSUS: list(cl_extra_flag),
                VALIDATOR: list(vl_extra_flag),
            },
            logging_driver=LOGGING_DRIVERS[logging_flag],
            sync_timeout_minutes=sync_timeout_minutes,
        )
    except NodesmithError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(setup.run())


if __name__ == "__main__":
    main()
