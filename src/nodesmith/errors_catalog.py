"""Actionable error catalog for Nodesmith."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unknown_network": {
        "what": "Unknown network '{network}'.",
        "next": "Use one of the supported networks: {supported}.",
    },
    "unsupported_client": {
        "what": "The {role} client '{client}' is not supported on {network}.",
        "next": "Pick one of: {supported}.",
    },
    "incompatible_pair": {
        "what": "Consensus client '{consensus}' cannot drive validator client '{validator}' on {network}.",
        "next": "Use a validator from the same client family, e.g. {suggestion}.",
    },
    "missing_template": {
        "what": "No template found at '{location}' for the {role} client '{client}' on {network}.",
        "next": "This is a packaging defect. Reinstall Nodesmith or report the issue.",
    },
    "invalid_fee_recipient": {
        "what": "Invalid fee recipient address '{address}'.",
        "next": "Provide a 20-byte hex address such as 0x followed by 40 hexadecimal characters.",
    },
    "jwt_path_not_absolute": {
        "what": "JWT secret path must be absolute: {path}",
        "next": "Pass an absolute path to `--jwt-secret-path` or omit it to generate a new secret.",
    },
    "jwt_path_required": {
        "what": "Network '{network}' requires a JWT secret shared by the execution and consensus clients.",
        "next": "Pass `--jwt-secret-path` or let Nodesmith generate the secret.",
    },
    "path_creation_failed": {
        "what": "Could not create generation path '{path}': {reason}",
        "next": "Check permissions or choose another `--path`.",
    },
    "artifact_write_failed": {
        "what": "Could not write '{path}': {reason}",
        "next": "Free disk space or fix permissions, then generate again. No partial files were kept.",
    },
    "sync_timeout": {
        "what": "Clients were not synced after {minutes} minutes (execution synced: {execution}, consensus synced: {consensus}).",
        "next": "Check the client logs with `docker compose logs` and start the validator once both are synced.",
    },
    "compose_unavailable": {
        "what": "Docker Compose is not available.",
        "next": "Install Docker Compose v2 (`docker compose`) or v1 (`docker-compose`) and try again.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
