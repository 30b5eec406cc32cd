"""Option validation helpers for Nodesmith."""

import os
import re
from typing import Iterable, Mapping
from urllib.parse import urlparse

from nodesmith.constants import LOGGING_DRIVERS
from nodesmith.errors import InvalidFeeRecipientError, InvalidOptionError
from nodesmith.errors_catalog import actionable_error
from nodesmith.models import ROLES, ClientSelection, GenerationOptions, NetworkProfile


class ValidationService:
    """Validates generation options eagerly, before anything is merged or written."""

    ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{40}")
    FORBIDDEN_CHARACTERS = ("\n", "\r", "\x00")

    def is_url(self, location: str) -> bool:
        parsed = urlparse(location)
        return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)

    def validate_options(self, options: GenerationOptions, network: NetworkProfile):
        if not options.path or not str(options.path).strip():
            raise InvalidOptionError("Generation path must not be empty.")

        self.validate_single_line(options.path, "Generation path")
        self.validate_single_line(options.jwt_path, "JWT secret path")
        self.validate_single_line(options.fee_recipient, "Fee recipient")
        self.validate_single_line(options.graffiti, "Graffiti")
        self.validate_single_line(options.mev_image, "MEV-boost image")
        self.validate_single_line(options.checkpoint_sync_url, "Checkpoint sync URL")
        for value in options.fallback_execution_urls:
            self.validate_single_line(value, "Fallback execution URL")
        for value in options.relay_urls:
            self.validate_single_line(value, "Relay URL")

        if options.fee_recipient:
            self.validate_fee_recipient(options.fee_recipient)

        self.validate_jwt_path(options.jwt_path, network)

        if options.checkpoint_sync_url:
            self.validate_url(options.checkpoint_sync_url, "Checkpoint sync URL")
        self.validate_urls(options.fallback_execution_urls, "Fallback execution URL")
        self.validate_urls(options.relay_urls, "Relay URL")

        if options.logging_driver not in LOGGING_DRIVERS.values():
            supported = ", ".join(sorted(driver for driver in LOGGING_DRIVERS.values() if driver))
            raise InvalidOptionError(
                f"Unknown logging driver '{options.logging_driver}'. Supported drivers: {supported}."
            )

        self.validate_extra_flags(options.extra_flags)

    def validate_fee_recipient(self, address: str):
        if not isinstance(address, str) or not self.ADDRESS_PATTERN.fullmatch(address):
            raise InvalidFeeRecipientError(
                actionable_error("invalid_fee_recipient", address=str(address))
            )

    def validate_jwt_path(self, jwt_path: str, network: NetworkProfile):
        if jwt_path:
            if not os.path.isabs(jwt_path):
                raise InvalidOptionError(actionable_error("jwt_path_not_absolute", path=jwt_path))
            return

        if network.requires_auth_token:
            raise InvalidOptionError(actionable_error("jwt_path_required", network=network.name))

    def validate_url(self, value: str, label: str):
        if not isinstance(value, str) or not self.is_url(value):
            raise InvalidOptionError(f"{label} must be an http(s) URL, got '{value}'.")

    def validate_urls(self, values: Iterable[str], label: str):
        for value in values:
            self.validate_url(value, label)

    def validate_extra_flags(self, extra_flags: Mapping):
        for role, flags in extra_flags.items():
            if role not in ROLES:
                raise InvalidOptionError(
                    f"Extra flags given for unknown role '{role}'. Use one of: {', '.join(ROLES)}."
                )
            if isinstance(flags, str) or not all(isinstance(flag, str) for flag in flags):
                raise InvalidOptionError(f"Extra flags for {role} must be a list of strings.")

    def validate_single_line(self, value: str, label: str):
        """Values land on one ``KEY=VALUE`` line of the environment file."""
        if value and any(char in value for char in self.FORBIDDEN_CHARACTERS):
            raise InvalidOptionError(f"{label} must not contain line breaks or NUL characters.")

    def validate_selection(self, selection: ClientSelection):
        for spec in selection.active():
            if spec.docker_image:
                self.validate_single_line(spec.docker_image, f"Docker image for the {spec.role} client")
