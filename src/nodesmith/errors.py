"""Domain errors for Nodesmith."""


class NodesmithError(RuntimeError):
    """Raised when the node setup cannot continue safely."""


class ConfigurationError(NodesmithError):
    """Bad network, client or option. Fixable by the user."""


class UnsupportedNetworkError(ConfigurationError):
    def __init__(self, network: str, message: str):
        super().__init__(message)
        self.network = network


class UnsupportedClientError(ConfigurationError):
    def __init__(self, role: str, client: str, network: str, message: str):
        super().__init__(message)
        self.role = role
        self.client = client
        self.network = network


class InvalidOptionError(ConfigurationError):
    pass


class InvalidFeeRecipientError(InvalidOptionError):
    pass


class CompatibilityError(NodesmithError):
    """Only a different client selection resolves this."""


class IncompatiblePairError(CompatibilityError):
    def __init__(self, consensus: str, validator: str, network: str, message: str):
        super().__init__(message)
        self.consensus = consensus
        self.validator = validator
        self.network = network


class TemplateIntegrityError(NodesmithError):
    """Catalog and template data disagree. A packaging defect, not a user error."""


class MissingTemplateError(TemplateIntegrityError):
    pass


class FilesystemError(NodesmithError):
    pass


class PathCreationError(FilesystemError):
    pass


class ArtifactWriteError(FilesystemError):
    pass


class RuntimeCommandError(NodesmithError):
    """A container runtime command failed or is unavailable."""


class SyncTrackingError(NodesmithError):
    """Sync tracking stopped on a non-recoverable condition."""


class SyncTimeoutError(SyncTrackingError):
    """Clients did not sync before the deadline. The deployment itself succeeded."""


class EndpointConfigurationError(SyncTrackingError):
    pass


class SyncQueryError(NodesmithError):
    """A single sync status query failed. Polling continues."""
