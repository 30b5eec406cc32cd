"""Static values shared across Nodesmith modules."""

ENV_FILE_NAME = ".env"
MANIFEST_FILE_NAME = "docker-compose.yml"
JWT_SECRET_FILE_NAME = "jwtsecret"
DEFAULT_GENERATION_PATH = "nodesmith-data"
DEFAULT_CONFIG_FILE = ".nodesmith.yml"

DEFAULT_MEV_IMAGE = "flashbots/mev-boost:1.7"
MEV_BOOST_PORT = 18550
DOCKER_NETWORK = "nodesmith"

JWT_CONTAINER_PATH = "/tmp/jwt/jwtsecret"
KEYSTORE_CONTAINER_PATH = "/keystore"
BLOCKER_IMAGE = "busybox:1.36"

LOGGING_DRIVERS = {
    "none": "",
    "json": "json-file",
    "journald": "journald",
}

DIR_MODE = 0o755
SECRET_MODE = 0o600

SYNC_POLL_INTERVAL_SECONDS = 30.0
SYNC_DEADLINE_SECONDS = 300.0
