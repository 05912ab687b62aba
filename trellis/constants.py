"""Default values shared across trellis."""

DEFAULT_CONFIG_PATH = "trellis.yaml"
DEFAULT_LOG_LEVEL = "INFO"
CONFIG_ENV_VAR = "TRELLIS_CONFIG"
DATABASE_URL_ENV_VARS = ("TRELLIS_DATABASE_URL", "DATABASE_URL")
