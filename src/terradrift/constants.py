"""Shared constants for TerraDrift Watcher."""

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DRIFT = 2
EXIT_INTERRUPTED = 130

LOCK_FILE_NAME = "terradrift-watcher.lock"
STALE_LOCK_SECONDS = 60 * 60

DEFAULT_CONFIG_FILE = "config.yml"
DEFAULT_MAX_RETRIES = 3
DEFAULT_TERRAFORM_BINARY = "terraform"
MIN_TERRAFORM_VERSION = "0.12"

VERBOSE_ENV = "TERRADRIFT_VERBOSE"
AUTOMATION_ENV = "TF_IN_AUTOMATION"

MAX_PLAN_OUTPUT_LENGTH = 2000
MAX_SUMMARY_CHANGES = 10
MAX_CONSOLE_LINES = 10
