import logging
import os

import click
from rich.logging import RichHandler

from . import __version__
from .constants import DEFAULT_CONFIG_FILE, DEFAULT_MAX_RETRIES, DEFAULT_TERRAFORM_BINARY, VERBOSE_ENV
from .core import DriftWatcher
from .errors import WatcherError
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.group()
@click.version_option(__version__, prog_name="terradrift-watcher")
def main():
    """Detect configuration drift in Terraform projects."""


@main.command()
@click.option(
    "--config",
    "-c",
    "config_file",
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    type=click.Path(),
    help="Path to the configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, default=None, help="Show full terraform plan output.")
@click.option(
    "--fail-on-drift",
    is_flag=True,
    default=None,
    help="Exit with code 2 if drift is detected.",
)
@click.option("--force", is_flag=True, help="Force release any existing lock and proceed.")
@click.option(
    "--lock-dir",
    required=False,
    type=click.Path(file_okay=False),
    help="Directory for the run lock file (default: system temp directory).",
)
@click.option(
    "--max-retries",
    required=False,
    type=click.IntRange(min=0),
    default=None,
    help=f"Retries per notifier after the first failed attempt (default: {DEFAULT_MAX_RETRIES}).",
)
@click.option("--log-file", type=click.Path(), help="Path to log file.")
def run(config_file, verbose, fail_on_drift, force, lock_dir, max_retries, log_file):
    """Run drift detection for all configured Terraform projects."""
    logger = logging.getLogger("terradrift")

    logger.info("Loading configuration from %s", config_file)
    try:
        config = ConfigLoader().load(config_file)
    except WatcherError as exc:
        raise click.ClickException(f"Failed to load configuration: {exc}") from exc

    settings = config.settings
    verbose = bool(_resolve_option(verbose, settings, "verbose", default=False))
    fail_on_drift = bool(_resolve_option(fail_on_drift, settings, "fail_on_drift", default=False))
    lock_dir = _resolve_option(lock_dir, settings, "lock_dir")
    terraform_binary = str(
        _resolve_option(None, settings, "terraform_binary", default=DEFAULT_TERRAFORM_BINARY)
    )
    try:
        max_retries = int(_resolve_option(max_retries, settings, "max_retries", default=DEFAULT_MAX_RETRIES))
    except (TypeError, ValueError) as exc:
        raise click.ClickException("'max_retries' must be an integer.") from exc
    if max_retries < 0:
        raise click.ClickException("'max_retries' must not be negative.")

    if verbose:
        os.environ[VERBOSE_ENV] = "true"
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.info("Verbose mode enabled - will show full plan output")
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    if "check_interval" in settings:
        logger.debug("Ignoring 'check_interval'; scheduling is left to cron or CI.")

    logger.info(
        "Found %s projects, %s auth profiles, and %s notifiers",
        len(config.projects),
        len(config.auth_profiles),
        len(config.notifiers),
    )

    watcher = DriftWatcher(
        config=config,
        verbose=verbose,
        fail_on_drift=fail_on_drift,
        force=force,
        lock_dir=lock_dir,
        max_retries=max_retries,
        terraform_binary=terraform_binary,
    )
    raise SystemExit(watcher.run())


if __name__ == "__main__":
    main()
