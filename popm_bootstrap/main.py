#!/usr/bin/env python3
"""PoPM Bootstrap - set up and start a Hemi PoP mining node.

Usage:
    python -m popm_bootstrap [--verbose]

Or with environment variables:
    POPM_WORKDIR=/opt/popm POPM_VERBOSE=1 popm-bootstrap
"""

import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from . import terminal
from .config import DEFAULT_LOG_FILE, DEFAULT_WALLET_PATH, BootstrapConfig
from .orchestrator import Orchestrator
from .utils import setup_logging


@click.command()
@click.option("--workdir", envvar="POPM_WORKDIR", default=None, type=click.Path(file_okay=False, path_type=Path), help="Directory to download and unpack the release into (default: current directory)")
@click.option("--wallet-path", envvar="POPM_WALLET_PATH", default=DEFAULT_WALLET_PATH, type=click.Path(dir_okay=False, path_type=Path), help="Where a newly created wallet is written")
@click.option("--log-file", envvar="POPM_LOG_FILE", default=DEFAULT_LOG_FILE, type=click.Path(dir_okay=False, path_type=Path), help="Append-only log file")
@click.option("--session-name", envvar="POPM_SESSION_NAME", default="RTad", help="screen session name for the agent")
@click.option("--verbose", envvar="POPM_VERBOSE", is_flag=True, help="Echo log messages to the terminal")
@click.option("--version", is_flag=True, help="Show version and exit")
def main(
    workdir: Optional[Path],
    wallet_path: Path,
    log_file: Path,
    session_name: str,
    verbose: bool,
    version: bool,
):
    """PoPM Bootstrap - install and start the Hemi PoP mining agent."""
    if version:
        click.echo(f"popm-bootstrap {__version__}")
        return

    try:
        env_config = BootstrapConfig.from_env()
    except ValueError as e:
        terminal.error(f"Config error: {e}")
        sys.exit(1)

    config = BootstrapConfig(
        workdir=workdir or Path.cwd(),
        wallet_path=wallet_path,
        log_file=log_file,
        required_kb=env_config.required_kb,
        release_index_url=env_config.release_index_url,
        download_base_url=env_config.download_base_url,
        network=env_config.network,
        session_name=session_name,
        bfg_url=env_config.bfg_url,
        verbose=verbose,
    )

    try:
        logger = setup_logging(verbose=verbose, log_file=config.log_file)
    except OSError as e:
        terminal.error(f"Cannot open log file {config.log_file}: {e}")
        sys.exit(1)

    logger.info(f"PoPM Bootstrap v{__version__}")
    logger.info(f"Working directory: {config.workdir}")
    logger.info(f"Wallet path: {config.wallet_path}")

    # Validate config
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
            terminal.error(f"Config error: {error}")
        sys.exit(1)

    result = Orchestrator(config).run()

    if not result.success:
        terminal.error(result.error.message)
        sys.exit(1)

    logger.info("Bootstrap complete")


if __name__ == "__main__":
    main()
