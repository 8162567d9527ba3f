# OpsAgent - DevOps Chat Agent
# Copyright (c) 2024-2026 Matthew Bright
# Licensed under the MIT License. See LICENSE file for details.

"""CLI entry point for OpsAgent."""

import argparse
import logging
import sys

from . import __version__
from .agent import run_interactive, run_single_shot
from .config import SUPPORTED_PROVIDERS, load_config
from .output import print_assistant, print_error

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="opsagent",
        description="OpsAgent - DevOps chat assistant with approval-gated deployments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  opsagent                              (starts interactive mode)
  opsagent "Build the staging environment"
  opsagent --settings ./appsettings.json --build-log Files/build.log

Settings (appsettings.json, .env or environment, OPSAGENT_ prefix optional):
  MODEL_ID          Model to use
  PROJECT_KEY       API key
  PROJECT_ENDPOINT  OpenAI-compatible endpoint URL (optional)
  SERVICE_ID        Service label (optional)
        """,
    )

    parser.add_argument(
        "prompt",
        nargs="?",
        help="A single request (omit for interactive mode)",
    )

    parser.add_argument(
        "--settings",
        "-s",
        help="Path to appsettings.json (default: ./appsettings.json)",
    )

    parser.add_argument(
        "--env-file",
        help="Path to a .env file (default: ~/.opsagent/.env)",
    )

    parser.add_argument(
        "--provider",
        "-p",
        choices=list(SUPPORTED_PROVIDERS),
        help="API provider (default: openai)",
    )

    parser.add_argument(
        "--model",
        "-m",
        help="Model id (overrides MODEL_ID)",
    )

    parser.add_argument(
        "--build-log",
        help="Path to the build log read by ReadLogFile (default: Files/build.log)",
    )

    parser.add_argument(
        "--verbose",
        "-V",
        action="store_true",
        help="Show each action call and its outcome",
    )

    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"OpsAgent {__version__}",
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    from .log_config import configure_logging

    configure_logging()

    args = parse_arguments(argv)

    try:
        config = load_config(
            overrides={
                "PROVIDER": args.provider,
                "MODEL_ID": args.model,
                "BUILD_LOG_PATH": args.build_log,
                "VERBOSE": True if args.verbose else None,
            },
            settings_file=args.settings,
            env_file=args.env_file,
        )
    except ValueError as error:
        print_error(str(error))
        sys.exit(1)

    try:
        if args.prompt:
            print_assistant(run_single_shot(config, args.prompt))
        else:
            run_interactive(config)
    except KeyboardInterrupt:
        print("\nCancelled.")
        sys.exit(130)
    except Exception as error:
        logger.exception("Unhandled error, terminating")
        print_error(str(error))
        sys.exit(1)


if __name__ == "__main__":
    main()
