"""
adaptscan - Adaptive Scan Execution Layer

Command line entry point. Loads a probe engine, recognizes the --optimize
flag that switches on adaptive mode and runs one scan through the
AdaptiveScanOrchestrator.

Usage:
    adaptscan --engine package.module:Engine -t TARGETS -p PORTS [--optimize]

Send SIGUSR1 to the process for a progress snapshot of every running shard.

License:
    GNU General Public License v3.0
"""

#  *
#  * This file is part of adaptscan.
#  *
#  * adaptscan is free software: you can redistribute it and/or modify
#  * it under the terms of the GNU General Public License as published by
#  * the Free Software Foundation, either version 3 of the License, or
#  * (at your option) any later version.
#  *
#  * adaptscan is distributed in the hope that it will be useful,
#  * but WITHOUT ANY WARRANTY; without even the implied warranty of
#  * MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#  * GNU General Public License for more details.
#  *
#  * You should have received a copy of the GNU General Public License
#  * along with adaptscan. If not, see <https://www.gnu.org/licenses/>.
#  *

import argparse
import asyncio
import logging
import sys
from typing import List

from colorama import Fore, Style, init

from adaptscan.common.config import MERGE_POLICIES, ScanConfiguration
from adaptscan.common.logger import setup_logger
from adaptscan.core.progress import ProgressTrigger, install_signal_trigger
from adaptscan.engine.base import load_engine
from adaptscan.scanners.orchestrator import AdaptiveScanOrchestrator

setup_logger()
logger = logging.getLogger("main")

init(autoreset=True)

OPTIMIZE_FLAG = "--optimize"


def setup_env_from_args(args=None) -> ScanConfiguration:
    # ? Grab --envfile before anything else so the configuration sees it
    env_parser = argparse.ArgumentParser(add_help=False)
    env_parser.add_argument(
        "-env",
        "--envfile",
        help="envfile location, default .env",
        default=".env",
        required=False,
    )

    if args is None:
        env_args, _ = env_parser.parse_known_args()
    else:
        env_args, _ = env_parser.parse_known_args(args)

    return ScanConfiguration.from_env(env_args.envfile)


def parse_adaptive_option(option: str, config: ScanConfiguration) -> bool:
    """
    Recognize the flag that enables adaptive mode.

    Args:
        option: A single command line argument
        config: Configuration to enable

    Returns:
        bool: True if the argument was the adaptive mode flag
    """
    if option == OPTIMIZE_FLAG:
        config.set_enabled(True)
        logger.debug(f"Adaptive mode enabled via {OPTIMIZE_FLAG}")
        return True
    return False


def handle_adaptive_options(args: List[str], config: ScanConfiguration) -> List[str]:
    """
    Consume the adaptive mode flag and pass every other argument through.

    Returns:
        List[str]: Unrecognized arguments, in their original order
    """
    return [arg for arg in args if not parse_adaptive_option(arg, config)]


def parse_targets(targets_str: str) -> List[str]:
    targets = [target.strip() for target in targets_str.split(",") if target.strip()]
    if not targets:
        logger.warning(f"{Fore.YELLOW}[!] No valid targets provided{Style.RESET_ALL}")
    return targets


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Adaptive scan execution layer",
        epilog=f"{OPTIMIZE_FLAG}  enable adaptive mode",
    )
    parser.add_argument(
        "--engine",
        required=True,
        help="Probe engine to load, as package.module:attribute",
    )
    parser.add_argument(
        "-t",
        "--target",
        required=True,
        help="Comma separated list of targets handed to the engine",
    )
    parser.add_argument("-p", "--ports", default=None, help="Port specification")
    parser.add_argument("-m", "--mode", default="syn", help="Scan mode, e.g. syn, connect, udp")
    parser.add_argument("-w", "--workers", type=int, default=None, help="Parallel workers")
    parser.add_argument(
        "--merge",
        choices=MERGE_POLICIES,
        default=None,
        help="How shard timeout profiles are merged",
    )
    parser.add_argument(
        "-env",
        "--envfile",
        help="envfile location, default .env",
        default=".env",
        required=False,
    )
    return parser


def main(args=None):
    """
    Parse arguments, load the engine and run one scan.

    Args:
        args: Command line arguments (for testing)
    """
    if args is None:
        args = sys.argv[1:]

    config = setup_env_from_args(args)
    remaining = handle_adaptive_options(list(args), config)
    parsed = build_parser().parse_args(remaining)

    if parsed.workers is not None:
        config.set_worker_count(parsed.workers)
    if parsed.merge is not None:
        config.set_timeout_merge(parsed.merge)

    try:
        engine = load_engine(parsed.engine)
    except (ImportError, AttributeError, TypeError, ValueError) as e:
        logger.error(f"{Fore.RED}[-] Could not load engine {parsed.engine}: {e}{Style.RESET_ALL}")
        sys.exit(1)

    progress = ProgressTrigger()
    install_signal_trigger(progress)

    orchestrator = AdaptiveScanOrchestrator(engine, config=config, progress=progress)
    targets = parse_targets(parsed.target)

    logger.info(f"{Fore.BLUE}{'=' * 60}")
    logger.info(
        f"{Fore.CYAN}Mode: {Fore.YELLOW}{parsed.mode}{Fore.CYAN} | "
        f"Target(s): {Fore.YELLOW}{len(targets)}{Fore.CYAN} | "
        f"Adaptive: {Fore.YELLOW}{config.enabled}"
    )
    logger.info(f"{Fore.BLUE}{'=' * 60}{Style.RESET_ALL}")

    final_profile = asyncio.run(orchestrator.run(targets, parsed.ports, parsed.mode))
    if final_profile is not None:
        logger.info(
            f"Final timeouts - SRTT: {final_profile.srtt}us, "
            f"RTTVAR: {final_profile.rttvar}us, Timeout: {final_profile.timeout}us"
        )


if __name__ == "__main__":
    main()
