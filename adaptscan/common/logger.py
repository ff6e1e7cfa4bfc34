import logging
import os

from colorama import Fore, Style


class CustomFormatter(logging.Formatter):
    base_format = (
        f"{Style.BRIGHT}%(asctime)s [%(levelname)s]{Style.RESET_ALL} - %(name)s - %(message)s"
    )

    FORMATS = {
        logging.DEBUG: Style.DIM + base_format + Style.RESET_ALL,
        logging.INFO: base_format + Style.RESET_ALL,
        logging.WARNING: Fore.YELLOW + base_format + Style.RESET_ALL,
        logging.ERROR: Fore.RED + base_format + Style.RESET_ALL,
        logging.CRITICAL: Fore.RED + Style.BRIGHT + base_format + Style.RESET_ALL,
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.base_format)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def setup_logger(level=None):
    """
    Configure the root logger with the colour formatter.

    Safe to call from every module at import time: the handler is only
    installed once. An explicit level (or ADAPTSCAN_LOG_LEVEL) is applied on
    every call.
    """
    if level is None:
        level = os.getenv("ADAPTSCAN_LOG_LEVEL", "INFO").upper()

    root = logging.getLogger()
    if any(isinstance(h.formatter, CustomFormatter) for h in root.handlers):
        root.setLevel(level)
        return

    colorful_handler = logging.StreamHandler()
    colorful_handler.setFormatter(CustomFormatter())

    logging.addLevelName(logging.ERROR, "ERRR")
    logging.addLevelName(logging.WARNING, "WARN")

    logging.basicConfig(level=level, handlers=[colorful_handler])
