# src/websketch_ir/core/utils/configure_logging.py
import logging
import sys
from typing import Dict, Optional, Union

from tqdm import tqdm

from websketch_ir.core.managers.config_manager import config_manager

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "websketch_ir"

LevelSpec = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    A logging handler that routes records through `tqdm.write()`, so hosts
    that batch-render captures behind a progress bar keep a clean display.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: LevelSpec, fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level


def configure_logger(
        general_level: Optional[LevelSpec] = None,
        module_specific_levels: Optional[Dict[str, LevelSpec]] = None,
        silenced_loggers: Optional[Dict[str, LevelSpec]] = None,
) -> logging.Logger:
    """
    Sends the core's log records (the `websketch_ir` logger tree) through a
    TQDM-friendly handler on stderr. The host's root logger is left alone.

    Calling it again replaces the handler it installed earlier instead of
    stacking a second one.

    Args:
        general_level: Level for `websketch_ir`; defaults to the `debug.level` setting.
        module_specific_levels: Levels for individual loggers, e.g. {"websketch_ir.core.services.diff_service": "DEBUG"}.
        silenced_loggers: Loggers to muzzle, typically third-party ones.

    Returns:
        logging.Logger: The configured `websketch_ir` logger.
    """
    if general_level is None:
        general_level = config_manager.get_nested("debug.level", "WARNING")

    tqdm_aware_handler = LogWithTqdm()
    tqdm_aware_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    ))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(_to_level(general_level, logging.WARNING))
    for handler in [h for h in package_logger.handlers if isinstance(h, LogWithTqdm)]:
        package_logger.removeHandler(handler)
    package_logger.addHandler(tqdm_aware_handler)
    package_logger.propagate = False

    if module_specific_levels:
        for name, level in module_specific_levels.items():
            logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    # Muzzle noisy loggers by setting their level high.
    if silenced_loggers:
        for name, level in silenced_loggers.items():
            logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))

    logger.debug("Logging configured for %s at %s.", PACKAGE_LOGGER, logging.getLevelName(package_logger.level))
    return package_logger
