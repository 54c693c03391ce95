# src/pagehealth/core/utils/configure_logging.py
import logging
import sys
from typing import Optional, Dict, Union

from tqdm import tqdm

LevelSpec = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    A logging handler that redirects output to `tqdm.write()`, so log lines
    do not tear the orchestrator's progress bar.
    """
    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _to_level(level: LevelSpec, default: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), default)
    return level


def configure_logger(
        general_level: LevelSpec = 'INFO',
        module_specific_levels: Optional[Dict[str, LevelSpec]] = None,
        silenced_loggers: Optional[Dict[str, LevelSpec]] = None
) -> None:
    """
    Configures the root logger and specific module loggers with a
    TQDM-friendly handler.
    """
    tqdm_aware_handler = LogWithTqdm()
    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    )
    tqdm_aware_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(_to_level(general_level, logging.INFO))

    # Replace whatever handlers a previous call (or the host app) installed
    root_logger.handlers.clear()
    root_logger.addHandler(tqdm_aware_handler)

    if module_specific_levels:
        for name, level in module_specific_levels.items():
            logging.getLogger(name).setLevel(_to_level(level, logging.INFO))

    # Muzzle noisy loggers (aiohttp access logs, charset detection) by raising their level
    if silenced_loggers:
        for name, level in silenced_loggers.items():
            logging.getLogger(name).setLevel(_to_level(level, logging.CRITICAL))


def configure_from_settings(logging_config: Optional[Dict]) -> None:
    """Applies the 'logging' section of settings.json."""
    logging_config = logging_config or {}
    configure_logger(
        general_level=logging_config.get("level", "INFO"),
        module_specific_levels=logging_config.get("modules"),
        silenced_loggers=logging_config.get("silenced"),
    )
