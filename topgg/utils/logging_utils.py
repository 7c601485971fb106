import logging
import logging.config
from pathlib import Path
from typing import Optional

import yaml

from ..config.settings import get_settings


def setup_logging(config_path: Optional[Path] = None, log_level: Optional[str] = None) -> None:
    """
    Set up logging configuration from a YAML file.

    Args:
        config_path (Path): Path to the logging configuration YAML file.
            Defaults to ``LOGGING_CONFIG_PATH`` from settings.
        log_level (str): Override for the ``topgg`` logger level.
    """
    settings = get_settings()
    path = Path(config_path or settings.LOGGING_CONFIG_PATH)
    level = (log_level or settings.LOG_LEVEL).upper()

    if path.exists():
        try:
            with open(path, 'rt', encoding='utf-8') as f:
                log_config = yaml.safe_load(f.read())
            logging.config.dictConfig(log_config)
            logging.getLogger("topgg").setLevel(level)
            logging.getLogger(__name__).debug(f"Logging configured from {path}")
            return
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            logging.basicConfig(level=level)
            logging.error(f"Error loading logging configuration from {path}: {e}. Using basicConfig.")
            return

    logging.basicConfig(level=level)
    logging.warning(f"Logging configuration file not found at {path}. Using basicConfig.")
