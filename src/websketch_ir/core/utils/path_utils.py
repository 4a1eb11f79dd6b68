# src/websketch_ir/core/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving the package's data paths.
    """

    @staticmethod
    def get_package_root() -> Path:
        """
        Returns the absolute path of the installed 'websketch_ir' package.
        (e.g., /path/to/site-packages/websketch_ir)
        """
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_settings_file() -> Path:
        """Returns the path to the packaged settings.json."""
        return PathUtils.get_package_root() / "settings.json"
