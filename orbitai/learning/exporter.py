import shutil
import logging
from pathlib import Path
from datetime import datetime

from orbitai.errors import ExportError
from orbitai.data.data_logger import format_timestamp

log = logging.getLogger(__name__)


def format_export_timestamp(timestamp_ms: int) -> str:
    """Formats epoch milliseconds as 'YYYY-MM-DD_HH-MM-SS' in local time."""
    return format_timestamp(datetime.fromtimestamp(timestamp_ms / 1000))


class Exporter:
    """
    Copies the learning process models and logs to the export directory,
    under a folder named after the time of the last processed data set.
    """

    def __init__(self, learning_dir_name: str = "learning", prefix: str = "mochi") -> None:
        self.learning_dir_name = learning_dir_name
        self.prefix = prefix

    def bundle_path(self, dest_root: Path, timestamp: str) -> Path:
        return Path(dest_root) / self.learning_dir_name / f"{self.prefix}-{timestamp}"

    def export(self, models_dir: Path, logs_dir: Path, dest_root: Path, timestamp: str) -> Path:
        """
        Copies both directories recursively into
        `dest_root/<learning>/<prefix>-<timestamp>/{models,logs}`.
        A failed copy is not rolled back.

        :param models_dir: The learning process models directory.
        :param logs_dir: The learning process logs directory.
        :param dest_root: Root of the export tree (the toGround/ directory).
        :param timestamp: Formatted time stamp naming the bundle.
        :return: The bundle directory.
        :raises ExportError: If a source directory is missing or a copy fails.
        """
        bundle = self.bundle_path(dest_root, timestamp)
        for source in (Path(models_dir), Path(logs_dir)):
            if not source.is_dir():
                log.error(f"Error exporting learning data, '{source}' is not a directory")
                raise ExportError(f"Source directory '{source}' does not exist")

        for source, target_name in ((Path(models_dir), "models"), (Path(logs_dir), "logs")):
            target = bundle / target_name
            try:
                shutil.copytree(source, target, dirs_exist_ok=True)
            except (shutil.Error, OSError) as e:
                log.error(f"Error exporting '{source}' to '{target}': {e}", exc_info=True)
                raise ExportError(f"Could not copy '{source}' to '{target}': {e}") from e

        log.info(f"Exported trained models and logs to '{bundle}'")
        return bundle
