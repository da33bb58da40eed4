"""OpenClaw configuration file management."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from installer.errors import NotFoundError
from installer.services.durable_writer import DurableWriter


class ConfigValidationError(ValueError):
    """Config on disk or after merge is not a JSON object."""


def deep_merge(base: dict, partial: dict) -> dict:
    """Recursively merge ``partial`` over ``base`` without mutating either."""
    merged = dict(base)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigCompiler:
    """Reads and applies the OpenClaw JSON config.

    ``apply`` pipeline: merge → validate → back up current file → durable write.
    """

    def __init__(
        self,
        config_path: Path,
        history_dir: Path,
        writer: Optional[DurableWriter] = None,
        max_backups: int = 10,
    ):
        """Initialize config compiler.

        Args:
            config_path: Location of openclaw.json
            history_dir: Directory for timestamped backups
            writer: DurableWriter instance (creates one if None)
            max_backups: Number of backups kept in history_dir
        """
        self.logger = logging.getLogger("installer.config")
        self.config_path = Path(config_path)
        self.history_dir = Path(history_dir)
        self.writer = writer or DurableWriter()
        self.max_backups = max_backups

    async def get_current_config(self) -> Optional[dict]:
        """Load the current config.

        Returns:
            Parsed config, or None if no config file exists

        Raises:
            ConfigValidationError: If the file is not a JSON object
            ReadError: If the file cannot be read
        """
        try:
            raw = await self.writer.read(self.config_path)
        except NotFoundError:
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid config JSON in {self.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError(f"Config in {self.config_path} must be a JSON object")
        return data

    async def apply(self, partial_config: dict) -> dict:
        """Merge ``partial_config`` into the current config and persist it.

        Args:
            partial_config: Keys to set (nested dicts are merged)

        Returns:
            The full config that was written

        Raises:
            ConfigValidationError: If the input or current config is invalid
            WriteError, LockError: If persisting fails
        """
        if not isinstance(partial_config, dict):
            raise ConfigValidationError("Partial config must be a mapping")

        current = await self.get_current_config()
        merged = deep_merge(current or {}, partial_config)

        if current is not None:
            if merged == current:
                self.logger.info("Config unchanged, nothing to apply")
                return current
            await self._backup(current)

        await self.writer.write(self.config_path, json.dumps(merged, indent=2) + "\n")
        self.logger.info(f"Applied OpenClaw configuration to {self.config_path}")
        return merged

    async def _backup(self, config: dict) -> Path:
        """Write a timestamped copy of the current config into history_dir."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_path = self.history_dir / f"openclaw.{timestamp}.json"
        await self.writer.write(backup_path, json.dumps(config, indent=2) + "\n")
        self.logger.info(f"Backed up current config to {backup_path}")
        self._prune_backups()
        return backup_path

    def _prune_backups(self) -> None:
        backups = sorted(self.history_dir.glob("openclaw.*.json"))
        for stale in backups[: max(0, len(backups) - self.max_backups)]:
            stale.unlink(missing_ok=True)
            self.logger.debug(f"Pruned old config backup {stale.name}")
