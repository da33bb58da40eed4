"""Checkpoint store for the single persistent install-progress marker."""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from installer.errors import CheckpointCorruptError, NotFoundError
from installer.models.checkpoint import Checkpoint
from installer.models.steps import InstallStep
from installer.services.durable_writer import DurableWriter


class CheckpointStore:
    """Reads and overwrites the install checkpoint file.

    The checkpoint always reflects the most recently *attempted* step. It is
    written only by the install orchestrator.
    """

    def __init__(self, path: Path, version: str, writer: Optional[DurableWriter] = None):
        """Initialize checkpoint store.

        Args:
            path: Checkpoint file location
            version: OpenClaw version recorded in every checkpoint
            writer: DurableWriter instance (creates one if None)
        """
        self.logger = logging.getLogger("installer.checkpoint_store")
        self.path = Path(path)
        self.version = version
        self.writer = writer or DurableWriter()

    async def get_checkpoint(self) -> Optional[Checkpoint]:
        """Load the checkpoint.

        Returns:
            Checkpoint if the file exists and parses, None otherwise. A corrupt
            file is logged and treated as "start fresh".

        Raises:
            ReadError: If the file exists but cannot be read
        """
        try:
            raw = await self.writer.read(self.path)
        except NotFoundError:
            self.logger.debug("No checkpoint file found")
            return None

        try:
            checkpoint = self._parse(raw)
        except CheckpointCorruptError as e:
            self.logger.warning(f"{e}, starting fresh")
            return None

        self.logger.debug(
            f"Loaded checkpoint: step={checkpoint.step.value}, error={checkpoint.error}"
        )
        return checkpoint

    async def write_checkpoint(
        self, step: InstallStep, error: Optional[str] = None
    ) -> Checkpoint:
        """Overwrite the checkpoint with the given step attempt.

        Args:
            step: Step that was just attempted
            error: Failure message if the attempt failed

        Returns:
            The checkpoint that was written

        Raises:
            LockError, WriteError: Propagated from the durable writer
        """
        checkpoint = Checkpoint(step=step, version=self.version, error=error)
        await self.writer.write(
            self.path, json.dumps(checkpoint.to_json_dict(), indent=2) + "\n"
        )
        self.logger.info(
            f"Checkpoint written: step={step.value}"
            + (f", error={error}" if error else "")
        )
        return checkpoint

    def _parse(self, raw: str) -> Checkpoint:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CheckpointCorruptError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CheckpointCorruptError(f"{self.path} does not contain a JSON object")
        try:
            return Checkpoint.model_validate(data)
        except ValidationError as e:
            raise CheckpointCorruptError(
                f"{self.path} failed validation: {e.error_count()} error(s)"
            ) from e
