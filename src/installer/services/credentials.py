"""File-backed credential store.

Stores secrets in a JSON vault readable only by the owning user. Encrypting
the vault is the job of a dedicated store; anything satisfying
CredentialStoreProtocol can be injected in its place.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from installer.errors import NotFoundError
from installer.models.checkpoint import utc_now
from installer.services.durable_writer import DurableWriter


class FileCredentialStore:
    def __init__(self, vault_path: Path, writer: Optional[DurableWriter] = None):
        self.logger = logging.getLogger("installer.credentials")
        self.vault_path = Path(vault_path)
        self.writer = writer or DurableWriter()

    async def store(self, service: str, key: str, value: str) -> None:
        """Create or overwrite one secret.

        Raises:
            ValueError: If service or key is empty
            WriteError, LockError: If the vault cannot be persisted
        """
        if not service or not key:
            raise ValueError("service and key must be non-empty")

        vault = await self._load()
        vault[f"{service}/{key}"] = {
            "service": service,
            "key": key,
            "value": value,
            "updatedAt": utc_now().isoformat(),
        }
        await self.writer.write(self.vault_path, json.dumps(vault, indent=2) + "\n")
        self._restrict_permissions()
        self.logger.info(f"Stored credential {service}/{key}")

    async def get(self, service: str, key: str) -> Optional[str]:
        entry = (await self._load()).get(f"{service}/{key}")
        return entry["value"] if entry else None

    async def list_entries(self) -> list[dict]:
        """List stored credentials without their values."""
        return [
            {"service": e["service"], "key": e["key"], "updatedAt": e.get("updatedAt")}
            for e in (await self._load()).values()
        ]

    async def _load(self) -> dict:
        try:
            raw = await self.writer.read(self.vault_path)
        except NotFoundError:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Credential vault {self.vault_path} is not a JSON object")
        return data

    def _restrict_permissions(self) -> None:
        try:
            os.chmod(self.vault_path, 0o600)
        except OSError as e:
            self.logger.warning(f"Could not restrict vault permissions: {e}")
