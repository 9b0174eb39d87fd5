"""
File storage for per-ticket artifacts.

Three artifacts exist for each ticket, all stored flat under one root
directory and referenced elsewhere only by name:

- <ticket>.log          raw uploaded log bytes
- <ticket>.meta.json    FileMetadata as JSON
- <ticket>.result.json  GcAnalyzedData as JSON
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, BinaryIO

from gc_common.errors import InvalidArgumentError
from gc_common.models import FileMetadata, GcAnalyzedData

logger = logging.getLogger(__name__)


class ArtifactStorage:
    """Reads and writes ticket artifacts in a local directory."""

    def __init__(self, root_dir: str | Path = "gc_artifacts"):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def log_name(ticket: int) -> str:
        return f"{ticket}.log"

    @staticmethod
    def meta_name(ticket: int) -> str:
        return f"{ticket}.meta.json"

    @staticmethod
    def result_name(ticket: int) -> str:
        return f"{ticket}.result.json"

    def path_for(self, name: str) -> Path:
        """
        Resolve an artifact name to its path.

        Raises:
            InvalidArgumentError: If the name is not a plain file name
        """
        if not name or name != os.path.basename(name) or name in (".", ".."):
            raise InvalidArgumentError(f"Invalid artifact name: {name!r}")
        return self.root_dir / name

    def open_log(self, ticket: int) -> tuple[str, BinaryIO]:
        """
        Open the raw log artifact for writing, truncating any previous content.

        Returns:
            Tuple of (artifact name, binary file handle). The caller closes it.
        """
        name = self.log_name(ticket)
        return name, open(self.path_for(name), "wb")

    def read_log(self, name: str) -> bytes:
        return self.path_for(name).read_bytes()

    def write_meta(self, meta: FileMetadata) -> str:
        name = self.meta_name(meta.ticket)
        self._write_json(name, meta.to_dict())
        return name

    def read_meta(self, name: str) -> FileMetadata:
        return FileMetadata.from_dict(self._read_json(name))

    def write_result(self, ticket: int, data: GcAnalyzedData) -> str:
        name = self.result_name(ticket)
        self._write_json(name, data.to_dict())
        return name

    def read_result(self, name: str) -> GcAnalyzedData:
        return GcAnalyzedData.from_dict(self._read_json(name))

    def delete(self, ticket: int) -> None:
        """Remove every artifact of the ticket that exists."""
        for name in (
            self.log_name(ticket),
            self.meta_name(ticket),
            self.result_name(ticket),
        ):
            self.path_for(name).unlink(missing_ok=True)

    def _write_json(self, name: str, payload: dict[str, Any]) -> None:
        # Readers never observe a half-written file
        target = self.path_for(name)
        fd, tmp_path = tempfile.mkstemp(dir=self.root_dir, prefix=f".{name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, target)
        except Exception:
            Path(tmp_path).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote artifact {target}")

    def _read_json(self, name: str) -> dict[str, Any]:
        with open(self.path_for(name), encoding="utf-8") as f:
            return json.load(f)
