"""
Serialization service for JSON documents written to and read from disk.
Manifests go through write_json_atomic so readers never see a half-written file.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Union


class SerializationService:
    """
    Handles JSON serialization with support for pretty and compact formats.
    """

    @staticmethod
    def serialize(data: Any, pretty: bool = False) -> str:
        """
        Serialize data to JSON string.

        Args:
            data: Data to serialize
            pretty: If True, use indent=2 (manifests on disk).
                   If False, use compact format (log previews).

        Returns:
            Serialized JSON string
        """
        if pretty:
            return json.dumps(data, indent=2, ensure_ascii=False)
        return json.dumps(data, ensure_ascii=False, separators=(',', ':'))

    @staticmethod
    def read_json(path: Union[str, Path]) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    @classmethod
    def write_json_atomic(cls, data: Any, path: Union[str, Path]) -> Path:
        """
        Write JSON to a temporary sibling file, fsync it, then rename it into place.

        Args:
            data: JSON-ready data
            path: Final destination

        Returns:
            The destination path
        """
        path = Path(path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(cls.serialize(data, pretty=True))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return path
