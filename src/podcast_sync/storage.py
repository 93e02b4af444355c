"""
File layer under the data directory.

Every write goes through a temporary sibling file and os.replace(), so a
crash never leaves a half-written subscriptions document or media file.
Methods report failure through their return value and log the cause.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, IO, Optional


class Storage:
    """Reads and writes files below base_dir."""

    def __init__(self, base_dir: str = "./data"):
        """Initialize with the data directory."""
        self.base_dir = base_dir
        self.logger = logging.getLogger(__name__)

    def ensure_directory(self, path: str) -> None:
        """Create path and its parents when missing."""
        os.makedirs(path, exist_ok=True)

    def file_exists(self, path: str) -> bool:
        """True when path names an existing regular file."""
        return bool(path) and os.path.isfile(path)

    def join_path(self, *parts: str) -> str:
        """Join path parts with the platform separator."""
        return os.path.join(*parts)

    def read_json(self, path: str) -> Optional[Dict[str, Any]]:
        """Load a JSON object; None when missing, malformed or not a dict."""
        if not self.file_exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (ValueError, OSError) as e:
            self.logger.error("Could not read %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            self.logger.error("Expected a JSON object in %s", path)
            return None
        return data

    def write_json(self, path: str, data: Dict[str, Any]) -> bool:
        """Store data as indented UTF-8 JSON."""

        def dump(f: IO[Any]) -> None:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return self._replace(path, "w", dump)

    def read_bytes(self, path: str) -> Optional[bytes]:
        """File content, or None when it cannot be read."""
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError:
            return None

    def write_bytes(self, path: str, data: bytes) -> bool:
        """Store raw bytes."""
        return self._replace(path, "wb", lambda f: f.write(data))

    def delete_file(self, path: str) -> bool:
        """Remove a file; a file that is already gone counts as removed."""
        try:
            os.remove(path)
        except FileNotFoundError:
            self.logger.debug("Nothing to delete at %s", path)
        except OSError as e:
            self.logger.error("Could not delete %s: %s", path, e)
            return False
        return True

    def _replace(
        self, path: str, mode: str, write: Callable[[IO[Any]], Any]
    ) -> bool:
        temp_path = f"{path}.tmp"
        encoding = None if "b" in mode else "utf-8"
        try:
            parent = os.path.dirname(path)
            if parent:
                self.ensure_directory(parent)
            with open(temp_path, mode, encoding=encoding) as f:
                write(f)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Could not write %s: %s", path, e)
            if os.path.exists(temp_path):
                os.remove(temp_path)
            return False
        return True
