"""
Local snapshot cache: one JSON file per key (normally the username).
"""
import json
import logging
import os
import re
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class LocalCache:
    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key) or "_"
        return os.path.join(self.directory, f"foampro_state_{safe}.json")

    def read(self, key: str) -> Optional[Dict[str, Any]]:
        """The cached snapshot, or None when missing or unreadable."""
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring malformed cache file %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed cache file %s: not an object", path)
            return None
        return data

    def write(self, key: str, snapshot: Dict[str, Any]):
        """Write atomically so a crash mid-write never leaves half a file."""
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(snapshot, f, default=str)
        os.replace(tmp_path, path)
