from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from loguru import logger

from .config import default_home


class LocalStorage:
    """String key/value store kept in one JSON file.

    Every write rewrites the file before returning, so a value set by the
    panel survives a restart even if the process is killed right after.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else default_home() / "storage.json"
        self._items: Dict[str, str] = {}
        self._load()

    # ------------------------------------------------------------------ utils
    def _load(self) -> None:
        self._items = {}
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("storage file {} unreadable, starting empty: {}", self.path, exc)
            return
        if not isinstance(raw, dict):
            logger.warning("storage file {} is not an object, starting empty", self.path)
            return
        self._items = {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in raw.items()}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._items, ensure_ascii=False, indent=2, sort_keys=True),
            encoding="utf-8",
        )

    # ------------------------------------------------------------------ api
    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: Any) -> None:
        self._items[key] = str(value)
        self._write()

    def remove_item(self, key: str) -> None:
        if self._items.pop(key, None) is not None:
            self._write()

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self._items.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("stored value for {} is not valid JSON, ignored", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
