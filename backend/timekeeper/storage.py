"""Where the snapshot document lives between runs."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy.engine import Engine

from .config import Settings
from .database import AppSetting, Base, create_session_factory, create_sqlite_engine, db_session
from .schemas import SnapshotDocument

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def load(self) -> Optional[SnapshotDocument]:
        ...

    def save(self, document: SnapshotDocument) -> None:
        ...


class JsonSnapshotStore:
    """Keeps the document as a single JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[SnapshotDocument]:
        if not self.path.exists():
            return None
        text = self.path.read_text(encoding="utf-8")
        return SnapshotDocument.model_validate_json(text)

    def save(self, document: SnapshotDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SqliteSnapshotStore:
    """Keeps the document as key/value rows in the ``app_settings`` table."""

    def __init__(self, path: Optional[Path] = None, *, engine: Optional[Engine] = None) -> None:
        if engine is None and path is None:
            raise ValueError("Either a database path or an engine is required")
        self.path = Path(path) if path is not None else None
        self._engine = engine
        self._session_factory = None

    def _factory(self):
        if self._session_factory is None:
            if self._engine is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._engine = create_sqlite_engine(self.path)
            Base.metadata.create_all(bind=self._engine)
            self._session_factory = create_session_factory(self._engine)
        return self._session_factory

    def load(self) -> Optional[SnapshotDocument]:
        with db_session(self._factory()) as session:
            records = session.query(AppSetting).all()
            raw = {record.key: record.value for record in records}
        if not raw:
            return None
        decoded: Dict[str, object] = {}
        if "tag_names" in raw:
            try:
                decoded["tag_names"] = json.loads(raw["tag_names"])
            except json.JSONDecodeError:
                logger.warning("Stored tag names are not valid JSON, ignoring them")
        if raw.get("minute_rounding_scale"):
            decoded["minute_rounding_scale"] = raw["minute_rounding_scale"]
        for key in ("is_rounding_on", "is_dark_mode"):
            if key in raw:
                decoded[key] = raw[key].lower() == "true"
        try:
            return SnapshotDocument.model_validate(decoded)
        except ValidationError:
            logger.warning("Stored settings could not be decoded, starting from defaults")
            return None

    def save(self, document: SnapshotDocument) -> None:
        values = {
            "tag_names": json.dumps(document.tag_names),
            "minute_rounding_scale": str(document.minute_rounding_scale),
            "is_rounding_on": "true" if document.is_rounding_on else "false",
            "is_dark_mode": "true" if document.is_dark_mode else "false",
        }
        with db_session(self._factory()) as session:
            for key, value in values.items():
                record = session.query(AppSetting).filter(AppSetting.key == key).one_or_none()
                if record:
                    record.value = value
                else:
                    session.add(AppSetting(key=key, value=value))


def build_store(config: Settings) -> SnapshotStore:
    if config.storage_backend == "json":
        return JsonSnapshotStore(config.json_path)
    return SqliteSnapshotStore(config.sqlite_path)


__all__ = ["JsonSnapshotStore", "SnapshotStore", "SqliteSnapshotStore", "build_store"]
