"""
SLA Infrastructure Repositories
=================================

File-backed implementations of the persistence ports.

- YAMLConfigStore: the SLA alert configuration record
- JSONAlertStore: the set of acknowledged alert ids

Both stores are best-effort: unreadable files degrade to defaults/empty,
and failed writes are logged without raising.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import yaml
from filelock import FileLock, Timeout

from sla_alerts.core import ConfigCorruptException, PersistenceWriteException
from sla_alerts.shared.infrastructure.logging import get_logger
from sla_alerts.sla.application import IAlertStore, IConfigStore
from sla_alerts.sla.domain import SLAConfig

logger = get_logger(__name__)


def _atomic_write(path: Path, content: str) -> None:
    """
    Replace ``path`` with ``content`` in one step.

    Raises:
        PersistenceWriteException: if any filesystem operation fails
    """
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceWriteException(path, str(e)) from e


class YAMLConfigStore(IConfigStore):
    """
    SLA alert configuration persisted as a YAML mapping.

    Partial records are merged over the defaults.
    """

    def __init__(self, config_path: Union[str, Path]):
        self._path = Path(config_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SLAConfig:
        """Load configuration, falling back to defaults when unusable."""
        if not self._path.exists():
            logger.info(f"SLA config file not found: {self._path}, using defaults")
            return SLAConfig()

        try:
            return self._read()
        except ConfigCorruptException as e:
            logger.warning(f"{e.message}; using defaults", extra=e.details)
            return SLAConfig()

    def _read(self) -> SLAConfig:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigCorruptException(self._path, str(e)) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigCorruptException(self._path, "expected a mapping")

        try:
            return SLAConfig().merged(data, ignore_unknown=True)
        except ValueError as e:
            raise ConfigCorruptException(self._path, str(e)) from e

    def save(self, config: SLAConfig) -> bool:
        """Persist configuration. Returns False (and logs) on failure."""
        content = yaml.safe_dump(config.to_record(), sort_keys=False)
        try:
            _atomic_write(self._path, content)
        except PersistenceWriteException as e:
            logger.warning(e.message, extra=e.details)
            return False

        logger.info("SLA config saved", extra={"path": str(self._path)})
        return True


class JSONAlertStore(IAlertStore):
    """
    Acknowledged alert ids persisted as a JSON list.

    Merges and writes happen under a sidecar lock file
    (``<name>.lock``), so engines in other threads or processes that
    share the file are serialized against this one. Writes re-read and
    merge the file first; nothing acknowledged elsewhere is dropped.
    """

    LOCK_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        path: Union[str, Path],
        retention: Optional[int] = None
    ):
        self._path = Path(path)
        self._retention = retention
        self._lock = threading.Lock()
        self._file_lock = FileLock(
            str(self._path.with_name(self._path.name + ".lock")),
            timeout=self.LOCK_TIMEOUT_SECONDS,
        )
        self._dirty = False
        # dict as an insertion-ordered set
        self._ids: Dict[str, None] = dict.fromkeys(self._read())

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> List[str]:
        if not self._path.exists():
            return []

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(
                "Acknowledged alerts file unreadable, treating as empty",
                extra={"path": str(self._path), "error": str(e)}
            )
            return []

        if not isinstance(data, list):
            logger.warning(
                "Acknowledged alerts file is not a list, treating as empty",
                extra={"path": str(self._path)}
            )
            return []

        return [item for item in data if isinstance(item, str)]

    def _merge_from_disk(self) -> None:
        """Disk order first, then ids only this instance knows about."""
        merged = dict.fromkeys(self._read())
        for alert_id in self._ids:
            merged.setdefault(alert_id, None)
        self._ids = merged

    def _apply_retention(self) -> None:
        if self._retention is None:
            return
        overflow = len(self._ids) - self._retention
        for alert_id in list(self._ids)[:max(overflow, 0)]:
            del self._ids[alert_id]

    def _flush(self) -> None:
        try:
            _atomic_write(self._path, json.dumps(list(self._ids)))
            self._dirty = False
        except PersistenceWriteException as e:
            self._dirty = True
            logger.warning(e.message, extra=e.details)

    def is_acknowledged(self, alert_id: str) -> bool:
        """Check memory first, then the file (other instances may have written)."""
        with self._lock:
            if alert_id in self._ids:
                return True
            if not self._path.exists():
                return False
            try:
                with self._file_lock:
                    self._merge_from_disk()
            except (Timeout, OSError) as e:
                logger.warning(
                    "Could not lock acknowledged alerts file",
                    extra={"path": str(self._path), "error": str(e)}
                )
            return alert_id in self._ids

    def acknowledge(self, alert_id: str) -> None:
        """Acknowledge one alert id (idempotent, never raises)."""
        self.acknowledge_all([alert_id])

    def acknowledge_all(self, alert_ids: Iterable[str]) -> None:
        """Acknowledge several alert ids (idempotent, never raises)."""
        alert_ids = list(alert_ids)
        with self._lock:
            added = [a for a in dict.fromkeys(alert_ids) if a not in self._ids]
            for alert_id in added:
                self._ids[alert_id] = None

            if added or self._dirty:
                self._sync()

        if added:
            logger.info("Alerts acknowledged", extra={"count": len(added)})

    def _sync(self) -> None:
        """Merge with the file and write back, holding the file lock."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._file_lock:
                self._merge_from_disk()
                self._apply_retention()
                self._flush()
        except (Timeout, OSError) as e:
            self._apply_retention()
            self._dirty = True
            logger.warning(
                "Could not lock acknowledged alerts file",
                extra={"path": str(self._path), "error": str(e)}
            )

    def acknowledged_ids(self) -> List[str]:
        """Snapshot of acknowledged ids, oldest first."""
        with self._lock:
            return list(self._ids)

    def clear(self) -> None:
        """Forget every acknowledgment."""
        with self._lock:
            self._ids.clear()
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._file_lock:
                    self._flush()
            except (Timeout, OSError) as e:
                self._dirty = True
                logger.warning(
                    "Could not lock acknowledged alerts file",
                    extra={"path": str(self._path), "error": str(e)}
                )
