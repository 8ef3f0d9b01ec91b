"""Read-only YAML record stores for tasks, data sources and destinations.

The files are owned by the CRUD tooling; these stores load a snapshot once
and hand it to the engine.  A missing file is an empty store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from src.config import settings
from src.destinations.models import Destination, UnsupportedDestination, destination_from_dict
from src.errors import ConfigError, ConfigNotFound
from src.scheduler.database import DataSource
from src.scheduler.models import Task

logger = logging.getLogger(__name__)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        logger.debug("%s not found, starting empty", path)
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        msg = f"{path}: invalid YAML: {exc}"
        raise ConfigError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping at the top level"
        raise ConfigError(msg)
    return data


class TaskStore:
    """Task records keyed by name."""

    def __init__(self, tasks: dict[str, Task] | None = None) -> None:
        self._tasks = dict(tasks or {})

    @classmethod
    def load(cls, path: Path | None = None) -> TaskStore:
        path = path or settings.tasks_path
        records = _read_yaml(path)
        tasks = {name: Task.from_dict(name, data or {}) for name, data in records.items()}
        logger.info("Loaded %d task(s) from %s", len(tasks), path)
        return cls(tasks)

    def list(self) -> list[Task]:
        """Return all tasks, sorted by name."""
        return [self._tasks[name] for name in sorted(self._tasks)]

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise ConfigNotFound("task", name) from None


class DataSourceRegistry:
    """Database credentials keyed by name. Never logs passwords."""

    def __init__(self, sources: dict[str, DataSource] | None = None) -> None:
        self._sources = dict(sources or {})

    @classmethod
    def load(cls, path: Path | None = None) -> DataSourceRegistry:
        path = path or settings.databases_path
        records = _read_yaml(path).get("databases") or {}
        sources: dict[str, DataSource] = {}
        for name, data in records.items():
            try:
                sources[name] = DataSource.from_dict(data or {})
            except (TypeError, ValueError) as exc:
                msg = f"database {name!r}: {exc}"
                raise ConfigError(msg) from exc
        logger.info("Loaded %d database(s) from %s", len(sources), path)
        return cls(sources)

    def names(self) -> list[str]:
        return sorted(self._sources)

    def get(self, name: str) -> DataSource:
        try:
            return self._sources[name]
        except KeyError:
            raise ConfigNotFound("database configuration", name) from None


class DestinationStore:
    """Destination records keyed by name."""

    def __init__(self, destinations: dict[str, Destination] | None = None) -> None:
        self._destinations = dict(destinations or {})

    @classmethod
    def load(cls, path: Path | None = None) -> DestinationStore:
        path = path or settings.destinations_path
        destinations: dict[str, Destination] = {}
        for name, data in _read_yaml(path).items():
            try:
                destination = destination_from_dict(name, data or {})
            except ConfigError as exc:
                logger.warning("Skipping destination %r: %s", name, exc)
                continue
            if isinstance(destination, UnsupportedDestination):
                logger.warning(
                    "Destination %r has unsupported type %r; deliveries to it will fail",
                    name,
                    destination.kind,
                )
            destinations[name] = destination
        logger.info("Loaded %d destination(s) from %s", len(destinations), path)
        return cls(destinations)

    def list(self) -> list[str]:
        return sorted(self._destinations)

    def get(self, name: str) -> Destination:
        try:
            return self._destinations[name]
        except KeyError:
            raise ConfigNotFound("destination", name) from None
