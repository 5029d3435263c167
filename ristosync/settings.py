# ristosync/settings.py
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, List, Optional

from .config import AppConfig, CONFIG, DepartmentSettings, save_config

log = logging.getLogger(__name__)

Listener = Callable[[], None]


class SettingsProvider:
    """Impostazioni reparti in sola lettura per il motore.

    Vengono modificate altrove (pannello admin) tramite `update`, che
    notifica gli iscritti senza payload: chi ascolta rilegge `get_settings()`.
    """

    def __init__(self, config: Optional[AppConfig] = None, persist_path: Optional[Path] = None) -> None:
        self._config = config or CONFIG
        self._persist_path = persist_path
        self._listeners: List[Listener] = []
        self._lock = threading.RLock()

    @property
    def config(self) -> AppConfig:
        return self._config

    def get_settings(self) -> DepartmentSettings:
        return self._config.departments

    def update(self, **changes) -> DepartmentSettings:
        with self._lock:
            current = self._config.departments
            merged = dict(changes)
            if "category_destinations" in merged:
                merged["category_destinations"] = {**current.category_destinations, **merged["category_destinations"]}
            if "print_enabled" in merged:
                merged["print_enabled"] = {**current.print_enabled, **merged["print_enabled"]}
            self._config = replace(self._config, departments=replace(current, **merged))
            if self._persist_path is not None:
                save_config(self._config, self._persist_path)
        self._notify()
        return self._config.departments

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log.exception("Listener impostazioni fallito")
