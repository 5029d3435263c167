# ristosync/runtime.py
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .backup import BackupWorker, build_backup
from .board import TableMonitor, TicketBoard
from .catalog import MenuCatalog
from .config import AppConfig, CONFIG
from .db import create_db_and_tables, engine as default_engine, seed_if_empty
from .models import Department, now_ms
from .notifications import EventType, FanOutSink, LogSink, Notice, dispatch
from .orders import OrderService
from .paths import CONFIG_FILE
from .printing import TicketPrinter
from .queue_sort import QueueSortStore
from .receipts.printing_service import print_text
from .routing import DepartmentRouter
from .settings import SettingsProvider
from .state_machine import OrderStateMachine
from .store import OrderStore
from .sync import SyncCoordinator
from .voice import ListenerSupervisor, QueueSpeechSource, VoiceCommandInterpreter, supervise

log = logging.getLogger(__name__)


class Runtime:
    """Tutti i pezzi del motore collegati fra loro, uno per processo."""

    def __init__(self, engine=None, config: Optional[AppConfig] = None, backup=None,
                 printer_sender=print_text, clock=now_ms, persist_path: Optional[Path] = None) -> None:
        self.engine = engine if engine is not None else default_engine
        self.config = config or CONFIG
        if persist_path is None and config is None:
            # config di processo: le modifiche dal pannello admin finiscono in config.json
            persist_path = CONFIG_FILE
        self.clock = clock

        self.settings = SettingsProvider(self.config, persist_path=persist_path)
        self.catalog = MenuCatalog(self.engine)
        self.router = DepartmentRouter(self.settings, self.catalog)
        self.machine = OrderStateMachine(self.router, clock)
        self.store = OrderStore(self.engine)
        self.sink = FanOutSink([LogSink()])
        self.worker = BackupWorker(backup if backup is not None else build_backup(self.config.backup))
        self.coordinator = SyncCoordinator(self.store, self.worker, on_notice=self._backup_notice)
        self.service = OrderService(self.coordinator, self.machine)
        self.printer = TicketPrinter(self.config.printer, self.router, sender=printer_sender)
        self.sort_store = QueueSortStore(self.engine)

        eng = self.config.engine
        self.boards: Dict[Department, TicketBoard] = {
            d: TicketBoard(d, self.coordinator, self.router, cfg=eng, sink=self.sink,
                           printer=self.printer, sort_store=self.sort_store, clock=clock)
            for d in Department
        }
        self.waiter = TicketBoard(None, self.coordinator, self.router, cfg=eng, sink=self.sink, clock=clock)
        self.monitor = TableMonitor(self.coordinator, cfg=eng, sink=self.sink, clock=clock)
        self.voice: Dict[Department, VoiceCommandInterpreter] = {
            d: VoiceCommandInterpreter(d, self.service, self.router, sink=self.sink,
                                       keywords=self.config.voice.keywords)
            for d in Department
        }
        self.listeners: Dict[Department, Tuple[QueueSpeechSource, ListenerSupervisor]] = {}
        self._unsub_settings = None

    @property
    def views(self) -> List:
        return [*self.boards.values(), self.waiter, self.monitor]

    def _backup_notice(self, text: str) -> None:
        dispatch(self.sink, Notice(EventType.BACKUP_FAILED, text))

    def _settings_changed(self) -> None:
        # reparti cambiati: le viste rileggono e ridisegnano
        for view in self.views:
            view._on_store_change()

    def setup(self) -> None:
        create_db_and_tables(self.engine)
        seed_if_empty(self.engine)

    async def start(self) -> None:
        self.worker.start()
        for view in self.views:
            await view.start()
        self._unsub_settings = self.settings.subscribe(self._settings_changed)
        log.info("RistoSync avviato (%d reparti)", len(self.boards))

    async def stop(self) -> None:
        if self._unsub_settings is not None:
            self._unsub_settings()
            self._unsub_settings = None
        for _, sup in list(self.listeners.values()):
            await sup.stop()
        self.listeners.clear()
        for view in self.views:
            await view.stop()
        self.worker.stop()

    # --- microfono per reparto ------------------------------------------------------

    def listener(self, department: Department) -> Tuple[QueueSpeechSource, ListenerSupervisor]:
        if department not in self.listeners:
            source = QueueSpeechSource()
            sup = supervise(self.voice[department], source, restart_delay=self.config.voice.restart_delay)
            self.listeners[department] = (source, sup)
        return self.listeners[department]

    async def toggle_listening(self, department: Department, enabled: bool) -> ListenerSupervisor:
        source, sup = self.listener(department)
        if enabled and not sup.enabled:
            sup.start()
            dispatch(self.sink, Notice(EventType.VOICE_ACK, "In ascolto... (Es: 'Tavolo 4 Pronto')",
                                       department=department.value))
        elif not enabled and sup.enabled:
            await sup.stop()
            # la sorgente chiusa non va riusata
            del self.listeners[department]
            dispatch(self.sink, Notice(EventType.VOICE_ACK, "Comandi Vocali Disattivati",
                                       department=department.value))
        await asyncio.sleep(0)
        return sup
