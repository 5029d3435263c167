# ristosync/backup.py
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import BackupConfig
from .models import Order

log = logging.getLogger(__name__)


@dataclass
class BackupResult:
    order_id: str
    ok: bool
    error: Optional[str] = None

    @property
    def notice(self) -> Optional[str]:
        """Messaggio da mostrare come avviso temporaneo (None se tutto ok)."""
        if self.ok:
            return None
        return f"Backup cloud non riuscito ({self.error}): i dati restano salvati in locale"


class RemoteBackup:
    """Copia di sicurezza remota: POST JSON dell'ordine. Nessun retry automatico."""

    def __init__(self, cfg: BackupConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.cfg = cfg
        self._transport = transport

    async def save(self, order: Order) -> None:
        headers = {"Content-Type": "application/json"}
        if self.cfg.api_key:
            headers["Authorization"] = f"Bearer {self.cfg.api_key}"
        async with httpx.AsyncClient(timeout=self.cfg.timeout, transport=self._transport) as client:
            resp = await client.post(
                self.cfg.url.rstrip("/") + "/orders",
                json=order.model_dump(mode="json"),
                headers=headers,
            )
            resp.raise_for_status()


class NullBackup:
    """Backup disattivato."""

    async def save(self, order: Order) -> None:
        return None


def build_backup(cfg: BackupConfig):
    if cfg.enabled and cfg.url:
        return RemoteBackup(cfg)
    return NullBackup()


class BackupWorker:
    """Event loop dedicato in un thread: il backup non blocca mai chi scrive.

    `submit` funziona sia da codice sincrono che dentro l'event loop
    dell'applicazione e restituisce un concurrent Future con il BackupResult.
    """

    def __init__(self, backup) -> None:
        self.backup = backup
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._loop.run_forever, name="ristosync-backup", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._lock:
            if self._loop is None:
                return
            self._loop.call_soon_threadsafe(self._loop.stop)
            if self._thread is not None:
                self._thread.join(timeout=5)
            if self._thread is not None and self._thread.is_alive():
                # richiesta bloccata: il loop si chiuderà da solo a fine run_forever
                log.warning("Backup worker non terminato entro 5s, loop lasciato aperto")
            else:
                self._loop.close()
            self._loop = None
            self._thread = None

    async def _run(self, order: Order) -> BackupResult:
        try:
            await self.backup.save(order)
            return BackupResult(order_id=order.id, ok=True)
        except Exception as e:
            log.warning("Backup remoto ordine %s fallito: %r", order.id, e)
            return BackupResult(order_id=order.id, ok=False, error=str(e)[:300] or e.__class__.__name__)

    def submit(self, order: Order) -> "concurrent.futures.Future[BackupResult]":
        self.start()
        return asyncio.run_coroutine_threadsafe(self._run(order), self._loop)
