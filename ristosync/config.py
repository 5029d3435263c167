# ristosync/config.py
from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional

from .models import Category, Department
from .paths import CONFIG_FILE

log = logging.getLogger(__name__)

DEFAULT_DESTINATIONS: Dict[str, str] = {
    Category.MENU_COMPLETO.value: Department.CUCINA.value,
    Category.ANTIPASTI.value: Department.CUCINA.value,
    Category.PANINI.value: Department.PUB.value,
    Category.PIZZE.value: Department.PIZZERIA.value,
    Category.PRIMI.value: Department.CUCINA.value,
    Category.SECONDI.value: Department.CUCINA.value,
    Category.DOLCI.value: Department.CUCINA.value,
    Category.BEVANDE.value: Department.SALA.value,
}


@dataclass
class DepartmentSettings:
    category_destinations: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_DESTINATIONS))
    default_department: str = Department.CUCINA.value
    # stampa automatica comanda per reparto (chiave extra "Cassa" ammessa)
    print_enabled: Dict[str, bool] = field(default_factory=dict)
    # i piatti di questi reparti nascono già "completati" (es. bibite servite dalla sala)
    auto_complete_departments: List[str] = field(default_factory=lambda: [Department.SALA.value])

    def destination_for(self, category, override=None) -> Department:
        """Override del piatto > destinazione della categoria > reparto di default."""
        if override:
            return Department(getattr(override, "value", override))
        key = getattr(category, "value", category)
        dest = self.category_destinations.get(key)
        if dest:
            try:
                return Department(dest)
            except ValueError:
                log.warning("Reparto sconosciuto '%s' per categoria %s: uso il default", dest, key)
        return Department(self.default_department)

    def prints_for(self, department) -> bool:
        return bool(self.print_enabled.get(getattr(department, "value", department), False))


@dataclass
class PrinterConfig:
    enabled: bool = False
    backend: str = "network"  # per ora solo network
    host: str = "127.0.0.1"
    port: int = 9100
    restaurant_name: str = "Ristorante"
    logo: str = ""  # percorso immagine per [[LOGO]], vuoto = niente logo


@dataclass
class BackupConfig:
    enabled: bool = False
    url: str = ""
    timeout: float = 5.0
    api_key: str = ""


@dataclass
class EngineConfig:
    linger_minutes: float = 5.0
    delay_warning_minutes: float = 15.0
    delay_critical_minutes: float = 25.0
    tick_seconds: float = 30.0
    toast_seconds: float = 5.0
    table_count: int = 12


@dataclass
class VoiceConfig:
    language: str = "it-IT"
    keywords: List[str] = field(default_factory=lambda: ["pronto", "fatto", "via", "completa"])
    restart_delay: float = 0.3


@dataclass
class AppConfig:
    # ⚠️ Usare default_factory per oggetti mutabili
    departments: DepartmentSettings = field(default_factory=DepartmentSettings)
    printer: PrinterConfig = field(default_factory=PrinterConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)


def _merge(dst: dict, src: dict) -> dict:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = _merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def _pick(cls, data: dict):
    # ignora chiavi sconosciute nel file
    names = cls.__dataclass_fields__.keys()
    return cls(**{k: v for k, v in (data or {}).items() if k in names})


def config_from_dict(data: dict) -> AppConfig:
    base = asdict(AppConfig())
    data = _merge(base, data or {})
    d = data["departments"]
    return AppConfig(
        departments=DepartmentSettings(
            category_destinations={str(k): str(v) for k, v in d.get("category_destinations", {}).items()},
            default_department=str(d.get("default_department", Department.CUCINA.value)),
            print_enabled={str(k): bool(v) for k, v in d.get("print_enabled", {}).items()},
            auto_complete_departments=[str(x) for x in d.get("auto_complete_departments", [])],
        ),
        printer=_pick(PrinterConfig, data["printer"]),
        backup=_pick(BackupConfig, data["backup"]),
        engine=_pick(EngineConfig, data["engine"]),
        voice=_pick(VoiceConfig, data["voice"]),
    )


def load_config(path: Optional[Path] = None) -> AppConfig:
    path = path or CONFIG_FILE
    file_data: dict = {}
    if path.exists():
        try:
            file_data = json.loads(path.read_text(encoding="utf-8")) or {}
        except Exception:
            # file malformato → mantieni default
            log.warning("config.json malformato: uso i valori di default")
            file_data = {}
    return config_from_dict(file_data)


def save_config(cfg: AppConfig, path: Optional[Path] = None) -> None:
    path = path or CONFIG_FILE
    path.write_text(json.dumps(asdict(cfg), indent=2, ensure_ascii=False), encoding="utf-8")


# istanza singleton caricata a import
CONFIG = load_config()
