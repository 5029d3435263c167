# ristosync/paths.py
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
CONFIG_FILE = BASE_DIR / "config.json"
TEMPLATES_DIR = BASE_DIR / "templates"
