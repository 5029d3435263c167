# ristosync/receipts/printing_service.py
from __future__ import annotations
import logging
import os
from typing import Any, Dict, Tuple

from jinja2 import Environment, FileSystemLoader
from escpos.printer import Network
from PIL import Image

from ..paths import TEMPLATES_DIR

log = logging.getLogger(__name__)

# ========= Debug =========
DEBUG = os.environ.get("PRINT_DEBUG", "").strip() in ("1", "true", "TRUE", "yes", "on")
if DEBUG:
    log.setLevel(logging.DEBUG)

# ========= Connect =========
def _connect(host: str, port: int, timeout: int = 5):
    log.debug("Connessione stampante %s:%s ...", host, port)
    # timeout breve: una stampante spenta non deve bloccare la comanda
    return Network(host, port, timeout=timeout)

# ========= Template =========
_ENV = Environment(loader=FileSystemLoader(str(TEMPLATES_DIR)), autoescape=False,
                   trim_blocks=True, lstrip_blocks=True)

def render_template(name: str, ctx: Dict[str, Any]) -> str:
    return _ENV.get_template(name).render(**ctx)

# ========= Logo =========
def logo_raster(path: str, max_w: int = 384, threshold: int = 200) -> Tuple[int, int, bytes]:
    """Immagine → raster 1 bit per GS v 0. Ritorna (byte per riga, righe, dati)."""
    img = Image.open(path)
    if img.mode in ("RGBA", "LA"):
        base = Image.new("RGB", img.size, (255, 255, 255))
        base.paste(img, mask=img.split()[-1])
        img = base
    if img.width > max_w:
        img = img.resize((max_w, int(img.height * max_w / float(img.width))))
    img = img.convert("L").point(lambda x: 0 if x < threshold else 255, mode="1")

    w, h = img.width, img.height
    w_bytes = (w + 7) // 8
    px = img.load()
    out = bytearray(w_bytes * h)
    for y in range(h):
        for x in range(w):
            if px[x, y] == 0:  # nero
                out[y * w_bytes + x // 8] |= 0x80 >> (x % 8)
    return w_bytes, h, bytes(out)

def _print_logo(p, path: str) -> None:
    if not os.path.exists(path):
        log.warning("Logo non trovato: %s", path)
        return
    w_bytes, h, data = logo_raster(path)
    p.set(align="center")
    p._raw(bytes([0x1D, 0x76, 0x30, 0x00, w_bytes & 0xFF, w_bytes >> 8, h & 0xFF, h >> 8]) + data)
    p.text("\n")

# ========= Tag support =========
# [[C]] [[L]] [[B]] [[BIG]] [[NORM]] [[BR]] [[CUT]] [[LOGO:/path]]
def _apply_tags(p, line: str, style: dict) -> str:
    while line.startswith("[["):
        end = line.find("]]")
        if end == -1:
            break
        tag = line[2:end].strip()
        line = line[end + 2:].lstrip()
        up = tag.upper()
        if up == "C":
            style["align"] = "center"
        elif up == "L":
            style["align"] = "left"
        elif up == "B":
            style["bold"] = True
        elif up == "BIG":
            style.update(width=2, height=2, bold=True)
        elif up == "NORM":
            style.update(align="left", width=1, height=1, bold=False)
        elif up == "BR":
            p.text("\n")
        elif up == "CUT":
            p.text("\n\n")
            p.cut()
        elif up.startswith("LOGO:"):
            _print_logo(p, tag.split(":", 1)[1].strip())
        else:
            log.debug("Tag sconosciuto ignorato: %s", tag)
    return line

def print_text(host: str, port: int, text: str, do_cut: bool = True) -> None:
    """Invia il testo (con tag di stile) alla stampante ESC/POS di rete.

    Gli errori di connessione/invio salgono al chiamante.
    """
    p = _connect(host, port)
    try:
        for raw in text.splitlines():
            style = dict(align="left", width=1, height=1, bold=False)
            line = _apply_tags(p, raw.rstrip("\r"), style)
            p.set(align=style["align"], bold=style["bold"],
                  custom_size=style["width"] > 1, width=style["width"], height=style["height"])
            if line:
                p.text(line + "\n")
        if do_cut:
            p.text("\n\n")  # feed prima del taglio
            p.cut()
    finally:
        try:
            p.close()
        except Exception:
            log.debug("Chiusura stampante fallita", exc_info=True)
