"""
Print execution against ESC/POS printers using python-escpos.

PrintExecutor turns a job's content items into python-escpos calls on a
Network, Usb or Serial printer built from the printer's configuration.
Failures are raised to the caller; the queue engine records them as failed
jobs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional, Tuple

from thermal_printer.core.config import PrinterConfigStore

from .errors import PrinterNotFoundError
from .jobs import PrintJob
from .render import format_table, load_image, mm_to_dots, prepare_image, rasterize_pdf

logger = logging.getLogger(__name__)

# python-escpos code page names for the configured character sets
CHARACTER_SETS: Dict[str, str] = {
    "PC437_USA": "CP437",
    "PC850_MULTILINGUAL": "CP850",
    "PC852_LATIN2": "CP852",
    "PC858_EURO": "CP858",
    "PC860_PORTUGUESE": "CP860",
    "PC863_CANADIAN_FRENCH": "CP863",
    "PC865_NORDIC": "CP865",
    "WPC1252": "CP1252",
}

ALIGNMENTS = ("left", "center", "right")
DEFAULT_QR_SIZE = 6


def _parse_network_address(address: str) -> Tuple[str, int]:
    address = address.replace("tcp://", "", 1)
    if ":" in address:
        host, port = address.rsplit(":", 1)
        return host, int(port)
    return address, 9100


def _parse_usb_address(address: str) -> Tuple[int, int]:
    try:
        vendor, product = address.split(":", 1)
        return int(vendor, 16), int(product, 16)
    except ValueError as e:
        raise RuntimeError(f"Invalid USB address {address!r}; expected 'vendor:product' in hex") from e


def connect_printer(config: Mapping[str, Any]):
    """
    Create and return an ESC/POS printer instance based on a printer record.
    Supports network ("host[:port]"), usb ("0x04b8:0x0e28") and serial
    (device path) connections with an optional python-escpos 'profile'.
    """
    profile = config.get("profile") or None
    kwargs: Dict[str, Any] = {"profile": profile} if profile else {}
    ctype = str(config.get("connectionType", "network")).lower()
    address = str(config.get("address", ""))
    timeout = float(config.get("timeout") or 5000) / 1000.0

    if ctype == "network":
        from escpos.printer import Network

        host, port = _parse_network_address(address)
        return Network(host, port=port, timeout=timeout, **kwargs)
    if ctype == "usb":
        from escpos.printer import Usb

        vendor, product = _parse_usb_address(address)
        return Usb(vendor, product, **kwargs)
    if ctype == "serial":
        from escpos.printer import Serial

        baud = int(str(config.get("baudrate", "19200")))
        return Serial(address, baudrate=baud, timeout=timeout, **kwargs)
    raise RuntimeError(f"Unsupported connection type: {ctype}")


class PrintExecutor:
    """Render job content and transmit it to the job's printer."""

    def __init__(self, config_store: PrinterConfigStore, connect=connect_printer):
        self.config_store = config_store
        self._connect = connect

    def _settings(self, printer_id: str) -> Dict[str, Any]:
        printer = self.config_store.get_printer_config(printer_id)
        if printer is None:
            raise PrinterNotFoundError(printer_id)
        merged = dict(self.config_store.get_default_settings())
        merged.update({k: v for k, v in printer.items() if v is not None})
        return merged

    def execute(self, job: PrintJob) -> None:
        settings = self._settings(job.printer_id)
        logger.info("Connecting to printer %s for job %s", job.printer_id, job.session_id)
        p = self._connect(settings)
        try:
            self._apply_character_set(p, settings.get("characterSet"))
            for index, item in enumerate(job.content, 1):
                self.render_item(p, item, settings, index=index)
        finally:
            try:
                p.close()
            except Exception as e:
                logger.debug(f"Printer close failed: {e}")
        logger.info("Job %s printed on %s (%d items)", job.session_id, job.printer_id, len(job.content))

    def test_connection(self, printer_id: str) -> Dict[str, Any]:
        """
        Open and close a connection to the printer.
        Returns {"connected": bool, "printer": name, "reason"?: str}.
        """
        settings = self._settings(printer_id)
        name = str(settings.get("name") or printer_id)
        try:
            p = self._connect(settings)
            p.open()
            try:
                p.close()
            except Exception:
                pass
            return {"connected": True, "printer": name}
        except Exception as e:
            logger.warning("Connection test for %s failed: %s", printer_id, e)
            return {"connected": False, "printer": name, "reason": f"printer_unreachable: {type(e).__name__}"}

    def _apply_character_set(self, p, character_set: Optional[str]) -> None:
        code = CHARACTER_SETS.get(str(character_set or ""))
        if not code:
            return
        try:
            p.charcode(code)
        except Exception as e:
            logger.warning(f"Character set {character_set} not applied: {e}")

    # ----- Content items ---------------------------------------------------

    def render_item(self, p, item: Mapping[str, Any], settings: Mapping[str, Any], index: int = 0) -> None:
        kind = item.get("type")
        handler = _HANDLERS.get(str(kind))
        if handler is None:
            logger.warning("Unsupported content type in item %d: %s", index, kind)
            return
        handler(self, p, item, settings)

    def _text(self, p, item, settings) -> None:
        value = item.get("value")
        if not value:
            return
        style = item.get("style") or {}
        opts: Dict[str, Any] = {}
        if style.get("align") in ALIGNMENTS:
            opts["align"] = style["align"]
        if style.get("bold"):
            opts["bold"] = True
        if style.get("underline"):
            opts["underline"] = 1
        if style.get("invert"):
            opts["invert"] = True
        if style.get("width") and style.get("height"):
            opts.update(custom_size=True, width=int(style["width"]), height=int(style["height"]))
        if opts:
            p.set(**opts)
        p.text(f"{value}\n")
        if opts:
            p.set(align="left", bold=False, underline=0, invert=False, normal_textsize=True)

    def _image(self, p, item, settings) -> None:
        source = item.get("path") or item.get("value")
        if not source:
            logger.warning("Image item without path")
            return
        max_width = mm_to_dots(settings.get("printableWidth") or 72)
        img = prepare_image(load_image(str(source)), max_width)
        p.image(img)
        logger.info("Image printed: %s", source)

    def _table(self, p, item, settings) -> None:
        table = item.get("table")
        if not table:
            return
        width = int(settings.get("charPerLine") or 48)
        headers = table.get("headers") or None
        rows = [r.get("cells", []) if isinstance(r, Mapping) else list(r) for r in table.get("rows") or []]
        lines = format_table(
            headers,
            rows,
            width=width,
            column_widths=table.get("columnWidths"),
            alignments=table.get("alignments"),
            separator=table.get("separator") or " ",
        )
        if headers:
            p.set(bold=True)
            p.text(lines[0] + "\n")
            p.set(bold=False)
            p.text("-" * width + "\n")
            lines = lines[1:]
        for line in lines:
            p.text(line + "\n")

    def _barcode(self, p, item, settings) -> None:
        value = item.get("value")
        if not value:
            return
        symbology = str(item.get("symbology") or "CODE128").upper()
        if symbology == "CODE128":
            code = value if str(value).startswith("{") else "{B" + str(value)
            p.barcode(code, "CODE128", function_type="B")
        else:
            p.barcode(str(value), symbology)

    def _qr(self, p, item, settings) -> None:
        qr = item.get("qrCode") or {"value": item.get("value")}
        value = qr.get("value")
        if not value:
            return
        align = qr.get("align") or "left"
        size = int(qr.get("size") or DEFAULT_QR_SIZE)
        if align == "right":
            p.set(align="right")
        p.qr(str(value), size=size, center=(align == "center"))
        if align == "right":
            p.set(align="left")

    def _pdf(self, p, item, settings) -> None:
        max_width = mm_to_dots(settings.get("printableWidth") or 72)
        count = 0
        for img in rasterize_pdf(path=item.get("path"), data=item.get("value"), max_width=max_width, pages=item.get("pages")):
            p.image(img)
            count += 1
        logger.info("PDF printed (%d pages)", count)

    def _line(self, p, item, settings) -> None:
        width = int(settings.get("charPerLine") or 48)
        p.text("-" * width + "\n")

    def _new_line(self, p, item, settings) -> None:
        p.text("\n")

    def _cut(self, p, item, settings) -> None:
        p.cut()

    def _beep(self, p, item, settings) -> None:
        p.buzzer()

    def _cash_drawer(self, p, item, settings) -> None:
        p.cashdraw(2)


_HANDLERS = {
    "text": PrintExecutor._text,
    "image": PrintExecutor._image,
    "table": PrintExecutor._table,
    "barcode": PrintExecutor._barcode,
    "qr-code": PrintExecutor._qr,
    "pdf": PrintExecutor._pdf,
    "line": PrintExecutor._line,
    "new-line": PrintExecutor._new_line,
    "cut": PrintExecutor._cut,
    "beep": PrintExecutor._beep,
    "cash-drawer": PrintExecutor._cash_drawer,
}


__all__ = ["CHARACTER_SETS", "PrintExecutor", "connect_printer"]
