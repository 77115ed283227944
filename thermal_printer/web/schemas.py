from __future__ import annotations

"""
Pydantic schemas for the print service HTTP API.

These models validate incoming print sessions at the boundary; the queue
engine receives plain dicts produced by ``content_payload``. Field names on
the wire are camelCase (``sessionId``, ``qrCode``, ``columnWidths``).
Limits are applied via the validation context passed at runtime, allowing
env-driven constraints without circular imports.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

Align = Literal["left", "center", "right"]
ContentType = Literal[
    "text",
    "image",
    "table",
    "barcode",
    "qr-code",
    "pdf",
    "cut",
    "beep",
    "cash-drawer",
    "line",
    "new-line",
]


def _has_control_chars(s: str) -> bool:
    return any((ord(c) < 32 and c not in "\n\r\t") or ord(c) == 127 for c in s)


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TextStyle(_Model):
    """Text formatting applied to a single text item."""
    bold: Optional[bool] = None
    underline: Optional[bool] = None
    invert: Optional[bool] = None
    align: Optional[Align] = None
    width: Optional[int] = Field(default=None, ge=1, le=8, description="Character width multiplier")
    height: Optional[int] = Field(default=None, ge=1, le=8, description="Character height multiplier")


class QrCode(_Model):
    value: str = Field(min_length=1, description="Data encoded in the QR code")
    size: Optional[int] = Field(default=None, ge=1, le=16, description="Module size (default 6)")
    align: Optional[Align] = None
    width: Optional[int] = Field(default=None, ge=1)
    height: Optional[int] = Field(default=None, ge=1)


class TableRow(_Model):
    cells: List[str]


class Table(_Model):
    headers: Optional[List[str]] = None
    rows: List[TableRow] = Field(min_length=1)
    column_widths: Optional[List[int]] = Field(
        default=None,
        alias="columnWidths",
        description="Column widths in characters; split evenly when omitted or too wide",
    )
    alignments: Optional[List[Align]] = None
    separator: Optional[str] = Field(default=None, max_length=3)


class ContentItem(_Model):
    """One printable element; required fields depend on ``type``."""
    type: ContentType
    value: Optional[str] = None
    path: Optional[str] = None
    style: Optional[TextStyle] = None
    table: Optional[Table] = None
    qr_code: Optional[QrCode] = Field(default=None, alias="qrCode")
    symbology: Optional[str] = Field(default=None, max_length=20)
    pages: Optional[List[int]] = Field(default=None, description="1-based PDF pages to print")

    @field_validator("value")
    @classmethod
    def _value_rules(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        if v is None:
            return v
        limits = (info.context or {}).get("limits", {})
        max_len = int(limits.get("MAX_VALUE_LEN", 10 * 1024 * 1024))
        if len(v) > max_len:
            raise ValueError(f"value too long (max {max_len})")
        return v

    @field_validator("pages")
    @classmethod
    def _pages_positive(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(p < 1 for p in v):
            raise ValueError("pages are 1-based")
        return v

    @model_validator(mode="after")
    def _type_requirements(self) -> "ContentItem":
        t = self.type
        if t == "text":
            if self.value is None:
                raise ValueError("text item requires value")
            if _has_control_chars(self.value):
                raise ValueError("control characters not allowed")
        elif t == "barcode":
            if not self.value:
                raise ValueError("barcode item requires value")
        elif t in ("image", "pdf"):
            if not (self.path or self.value):
                raise ValueError(f"{t} item requires path or value")
        elif t == "table":
            if self.table is None:
                raise ValueError("table item requires table")
        elif t == "qr-code":
            if self.qr_code is None and not self.value:
                raise ValueError("qr-code item requires qrCode.value or value")
        return self


class PrintSessionRequest(_Model):
    """Request to queue a print session."""
    session_id: Optional[str] = Field(default=None, alias="sessionId", description="Generated when omitted")
    printer_id: Optional[str] = Field(default=None, alias="printerId", description="First configured printer when omitted")
    content: List[ContentItem] = Field(min_length=1)
    priority: Optional[int] = Field(default=None, ge=1, le=3, description="1 = high, 2 = normal, 3 = low")

    @field_validator("content")
    @classmethod
    def _content_rules(cls, v: List[ContentItem], info: ValidationInfo) -> List[ContentItem]:
        limits = (info.context or {}).get("limits", {})
        max_items = int(limits.get("MAX_CONTENT_ITEMS", 200))
        if len(v) > max_items:
            raise ValueError(f"too many content items (max {max_items})")
        return v

    def content_payload(self) -> List[Dict[str, Any]]:
        return [item.model_dump(by_alias=True, exclude_none=True) for item in self.content]


class CancelJobRequest(_Model):
    reason: Optional[str] = Field(default=None, max_length=200)

    @field_validator("reason")
    @classmethod
    def _trim(cls, v: Optional[str]) -> Optional[str]:
        return (v or "").strip() or None


class PrintSessionResponse(_Model):
    """Response when a print session is accepted."""
    session_id: str = Field(alias="sessionId")
    printer_id: str = Field(alias="printerId")
    printer_name: str = Field(alias="printerName")
    status: str
    queue_position: int = Field(alias="queuePosition")
    estimated_wait_time: int = Field(alias="estimatedWaitTime", description="Seconds")
    created_at: str = Field(alias="createdAt")


class PrinterRecord(BaseModel):
    """One printer entry; settings beyond ``id`` are passed through as given."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1, max_length=64)
    name: Optional[str] = None
    connection_type: Optional[Literal["network", "usb", "serial"]] = Field(default=None, alias="connectionType")


class PrinterConfigRequest(_Model):
    """Replacement printer configuration."""
    printers: List[PrinterRecord]
    default_settings: Optional[Dict[str, Any]] = Field(default=None, alias="defaultSettings")

    @field_validator("printers")
    @classmethod
    def _unique_ids(cls, v: List[PrinterRecord]) -> List[PrinterRecord]:
        ids = [p.id for p in v]
        if len(ids) != len(set(ids)):
            raise ValueError("printer ids must be unique")
        return v

    def to_config(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"printers": [p.model_dump(by_alias=True, exclude_none=True) for p in self.printers]}
        if self.default_settings is not None:
            data["defaultSettings"] = self.default_settings
        return data
