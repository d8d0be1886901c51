# services/trf_encoder.py
"""
LISEC TRF export for the cutting optimizer.

Fixed-width, space padded, CRLF terminated records (<REL>, <ORD>, <POS>, <TXT>, <SHP>, <GL1>). The
optimizer parses by column, so widths and the constant blocks must not move.
"""
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from services.errors import ValidationError
from services.refs import field, is_resolved, ref_id

logger = logging.getLogger(__name__)

CRLF = "\r\n"
REL_VERSION = "02.11"
COMPANY_NAME = "ABNOOS JAM KARAJ"
DEFAULT_CUSTOMER_NUMBER = "CUST001"
DEFAULT_CUSTOMER_NAME = "Unknown"

# AddDimension (mm) applied to non standard sizes
ADD_DIMENSION_MM = 1
# Standard sheet sizes (mm)
STANDARD_SIZES = frozenset({
    1100, 1125, 1250, 1605, 1800, 1900, 2000, 2100, 2200, 2250, 2400, 2500, 2600,
    3000, 3180, 3195, 3200, 3210,
})
# index 0 unused; 1..7 are the legacy colour names (Saturday first)
DAY_COLOR_ARRAY = (
    "",
    "SATURDAY",
    "SUNDAY",
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
)


class ExportKind(str, Enum):
    NORMAL = "NORMAL"
    OJRATI = "OJRATI"
    WATERJET = "WATERJET"


BUMP_KINDS = frozenset({ExportKind.NORMAL, ExportKind.WATERJET})


@dataclass(frozen=True)
class TrfDocument:
    content: str
    file_name: str
    layer_count: int
    generated_at: datetime


# ==================================================
# Helpers
# ==================================================

def pad_right(value: Optional[str], width: int) -> str:
    v = value or ""
    if len(v) >= width:
        return v[:width]
    return v + " " * (width - len(v))


def _fmt_number(d: Decimal) -> str:
    if d == d.to_integral_value():
        return str(int(d))
    return format(d.normalize(), "f")


def safe_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Decimal, float)):
        try:
            return _fmt_number(Decimal(str(value)))
        except InvalidOperation:
            return str(value)
    return str(value).replace("\r", " ").replace("\n", " ")


def _num(value: Any, fallback: int = 0) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(fallback)
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(fallback)
    return d if d.is_finite() else Decimal(fallback)


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def weekday_color(d: datetime) -> Tuple[str, str]:
    """
    Weekday -> (two digit colour id, colour name).

    Day index is Sunday=0..Saturday=6; Sunday maps to 2, every other day to
    index+1, so ids run 02..07 and 01 is never produced.
    """
    js = (d.weekday() + 1) % 7
    dw = 2 if js == 0 else js + 1
    return str(dw).zfill(2), DAY_COLOR_ARRAY[dw]


def adjust_dim_to_n10(kind: ExportKind, mm: Any) -> str:
    """Bump non standard sizes by ADD_DIMENSION_MM (not for OJRATI), then x10."""
    v = _num(mm)
    if kind in BUMP_KINDS and v not in STANDARD_SIZES:
        v = v + ADD_DIMENSION_MM
    return _fmt_number(v * 10)


def has_treatment_code(layer: Any, code: str) -> bool:
    needle = code.upper()
    for t in field(layer, "treatments", None) or []:
        treatment = field(t, "treatment")
        if not is_resolved(treatment):
            continue
        if safe_str(field(treatment, "code")).upper() == needle:
            return True
        if safe_str(field(treatment, "name")).upper() == needle:
            return True
    return False


def layer_kind(layer: Any) -> ExportKind:
    if has_treatment_code(layer, ExportKind.WATERJET.value):
        return ExportKind.WATERJET
    if has_treatment_code(layer, ExportKind.OJRATI.value):
        return ExportKind.OJRATI
    return ExportKind.NORMAL


def group_key(layer: Any, now: datetime) -> str:
    invoice = field(layer, "invoice")
    code = safe_str(field(invoice, "code")) if is_resolved(invoice) else ""
    if code:
        return code
    inv_id = ref_id(invoice)
    if inv_id:
        return inv_id
    product = safe_str(ref_id(field(layer, "product")))
    d = to_datetime(field(layer, "production_date")) or now
    return f"grp-{product}-{d:%Y%m%d}"


def group_by_invoice(layers: Sequence[Any], now: datetime) -> Dict[str, List[Any]]:
    groups: Dict[str, List[Any]] = {}
    for layer in layers:
        key = group_key(layer, now)
        logger.debug("layer %s -> group %s", field(layer, "production_code"), key)
        groups.setdefault(key, []).append(layer)
    return groups


def _customer(first: Any) -> Tuple[str, str]:
    invoice = field(first, "invoice")
    customer = field(invoice, "customer") if is_resolved(invoice) else None
    if is_resolved(customer):
        num = safe_str(field(customer, "code")) or safe_str(ref_id(customer))
        name = safe_str(field(customer, "en_name")) or safe_str(field(customer, "name"))
    else:
        num, name = safe_str(customer), ""
    return num or DEFAULT_CUSTOMER_NUMBER, name or DEFAULT_CUSTOMER_NAME


def _design_text(layer: Any) -> str:
    dn = field(layer, "design_number")
    return safe_str(field(dn, "code")) if is_resolved(dn) else safe_str(dn)


def trf_file_name(now: datetime) -> str:
    return f"LISEC-{now:%Y%m%d-%H%M%S}-{now.microsecond // 1000:03d}.TRF"


# ==================================================
# Records
# ==================================================

def _ord_line(order_layers: List[Any], now: datetime) -> str:
    first = order_layers[0]
    ord_no = safe_str(field(first, "production_code"))
    cust_num, cust_name = _customer(first)
    text1 = _design_text(first)

    # group text: OR over every layer in the order
    if any(has_treatment_code(l, "WATERJET") for l in order_layers):
        text2 = "WATERJET"
    elif any(has_treatment_code(l, "OJRATI") for l in order_layers):
        text2 = "OJRATI"
    else:
        text2 = ""

    base = to_datetime(field(first, "production_date")) or now
    color_id, color_name = weekday_color(base)
    prd_date = f"{color_id}/01/2009"
    del_date = f"{color_id}/01/2009"

    return (
        f"<ORD> {pad_right(ord_no, 10)} {pad_right(cust_num, 10)} {pad_right(cust_name, 40)}"
        f" {pad_right(text1, 40)} {pad_right(text2, 40)} {pad_right('', 40)}"
        f" {pad_right('', 40)} {pad_right('', 40)} {pad_right(prd_date, 10)}"
        f" {pad_right(del_date, 10)} {pad_right(color_name, 40)}{CRLF}"
    )


def _layer_lines(layer: Any, item_num: str) -> str:
    glass = field(layer, "glass")
    glass_loaded = is_resolved(glass)
    id_num = (safe_str(field(glass, "code")) if glass_loaded else "") or "ID"
    qty = safe_str(field(layer, "qty", 1))

    kind = layer_kind(layer)
    width10 = adjust_dim_to_n10(kind, field(layer, "width"))
    height10 = adjust_dim_to_n10(kind, field(layer, "height"))
    thickness = safe_str(field(glass, "thickness")) if glass_loaded else ""
    glass1 = thickness or "110"

    out = (
        f"<POS> {pad_right(item_num, 5)} {pad_right(id_num, 8)} 0000 {pad_right(qty, 5)}"
        f" {pad_right(width10, 5)} {pad_right(height10, 5)} {pad_right(glass1, 5)}"
        f"                     000 00 00 00 0 0 00000 0{CRLF}"
    )

    code = safe_str(field(layer, "production_code"))
    texts = [f"{item_num}-{code}", "", COMPANY_NAME, "", "", "", code, "", "", ""]
    out += "<TXT> " + " ".join(pad_right(t, 40) for t in texts) + CRLF

    if field(layer, "design_number"):
        out += f"<SHP> {pad_right(item_num, 5)} {pad_right(width10, 5)} {pad_right(height10, 5)} 0{CRLF}"

    if glass is not None and glass != "":
        glass_name = (safe_str(field(glass, "name")) if glass_loaded else "") or "FLOAT"
        out += f"<GL1> {pad_right(glass_name, 20)} {pad_right(thickness or '10', 5)} 0{CRLF}"

    return out


# ==================================================
# MAIN GENERATOR
# ==================================================

def encode(layers: Sequence[Any], now: Optional[datetime] = None) -> TrfDocument:
    """
    Encode ``layers`` (ORM rows or dict snapshots) into one TRF document.

    Only an empty / non-list input raises; missing glass, invoice or
    treatments fall back to placeholder values. ``now`` drives the file name
    and stands in for missing production dates, so freezing it makes the
    output fully reproducible.
    """
    if not isinstance(layers, (list, tuple)) or len(layers) == 0:
        raise ValidationError("No layers provided or invalid data format")

    now = now or datetime.now()
    groups = group_by_invoice(layers, now)
    logger.info("TRF: %s layers in %s orders", len(layers), len(groups))

    parts = [f"<REL> {REL_VERSION}{CRLF}"]
    for order_layers in groups.values():
        order_layers = sorted(order_layers, key=lambda l: safe_str(field(l, "production_code")))
        parts.append(_ord_line(order_layers, now))
        for idx, layer in enumerate(order_layers):
            parts.append(_layer_lines(layer, str(idx + 1)))

    return TrfDocument(
        content="".join(parts),
        file_name=trf_file_name(now),
        layer_count=len(layers),
        generated_at=now,
    )


def write_trf(doc: TrfDocument, export_dir: str, log_path: Optional[str] = None) -> Path:
    """Write the document (bytes as-is, CRLF kept) and append a generation log line."""
    target_dir = Path(export_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / doc.file_name
    path.write_bytes(doc.content.encode("utf-8"))
    logger.info("TRF: wrote %s chars to %s", len(doc.content), path)

    if log_path:
        try:
            log_file = Path(log_path)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps({
                "at": datetime.now().isoformat(),
                "fileName": doc.file_name,
                "count": doc.layer_count,
            })
            with log_file.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError:
            logger.exception("TRF: generation log append failed (%s)", log_path)

    return path
