# src/services/message_formatter.py

"""User-facing message texts (Telegram HTML)."""

from datetime import datetime
from html import escape

from src.models.status_record import StatusRecord
from src.models.stock_status import StockStatus

GENERIC_PRODUCT_LABEL = "Product"

_TS_FORMAT = "%d %b %Y, %I:%M %p"

_STATUS_ICONS: dict[StockStatus, str] = {
    StockStatus.IN_STOCK: "🟢",
    StockStatus.OUT_OF_STOCK: "🔴",
    StockStatus.UNKNOWN: "⚪",
}


def format_timestamp(ts: datetime | None) -> str:
    """Render a timestamp for humans; ``None`` becomes ``-``."""
    return ts.strftime(_TS_FORMAT) if ts else "-"


def display_name(product_name: str | None) -> str:
    """Scraped product name, or the generic label when it is missing."""
    name = (product_name or "").strip()
    return name or GENERIC_PRODUCT_LABEL


def greeting() -> str:
    return (
        "👋 <b>Stock watcher</b>\n\n"
        "I check a product page every few minutes and tell you when "
        "it can be ordered for your pincode.\n\n"
        "/track – watch a product\n"
        "/status – last check result\n"
        "/stop – stop watching"
    )


def ask_product_ref(host: str) -> str:
    return f"🔗 Send the product link from <b>{escape(host)}</b>."


def invalid_product_ref(reason: str, host: str) -> str:
    return (
        f"❌ {escape(reason)}.\n"
        f"Please send a product link from <b>{escape(host)}</b>."
    )


def ask_postal_code() -> str:
    return "📮 Now send your 6-digit delivery pincode."


def invalid_postal_code(reason: str) -> str:
    return f"❌ {escape(reason)}. Please send a 6-digit pincode."


def tracking_started(
    product_url: str, pincode: str, interval_seconds: int,
) -> str:
    minutes = max(1, round(interval_seconds / 60))
    return (
        "✅ <b>Tracking started</b>\n"
        f"Product: {escape(product_url)}\n"
        f"Pincode: <code>{escape(pincode)}</code>\n"
        f"I'll check every {minutes} min and message you when "
        "availability changes. Running the first check now…"
    )


def status_change(
    status: StockStatus,
    product_name: str,
    product_url: str,
    pincode: str,
) -> str:
    name = escape(display_name(product_name))
    if status is StockStatus.IN_STOCK:
        headline = f"🟢 <b>{name}</b> is <b>IN STOCK</b>!"
    else:
        headline = f"🔴 <b>{name}</b> is <b>out of stock</b>."
    return (
        f"{headline}\n"
        f"Pincode: <code>{escape(pincode)}</code>\n"
        f"{escape(product_url)}"
    )


def probe_failed(product_url: str, pincode: str, error: str) -> str:
    return (
        "⚠️ Could not check availability right now.\n"
        f"Pincode: <code>{escape(pincode)}</code>\n"
        f"{escape(product_url)}\n"
        f"<i>{escape(error)}</i>\n"
        "I'll try again at the next check."
    )


def stopped() -> str:
    return "🛑 Tracking stopped. Send /track to start again."


def nothing_to_stop() -> str:
    return "ℹ️ Nothing to stop: you are not tracking any product."


def no_status() -> str:
    return "ℹ️ No status yet. Send /track to start watching a product."


def status_report(record: StatusRecord) -> str:
    """Render a stored record as a status report."""
    icon = _STATUS_ICONS.get(record.current_status, "⚪")
    last_available = (
        format_timestamp(record.last_available)
        if record.last_available
        else "not seen in stock since tracking started"
    )
    return (
        f"📦 <b>{escape(display_name(record.product_name))}</b>\n"
        f"Pincode: <code>{escape(record.pincode)}</code>\n"
        f"Status: {icon} {escape(record.current_status.value)}\n"
        f"Tracking since: {format_timestamp(record.tracking_started)}\n"
        f"Last checked: {format_timestamp(record.last_checked)}\n"
        f"Last available: {escape(last_available)}\n"
        f"{escape(record.product_url)}"
    )
