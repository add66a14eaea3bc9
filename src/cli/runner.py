# src/cli/runner.py

"""Process bootstrap for the bot service and the one-shot probe."""

import asyncio
import json
import logging
import sys

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from rich.console import Console
from rich.table import Table

from src.config.settings import Settings
from src.core.errors import ProbeError, ValidationError
from src.filters.subscription_validator import SubscriptionValidator
from src.models.availability_verdict import AvailabilityVerdict
from src.scrapers.availability_prober import AvailabilityProber
from src.scrapers.page_fetcher import PageFetcher
from src.services.command_router import CommandRouter
from src.services.liveness import build_server
from src.services.notifier import TelegramNotifier
from src.services.subscription_manager import SubscriptionManager
from src.storage.status_store import StatusStore
from src.ui.telegram_bot import TelegramFrontend, build_application

logger = logging.getLogger("stockwatch.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def build_fetcher(kind: str | None = None) -> PageFetcher:
    """Instantiate the page fetcher named by *kind* (``browser``/``html``)."""
    name = (kind or Settings.PAGE_FETCHER).strip().lower()
    if name == "html":
        from src.scrapers.html_fetcher import HtmlPageFetcher

        return HtmlPageFetcher()
    if name != "browser":
        logger.warning("Unknown PAGE_FETCHER %r, using browser", name)
    from src.scrapers.browser_fetcher import PlaywrightPageFetcher

    return PlaywrightPageFetcher()


def _verdict_to_dict(
    product_url: str, pincode: str, verdict: AvailabilityVerdict,
) -> dict[str, object]:
    return {
        "productUrl": product_url,
        "pincode": pincode,
        "productName": verdict.product_name,
        "available": verdict.available,
        "soldOut": verdict.sold_out,
        "notifyMe": verdict.notify_me,
        "purchaseEnabled": verdict.purchase_enabled,
    }


def _print_table(
    product_url: str, pincode: str, verdict: AvailabilityVerdict,
) -> None:
    """Render a Rich table of the verdict and its signals."""
    table = Table(
        title="Availability",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Product", verdict.product_name or "-")
    table.add_row("URL", product_url)
    table.add_row("Pincode", pincode)
    table.add_row(
        "Available",
        "[green]yes[/green]" if verdict.available else "[red]no[/red]",
    )
    table.add_row("Sold-out alert", str(verdict.sold_out))
    table.add_row("Notify-me block", str(verdict.notify_me))
    table.add_row("Purchase enabled", str(verdict.purchase_enabled))
    Console().print(table)


async def run_single_probe(
    product_url: str,
    pincode: str,
    output_format: str = "json",
    fetcher: PageFetcher | None = None,
) -> int:
    """Probe once and print the verdict (0=ok, 1=probe failed, 2=bad input)."""
    try:
        pincode = SubscriptionValidator.validate_postal_code(pincode)
        product_url = SubscriptionValidator.validate_product_ref(product_url)
    except ValidationError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 2

    fetcher = fetcher or build_fetcher()
    prober = AvailabilityProber(fetcher)
    _err.print(
        f"[bold]Probing:[/bold] {product_url}  [dim]pincode={pincode}[/dim]"
    )
    try:
        verdict = await prober.probe(product_url, pincode)
    except ProbeError as exc:
        logger.error("One-shot probe failed: %s", exc)
        _err.print(f"[red]Probe failed: {exc}[/red]")
        return 1
    finally:
        await fetcher.shutdown()

    if output_format == "table":
        _print_table(product_url, pincode, verdict)
    else:
        json.dump(
            _verdict_to_dict(product_url, pincode, verdict),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
    return 0


async def _ensure_default_watch(manager: SubscriptionManager) -> None:
    """Watch DEFAULT_PRODUCT_URL for CHAT_ID when all three are configured."""
    settings = Settings()
    if not (
        settings.CHAT_ID
        and settings.DEFAULT_PRODUCT_URL
        and settings.DEFAULT_PINCODE
    ):
        return
    existing = manager.get(settings.CHAT_ID)
    if existing is not None and existing.is_tracking:
        logger.info("Default watch for %s already restored", settings.CHAT_ID)
        return
    try:
        await manager.subscribe(
            settings.CHAT_ID,
            settings.DEFAULT_PRODUCT_URL,
            settings.DEFAULT_PINCODE,
        )
    except ValidationError as exc:
        logger.error("Default watch not started: %s", exc)


def _log_task_failure(task: asyncio.Task[None]) -> None:
    """Done-callback that logs the exception of a failed background task."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Background task %s failed: %s", task.get_name(), exc,
            exc_info=exc,
        )


async def run_service() -> int:
    """Run the bot, the poll scheduler and the liveness endpoint."""
    settings = Settings()
    if not settings.BOT_TOKEN:
        logger.critical("BOT_TOKEN is not set")
        _err.print("[red]BOT_TOKEN is not set (environment or .env)[/red]")
        return 1

    application = build_application(settings.BOT_TOKEN)
    notifier = TelegramNotifier(application.bot)
    fetcher = build_fetcher()
    scheduler = AsyncIOScheduler()
    manager = SubscriptionManager(
        prober=AvailabilityProber(fetcher),
        store=StatusStore(),
        notifier=notifier,
        scheduler=scheduler,
    )
    router = CommandRouter(manager, notifier)
    TelegramFrontend(router).setup_handlers(application)
    server = build_server()

    async with application:
        await application.start()
        if application.updater is not None:
            await application.updater.start_polling(
                drop_pending_updates=True,
            )
        scheduler.start()
        logger.info(
            "Service started (fetcher=%s, interval=%ds, port=%d)",
            settings.PAGE_FETCHER,
            settings.POLL_INTERVAL_SECONDS,
            settings.PORT,
        )
        default_watch: asyncio.Task[None] | None = None
        try:
            if settings.RESTORE_SUBSCRIPTIONS:
                await manager.restore_subscriptions()
            default_watch = asyncio.create_task(
                _ensure_default_watch(manager), name="default-watch",
            )
            default_watch.add_done_callback(_log_task_failure)
            await server.serve()
        finally:
            if default_watch is not None:
                default_watch.cancel()
            manager.shutdown()
            scheduler.shutdown(wait=False)
            if application.updater is not None:
                await application.updater.stop()
            await application.stop()
            await fetcher.shutdown()
            logger.info("stockwatch service stopped")
    return 0
