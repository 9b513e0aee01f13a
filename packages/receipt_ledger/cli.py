"""CLI for the ``receipt_ledger`` package.

Command handlers (``cmd_*``) take plain arguments, print to stdout/stderr and
return a process exit code; the Typer commands below only parse options and
delegate. Environment variables (``DATABASE_URL``, ``RECEIPT_LEDGER_*``) are
loaded from a local ``.env`` using ``python-dotenv`` before any command runs.

Commands
--------
- ``summary``: total spent, per-category and per-day/month totals
- ``list``: visible transactions, one tab-separated line each
- ``add``: save a manual expense
- ``edit <id>``: replace the editable fields of a transaction
- ``delete <id>``: remove a transaction
- ``scan <image>``: send a receipt image to the OCR workflow and save it
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from datetime import UTC, date, datetime, tzinfo
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .amounts import format_amount
from .categories import INCOME, OTHER
from .config import Settings, get_settings
from .dates import local_date
from .entry import ManualEntry, edit_form
from .errors import LedgerError
from .ledger import Ledger
from .live_query import LiveQuery
from .logging_setup import configure_logging
from .models import AggregateResult, Bucket, FilterSpec, SortOrder, Transaction
from .ocr import WebhookOcrClient, encode_image, scan_receipt

if TYPE_CHECKING:
    from db.store import SqlTransactionStore

# ---- Small module-level helpers used by CLI commands -------------------------


def _err(msg: str) -> int:
    print(f"Error: {msg}", file=sys.stderr)
    return 1


def _settings() -> Settings:
    return get_settings()


def _open_store(database_url: str | None) -> SqlTransactionStore:
    # Deferred import keeps ``--help`` free of SQLAlchemy start-up cost.
    from db.store import SqlTransactionStore

    return SqlTransactionStore(database_url or _settings().database_url)


def _parse_day(raw: str | None, name: str) -> date | None:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be YYYY-MM-DD, got {raw!r}") from e


def build_filters(
    *,
    start: str | None = None,
    end: str | None = None,
    categories: Sequence[str] = (),
    search: str = "",
    order: SortOrder = SortOrder.DATE_DESC,
    this_month: bool = False,
    today: date | None = None,
) -> FilterSpec:
    """Translate CLI options into a :class:`FilterSpec`.

    ``this_month`` gives the home-view default range and is overridden by an
    explicit ``start``/``end``.
    """

    start_day = _parse_day(start, "--start")
    end_day = _parse_day(end, "--end")
    if this_month and start_day is None and end_day is None:
        base = FilterSpec.current_month(today or date.today())
        start_day, end_day = base.start_date, base.end_date
    return FilterSpec(
        start_date=start_day,
        end_date=end_day,
        categories=frozenset(categories),
        search_text=search,
        order=order,
    )


def _run_query(
    user_id: str, filters: FilterSpec, bucket: Bucket, database_url: str | None
) -> AggregateResult:
    settings = _settings()
    store = _open_store(database_url)
    with LiveQuery(store, user_id, filters=filters, bucket=bucket, tz=settings.timezone) as q:
        if q.error is not None:
            raise q.error
        return q.result


def format_transaction(t: Transaction, *, tz: tzinfo = UTC) -> str:
    """``id, date, category, amount, supplier`` separated by tabs."""

    when = local_date(t.date, tz).isoformat() if t.date is not None else "N/A"
    amount = format_amount(t.amount)
    if t.category == INCOME:
        amount = f"+{amount}"
    return "\t".join(
        [t.id, when, t.category or OTHER, amount, t.supplier_name or "Unspecified transaction"]
    )


# ---- Command handlers --------------------------------------------------------


def cmd_summary(
    user_id: str,
    filters: FilterSpec,
    *,
    bucket: Bucket = Bucket.DAY,
    database_url: str | None = None,
) -> int:
    try:
        result = _run_query(user_id, filters, bucket, database_url)
    except (LedgerError, ValueError, RuntimeError) as e:
        return _err(str(e))

    print(f"Total spent: {format_amount(result.total_expenses)}")
    print("Categories:")
    for ct in result.category_breakdown:
        print(f"  {ct.category}\t{format_amount(ct.amount)}")
    print("By month:" if bucket is Bucket.MONTH else "By day:")
    for bt in result.bucket_breakdown:
        print(f"  {bt.label}\t{format_amount(bt.amount)}")
    return 0


def cmd_list(user_id: str, filters: FilterSpec, *, database_url: str | None = None) -> int:
    try:
        result = _run_query(user_id, filters, Bucket.DAY, database_url)
        tz = _settings().timezone
    except (LedgerError, ValueError, RuntimeError) as e:
        return _err(str(e))

    if not result.visible_transactions:
        print("No transactions found for the selected filters.", file=sys.stderr)
    for t in result.visible_transactions:
        print(format_transaction(t, tz=tz))
    return 0


def cmd_add(user_id: str, entry: ManualEntry, *, database_url: str | None = None) -> int:
    try:
        ledger = Ledger(_open_store(database_url), user_id, tz=_settings().timezone)
        doc_id = ledger.add_manual_entry(entry)
    except (LedgerError, ValueError, RuntimeError) as e:
        return _err(str(e))
    print(doc_id)
    return 0


def cmd_edit(
    user_id: str,
    doc_id: str,
    *,
    date_: str | None = None,
    supplier: str | None = None,
    total: str | None = None,
    category: str | None = None,
    description: str | None = None,
    database_url: str | None = None,
) -> int:
    """Edit ``doc_id``; options left as ``None`` keep the record's current value."""

    try:
        tz = _settings().timezone
        store = _open_store(database_url)
        current = edit_form(Transaction.from_document(store.get(doc_id, user_id=user_id)), tz=tz)
        entry = ManualEntry(
            date=current.date if date_ is None else date_,
            supplier=current.supplier if supplier is None else supplier,
            # Records whose total never parsed ("N/A") keep their zero value.
            total=(current.total or "0") if total is None else total,
            category=current.category if category is None else category,
            description=current.description if description is None else description,
        )
        Ledger(store, user_id, tz=tz).edit_transaction(doc_id, entry)
    except (LookupError, LedgerError, ValueError, RuntimeError) as e:
        return _err(str(e))
    print(f"Updated {doc_id}")
    return 0


def cmd_delete(user_id: str, doc_id: str, *, database_url: str | None = None) -> int:
    try:
        Ledger(_open_store(database_url), user_id).delete_transaction(doc_id)
    except (LedgerError, ValueError, RuntimeError) as e:
        return _err(str(e))
    print(f"Deleted {doc_id}")
    return 0


def cmd_scan(
    user_id: str, image_path: Path, *, database_url: str | None = None, today: date | None = None
) -> int:
    try:
        image = image_path.read_bytes()
    except FileNotFoundError:
        return _err(f"File not found: {image_path}")
    except PermissionError:
        return _err(f"Permission denied: {image_path}")

    try:
        settings = _settings()
    except ValueError as e:
        return _err(str(e))
    client = WebhookOcrClient(settings.ocr_webhook_url, timeout=settings.ocr_timeout)
    outcome = scan_receipt(image, client, today=today or datetime.now(settings.timezone).date())

    if outcome.invoice is None:
        draft = outcome.manual_draft or ManualEntry()
        print(f"Error: could not process invoice: {outcome.error}", file=sys.stderr)
        print(
            f"{draft.description}\n  receipt-ledger add --user-id {user_id} "
            f"--date {draft.date} --supplier ... --total ... --category {draft.category}",
            file=sys.stderr,
        )
        return 1

    try:
        ledger = Ledger(_open_store(database_url), user_id, tz=settings.timezone)
        doc_id = ledger.save_scan(outcome.invoice, image_base64=encode_image(image))
    except (LedgerError, RuntimeError) as e:
        return _err(str(e))
    inv = outcome.invoice
    print(f"{doc_id}\t{inv.category}\t{inv.total}\t{inv.supplier_name}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Track receipts and expenses per user. Loads DATABASE_URL and "
        "RECEIPT_LEDGER_* settings from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects them when used as default values below.
USER_ID_OPTION: OptionInfo = typer.Option(..., "--user-id", help="Owner of the transactions.")
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
START_OPTION: OptionInfo = typer.Option(None, "--start", help="First day, YYYY-MM-DD.")
END_OPTION: OptionInfo = typer.Option(None, "--end", help="Last day (inclusive), YYYY-MM-DD.")
CATEGORY_FILTER_OPTION: OptionInfo = typer.Option(
    None, "--category", help="Restrict to this category (repeatable)."
)
SEARCH_OPTION: OptionInfo = typer.Option(
    "", "--search", help="Match supplier, category, description or amount."
)
THIS_MONTH_OPTION: OptionInfo = typer.Option(
    False, "--this-month", help="Default the range to the current month."
)
DOC_ID_ARGUMENT: ArgumentInfo = typer.Argument(..., help="Transaction id.")


def _filters_or_exit(**kwargs: Any) -> FilterSpec:
    try:
        return build_filters(**kwargs)
    except ValueError as e:
        raise typer.Exit(_err(str(e))) from e


@app.command("summary")
def summary_cmd(
    user_id: str = USER_ID_OPTION,
    start: str | None = START_OPTION,
    end: str | None = END_OPTION,
    category: list[str] | None = CATEGORY_FILTER_OPTION,
    search: str = SEARCH_OPTION,
    this_month: bool = THIS_MONTH_OPTION,
    bucket: Bucket = typer.Option(Bucket.DAY, help="Group totals by day or month."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print the total spent and the category and day/month breakdowns."""

    filters = _filters_or_exit(
        start=start, end=end, categories=category or (), search=search, this_month=this_month
    )
    raise typer.Exit(cmd_summary(user_id, filters, bucket=bucket, database_url=database_url))


@app.command("list")
def list_cmd(
    user_id: str = USER_ID_OPTION,
    start: str | None = START_OPTION,
    end: str | None = END_OPTION,
    category: list[str] | None = CATEGORY_FILTER_OPTION,
    search: str = SEARCH_OPTION,
    this_month: bool = THIS_MONTH_OPTION,
    order: SortOrder = typer.Option(SortOrder.DATE_DESC, help="Sort order."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print visible transactions as ``id, date, category, amount, supplier``."""

    filters = _filters_or_exit(
        start=start,
        end=end,
        categories=category or (),
        search=search,
        order=order,
        this_month=this_month,
    )
    raise typer.Exit(cmd_list(user_id, filters, database_url=database_url))


@app.command("add")
def add_cmd(
    user_id: str = USER_ID_OPTION,
    date_: str = typer.Option("", "--date", help="Receipt date, YYYY-MM-DD."),
    supplier: str = typer.Option("", help="Supplier name."),
    total: str = typer.Option("", help="Total amount as printed."),
    category: str = typer.Option(OTHER, help="Category label."),
    description: str = typer.Option("", help="Free-text description."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Save a manually entered expense and print its id."""

    entry = ManualEntry(
        date=date_, supplier=supplier, total=total, category=category, description=description
    )
    raise typer.Exit(cmd_add(user_id, entry, database_url=database_url))


@app.command("edit")
def edit_cmd(
    doc_id: str = DOC_ID_ARGUMENT,
    user_id: str = USER_ID_OPTION,
    date_: str | None = typer.Option(None, "--date", help="New date, YYYY-MM-DD."),
    supplier: str | None = typer.Option(None, help="New supplier name."),
    total: str | None = typer.Option(None, help="New total amount."),
    category: str | None = typer.Option(None, help="New category label."),
    description: str | None = typer.Option(None, help="New description."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Edit a transaction; omitted fields keep their current value."""

    raise typer.Exit(
        cmd_edit(
            user_id,
            doc_id,
            date_=date_,
            supplier=supplier,
            total=total,
            category=category,
            description=description,
            database_url=database_url,
        )
    )


@app.command("delete")
def delete_cmd(
    doc_id: str = DOC_ID_ARGUMENT,
    user_id: str = USER_ID_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete a transaction."""

    raise typer.Exit(cmd_delete(user_id, doc_id, database_url=database_url))


@app.command("scan")
def scan_cmd(
    image: Path = typer.Argument(..., help="Receipt image file.", dir_okay=False),
    user_id: str = USER_ID_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Send a receipt image to the OCR workflow and save the result."""

    raise typer.Exit(cmd_scan(user_id, image, database_url=database_url))


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override RECEIPT_LEDGER_LOG_LEVEL."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)


if __name__ == "__main__":  # pragma: no cover - exercised via the console script
    # Running as a module: `python -m receipt_ledger.cli`
    app()
