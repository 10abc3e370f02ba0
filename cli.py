"""Command-line entry point.

Reads a transactions file, applies every record, and writes the final
account table to stdout as CSV. Logs go to stderr. Exits with status 1 only
on fatal errors; rejected records are logged and skipped.
"""
import sys
from pathlib import Path
from typing import Optional

import structlog
import typer

from config import get_settings_for_environment
from errors import LedgerError, TransactionFileReadError
from ingest import read_rows
from logging_config import configure_logging
from report import write_accounts
from repositories import get_ledger_store
from services import get_ledger_service

logger = structlog.get_logger()

app = typer.Typer(
    add_completion=False,
    help="Apply a CSV log of transactions and print the resulting client accounts.",
)


@app.command()
def main(
    transactions_path: Path = typer.Argument(..., help="File containing the transactions to process."),
    env: str = typer.Option("production", help="Settings profile: development, production or testing."),
    log_level: Optional[str] = typer.Option(None, help="Override the profile's log level."),
    reject_duplicates: Optional[bool] = typer.Option(
        None,
        "--reject-duplicates/--allow-duplicates",
        help="Reject deposits and withdrawals that reuse a stored transaction id.",
    ),
) -> None:
    settings = get_settings_for_environment(env)
    if log_level is not None:
        settings.log_level = log_level
    if reject_duplicates is not None:
        settings.reject_duplicate_transactions = reject_duplicates
    configure_logging(settings)

    logger.info("Processing transactions file", path=str(transactions_path), env=env)

    store = get_ledger_store()
    service = get_ledger_service(store, settings)
    try:
        try:
            stream = open(transactions_path, newline="", encoding="utf-8-sig")
        except OSError as e:
            raise TransactionFileReadError(transactions_path, e.strerror or str(e)) from e
        with stream:
            service.process(read_rows(stream))
        write_accounts(store.accounts(), sys.stdout, settings.decimal_places)
    except LedgerError as e:
        logger.error("Processing failed", error_code=e.error_code, error=str(e))
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
