"""Result sink: turns the account table into snapshots and delimited text."""
import csv
from decimal import Decimal, Inexact, InvalidOperation, localcontext
from typing import List, Mapping, TextIO

from errors import ReportWriteError
from models import LEDGER_CONTEXT, Account, AccountSnapshot

FIELDNAMES = ["client", "available", "held", "total", "locked"]

PRESENTATION_CONTEXT = LEDGER_CONTEXT.copy()
PRESENTATION_CONTEXT.traps[Inexact] = False


def round_amount(amount: Decimal, decimal_places: int = 4) -> Decimal:
    with localcontext(PRESENTATION_CONTEXT):
        return amount.quantize(Decimal(1).scaleb(-decimal_places))


def snapshot_accounts(accounts: Mapping[int, Account], decimal_places: int = 4) -> List[AccountSnapshot]:
    """Build one rounded snapshot per client, ordered by client id."""
    with localcontext(PRESENTATION_CONTEXT):
        return [
            AccountSnapshot(
                client=client_id,
                available=round_amount(account.available, decimal_places),
                held=round_amount(account.held, decimal_places),
                total=round_amount(account.total, decimal_places),
                locked=account.locked,
            )
            for client_id, account in sorted(accounts.items())
        ]


def write_accounts(accounts: Mapping[int, Account], stream: TextIO, decimal_places: int = 4) -> None:
    """Write the account table; nothing reaches ``stream`` if rounding fails."""
    try:
        snapshots = snapshot_accounts(accounts, decimal_places)
    except InvalidOperation as e:
        raise ReportWriteError(f"cannot round balances to {decimal_places} places: {e!r}") from e

    writer = csv.writer(stream, lineterminator="\n")
    try:
        writer.writerow(FIELDNAMES)
        for snapshot in snapshots:
            writer.writerow([
                snapshot.client,
                snapshot.available,
                snapshot.held,
                snapshot.total,
                str(snapshot.locked).lower(),
            ])
        stream.flush()
    except (OSError, csv.Error) as e:
        raise ReportWriteError(str(e)) from e
