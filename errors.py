"""Error taxonomy for the ledger.

``LedgerError`` subclasses are fatal and abort a run. ``RecordRejected``
subclasses reject a single record; the run continues with the next one.
The two hierarchies share no base besides ``Exception`` so that a handler
for one can never swallow the other.
"""
from decimal import Decimal
from pathlib import Path
from typing import Union


class LedgerError(Exception):
    error_code = "LEDGER_ERROR"


class TransactionFileReadError(LedgerError):
    error_code = "FILE_READ_ERROR"

    def __init__(self, path: Union[str, Path], reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"failed reading transaction file {path}: {reason}")


class RecordParseError(LedgerError):
    error_code = "PARSE_ERROR"

    def __init__(self, line: int, detail: str):
        self.line = line
        self.detail = detail
        super().__init__(f"failed parsing transaction on line {line}: {detail}")


class ReportWriteError(LedgerError):
    error_code = "WRITE_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"write error: {reason}")


class RecordRejected(Exception):
    error_code = "REJECTED"


class InvalidAmount(RecordRejected):
    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(f"amount must be greater than zero, got {amount}")


class DepositWithoutAmount(RecordRejected):
    error_code = "DEPOSIT_WITHOUT_AMOUNT"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"deposit {tx} without amount")


class WithdrawalWithoutAmount(RecordRejected):
    error_code = "WITHDRAWAL_WITHOUT_AMOUNT"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"withdrawal {tx} without amount")


class NotEnoughAvailableFunds(RecordRejected):
    error_code = "NOT_ENOUGH_AVAILABLE_FUNDS"

    def __init__(self, client: int, requested: Decimal, available: Decimal):
        self.client = client
        self.requested = requested
        self.available = available
        super().__init__(
            f"client {client}: withdrawal without enough available funds, "
            f"needed {requested}, available {available}"
        )


class UnknownTransactionId(RecordRejected):
    error_code = "UNKNOWN_TRANSACTION_ID"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"unknown transaction ID: {tx}")


class TransactionAlreadyUnderDispute(RecordRejected):
    error_code = "TRANSACTION_ALREADY_DISPUTED"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"transaction {tx} already under dispute")


class TransactionNotUnderDispute(RecordRejected):
    error_code = "TRANSACTION_NOT_DISPUTED"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"transaction {tx} not under dispute")


class ClientLocked(RecordRejected):
    error_code = "CLIENT_LOCKED"

    def __init__(self, client: int):
        self.client = client
        super().__init__(f"client account {client} is locked")


class UnknownTransactionType(RecordRejected):
    error_code = "UNKNOWN_TRANSACTION_TYPE"

    def __init__(self, type_string: str):
        self.type_string = type_string
        super().__init__(f"unknown transaction type: {type_string}")


class DuplicateTransactionId(RecordRejected):
    error_code = "DUPLICATE_TRANSACTION_ID"

    def __init__(self, tx: int):
        self.tx = tx
        super().__init__(f"transaction {tx} already recorded")
