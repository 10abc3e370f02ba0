from decimal import localcontext
from typing import Iterable, Optional
import structlog

from config import Settings, get_settings
from errors import (
    ClientLocked,
    DepositWithoutAmount,
    DuplicateTransactionId,
    InvalidAmount,
    NotEnoughAvailableFunds,
    RecordRejected,
    TransactionAlreadyUnderDispute,
    TransactionNotUnderDispute,
    UnknownTransactionId,
    WithdrawalWithoutAmount,
)
from ingest import decode_record
from models import (
    Account,
    DisputeState,
    LEDGER_CONTEXT,
    ProcessingSummary,
    StoredTransaction,
    TransactionRecord,
    TransactionRow,
    TransactionType,
)
from repositories import LedgerStore

logger = structlog.get_logger()


class TransactionEngine:
    """Applies decoded records to a ledger store, one at a time.

    ``apply`` either mutates the store and returns, or raises a
    ``RecordRejected`` and leaves the store untouched.
    """

    def __init__(self, store: LedgerStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self._handlers = {
            TransactionType.deposit: self._process_deposit,
            TransactionType.withdrawal: self._process_withdrawal,
            TransactionType.dispute: self._process_dispute,
            TransactionType.resolve: self._process_resolve,
            TransactionType.chargeback: self._process_chargeback,
        }

    def apply(self, record: TransactionRecord) -> None:
        if record.amount is not None and record.amount <= 0:
            raise InvalidAmount(record.amount)

        account = self.store.get_or_create_account(record.client)
        if account.locked:
            raise ClientLocked(record.client)

        with localcontext(LEDGER_CONTEXT):
            self._handlers[record.type](account, record)

        logger.debug(
            "Transaction applied",
            type=record.type.value,
            client=record.client,
            tx=record.tx,
            available=str(account.available),
            held=str(account.held),
        )

    def _check_duplicate(self, record: TransactionRecord) -> None:
        if self.settings.reject_duplicate_transactions and self.store.has_transaction(record.tx):
            raise DuplicateTransactionId(record.tx)

    def _process_deposit(self, account: Account, record: TransactionRecord) -> None:
        if record.amount is None:
            raise DepositWithoutAmount(record.tx)
        self._check_duplicate(record)

        account.available += record.amount
        self.store.record_transaction(record.tx, record.client, record.amount)

    def _process_withdrawal(self, account: Account, record: TransactionRecord) -> None:
        if record.amount is None:
            raise WithdrawalWithoutAmount(record.tx)
        self._check_duplicate(record)

        if account.available < record.amount:
            raise NotEnoughAvailableFunds(record.client, record.amount, account.available)

        account.available -= record.amount
        self.store.record_transaction(record.tx, record.client, record.amount)

    def _get_target(self, tx_id: int) -> StoredTransaction:
        target = self.store.get_transaction(tx_id)
        if target is None:
            raise UnknownTransactionId(tx_id)
        return target

    def _process_dispute(self, account: Account, record: TransactionRecord) -> None:
        target = self._get_target(record.tx)
        if target.dispute_state != DisputeState.not_disputed:
            raise TransactionAlreadyUnderDispute(record.tx)

        # Available may go negative when the disputed funds were already withdrawn.
        account.held += target.amount
        account.available -= target.amount
        target.dispute_state = DisputeState.disputed

    def _process_resolve(self, account: Account, record: TransactionRecord) -> None:
        target = self._get_target(record.tx)
        if target.dispute_state != DisputeState.disputed:
            raise TransactionNotUnderDispute(record.tx)

        account.held -= target.amount
        account.available += target.amount
        target.dispute_state = DisputeState.resolved

    def _process_chargeback(self, account: Account, record: TransactionRecord) -> None:
        target = self._get_target(record.tx)
        if target.dispute_state != DisputeState.disputed:
            raise TransactionNotUnderDispute(record.tx)

        account.held -= target.amount
        account.locked = True
        target.dispute_state = DisputeState.charged_back

        logger.info(
            "Client account locked by chargeback",
            client=record.client,
            origin_client=target.client,
            tx=record.tx,
            amount=str(target.amount),
        )


class LedgerService:
    """Runs one sequential pass over a record source."""

    def __init__(self, store: LedgerStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self.engine = TransactionEngine(store, self.settings)

    def process(self, rows: Iterable[TransactionRow]) -> ProcessingSummary:
        summary = ProcessingSummary()

        # RecordParseError from the source is fatal and propagates from here.
        for row in rows:
            summary.processed += 1
            try:
                self.engine.apply(decode_record(row))
            except RecordRejected as e:
                summary.rejected += 1
                summary.rejections[e.error_code] = summary.rejections.get(e.error_code, 0) + 1
                account = self.store.get_account(row.client)
                target = self.store.get_transaction(row.tx)
                logger.warning(
                    "Transaction rejected",
                    error_code=e.error_code,
                    detail=str(e),
                    type=row.type,
                    client=row.client,
                    tx=row.tx,
                    amount=str(row.amount) if row.amount is not None else None,
                    available=str(account.available) if account is not None else None,
                    held=str(account.held) if account is not None else None,
                    origin_client=target.client if target is not None else None,
                )
                continue
            summary.applied += 1

        logger.info(
            "Transactions processed",
            processed=summary.processed,
            applied=summary.applied,
            rejected=summary.rejected,
            accounts=self.store.get_accounts_count(),
            transactions=self.store.get_transactions_count(),
        )
        return summary


# Factory function for dependency injection
def get_ledger_service(store: LedgerStore, settings: Optional[Settings] = None) -> LedgerService:
    return LedgerService(store, settings)
