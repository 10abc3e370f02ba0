from abc import ABC, abstractmethod
from typing import Dict, Optional
from decimal import Decimal
from models import Account, StoredTransaction


class LedgerStore(ABC):
    @abstractmethod
    def get_or_create_account(self, client_id: int) -> Account:
        """Get the account for a client, creating an empty one if absent."""
        pass

    @abstractmethod
    def get_account(self, client_id: int) -> Optional[Account]:
        """Get account. Returns None if the client was never referenced."""
        pass

    @abstractmethod
    def get_transaction(self, tx_id: int) -> Optional[StoredTransaction]:
        """Get stored deposit or withdrawal. Returns None if unknown."""
        pass

    @abstractmethod
    def record_transaction(self, tx_id: int, client_id: int, amount: Decimal) -> StoredTransaction:
        """Store a deposit or withdrawal, replacing any entry with the same id."""
        pass

    @abstractmethod
    def accounts(self) -> Dict[int, Account]:
        """Get the full client id to account mapping."""
        pass

    def has_transaction(self, tx_id: int) -> bool:
        return self.get_transaction(tx_id) is not None

    def get_accounts_count(self) -> int:
        return len(self.accounts())

    @abstractmethod
    def get_transactions_count(self) -> int:
        """Get total number of stored transactions."""
        pass


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        self._accounts: Dict[int, Account] = {}
        self._transactions: Dict[int, StoredTransaction] = {}

    def get_or_create_account(self, client_id: int) -> Account:
        account = self._accounts.get(client_id)
        if account is None:
            account = self._accounts[client_id] = Account()
        return account

    def get_account(self, client_id: int) -> Optional[Account]:
        return self._accounts.get(client_id)

    def get_transaction(self, tx_id: int) -> Optional[StoredTransaction]:
        return self._transactions.get(tx_id)

    def record_transaction(self, tx_id: int, client_id: int, amount: Decimal) -> StoredTransaction:
        stored = StoredTransaction(client=client_id, amount=amount)
        self._transactions[tx_id] = stored
        return stored

    def accounts(self) -> Dict[int, Account]:
        return self._accounts

    def get_transactions_count(self) -> int:
        return len(self._transactions)


def get_ledger_store() -> LedgerStore:
    """Create the store for a single processing run."""
    return InMemoryLedgerStore()
