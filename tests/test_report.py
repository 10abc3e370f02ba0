import io
import pytest
from decimal import Decimal

from errors import ReportWriteError
from models import Account
from report import round_amount, snapshot_accounts, write_accounts


class BrokenStream(io.StringIO):
    def write(self, s):
        raise OSError("disk full")


class TestSnapshots:
    """Test account snapshots handed to the result sink."""

    def test_sorted_by_client(self):
        accounts = {
            3: Account(available=Decimal("1")),
            1: Account(available=Decimal("2")),
            2: Account(),
        }

        assert [s.client for s in snapshot_accounts(accounts)] == [1, 2, 3]

    def test_total_is_available_plus_held(self):
        snapshot = snapshot_accounts({1: Account(available=Decimal("-1.5"), held=Decimal("2.25"))})[0]

        assert snapshot.total == Decimal("0.75")

    @pytest.mark.parametrize("amount, expected", [
        ("5.7245462362", "5.7245"),
        ("5.72455", "5.7246"),
        ("5.72445", "5.7244"),
        ("3.0", "3.0000"),
        ("-1.00005", "-1.0000"),
    ])
    def test_rounding_to_four_places(self, amount, expected):
        """Values are rounded half to even, only at presentation."""
        assert str(round_amount(Decimal(amount))) == expected

    def test_rounding_does_not_touch_ledger(self):
        account = Account(available=Decimal("0.00001"))
        snapshot_accounts({1: account})

        assert account.available == Decimal("0.00001")


class TestWriteAccounts:
    """Test delimited-text output."""

    def test_output_rows(self):
        accounts = {
            2: Account(available=Decimal("2.0")),
            1: Account(available=Decimal("-1.0"), held=Decimal("0"), locked=True),
        }
        stream = io.StringIO()

        write_accounts(accounts, stream)

        assert stream.getvalue() == (
            "client,available,held,total,locked\n"
            "1,-1.0000,0.0000,-1.0000,true\n"
            "2,2.0000,0.0000,2.0000,false\n"
        )

    def test_empty_ledger_writes_header(self):
        stream = io.StringIO()

        write_accounts({}, stream)

        assert stream.getvalue() == "client,available,held,total,locked\n"

    def test_custom_decimal_places(self):
        stream = io.StringIO()

        write_accounts({1: Account(available=Decimal("1.23456"))}, stream, decimal_places=2)

        assert stream.getvalue().splitlines()[1] == "1,1.23,0.00,1.23,false"

    def test_large_balances_written_in_full(self):
        stream = io.StringIO()

        write_accounts({1: Account(available=Decimal("10000000000000000000000000"))}, stream)

        assert stream.getvalue().splitlines()[1] == (
            "1,10000000000000000000000000.0000,0.0000,10000000000000000000000000.0000,false"
        )

    def test_unroundable_balance_is_fatal_without_output(self):
        stream = io.StringIO()

        with pytest.raises(ReportWriteError):
            write_accounts({1: Account(available=Decimal("1E+120"))}, stream)

        assert stream.getvalue() == ""

    def test_write_failure_is_fatal(self):
        with pytest.raises(ReportWriteError) as exc_info:
            write_accounts({1: Account()}, BrokenStream())

        assert "disk full" in str(exc_info.value)
