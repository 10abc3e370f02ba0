import io
import pytest
from decimal import Decimal

from errors import RecordParseError, UnknownTransactionType
from ingest import decode_record, read_rows
from models import TransactionRow, TransactionType


def rows_from(text):
    return list(read_rows(io.StringIO(text)))


class TestReadRows:
    """Test parsing of the delimited transaction log."""

    def test_whitespace_around_values_stripped(self):
        """Headers and values may be padded with spaces or tabs."""
        rows = rows_from(
            " type ,  client ,tx, amount \n"
            "   deposit   , 55     ,     123 ,    17.64  \n"
            "\tdispute,\t55,\t123\n"
        )

        assert rows[0] == TransactionRow(type="deposit", client=55, tx=123, amount=Decimal("17.64"))
        assert rows[1].type == "dispute"
        assert rows[1].amount is None

    def test_short_rows_have_no_amount(self):
        """A missing or empty amount is absent, not zero."""
        rows = rows_from(
            "type,client,tx,amount\n"
            "resolve,1,2\n"
            "chargeback,1,2,\n"
        )

        assert [row.amount for row in rows] == [None, None]

    def test_columns_mapped_by_header(self):
        """Column order follows the header row."""
        rows = rows_from(
            "client,amount,tx,type\n"
            "7,2.5,3,withdrawal\n"
        )

        assert rows[0] == TransactionRow(type="withdrawal", client=7, tx=3, amount=Decimal("2.5"))

    def test_blank_lines_skipped(self):
        rows = rows_from(
            "\n"
            "type,client,tx,amount\n"
            "\n"
            "deposit,1,1,1.0\n"
            "   \n"
        )

        assert len(rows) == 1

    def test_amount_precision_kept(self):
        """Amounts keep every digit; rounding only happens on output."""
        rows = rows_from(
            "type,client,tx,amount\n"
            "deposit,1,1,5.72459\n"
        )

        assert rows[0].amount == Decimal("5.72459")

    def test_empty_input(self):
        assert rows_from("") == []

    def test_unknown_type_is_not_a_parse_error(self):
        """Type strings are decoded later, so any non-empty value reads fine."""
        rows = rows_from(
            "type,client,tx,amount\n"
            "bacon,1,1,1.0\n"
        )

        assert rows[0].type == "bacon"

    def test_rows_are_read_lazily(self):
        """Rows before a malformed one are yielded before the error."""
        iterator = read_rows(io.StringIO(
            "type,client,tx,amount\n"
            "deposit,1,1,1.0\n"
            "deposit,1\n"
        ))

        assert next(iterator).tx == 1
        with pytest.raises(RecordParseError):
            next(iterator)


class TestMalformedInput:
    """Test that malformed rows are fatal."""

    def test_invalid_header(self):
        with pytest.raises(RecordParseError) as exc_info:
            rows_from("invalid\n\tinput")

        assert exc_info.value.line == 1
        assert "header is missing" in str(exc_info.value)

    @pytest.mark.parametrize("row", [
        "deposit, invalidclient, 1, 1.33",
        "deposit, 3, invalidtx, 1.33",
        "deposit, 3, 3, invalidamount",
        "deposit, 3, 3, NaN",
        "deposit, -1, 1, 1.0",
        "deposit, 65536, 1, 1.0",
        "deposit, 1, 4294967296, 1.0",
        "deposit, 1",
        ", 1, 1, 1.0",
        "deposit, 1, 1, 1.0, extra",
    ])
    def test_malformed_rows(self, row):
        with pytest.raises(RecordParseError) as exc_info:
            rows_from("type, client, tx, amount\n" + row + "\n")

        assert exc_info.value.line == 2
        assert exc_info.value.error_code == "PARSE_ERROR"

    @pytest.mark.parametrize("amount", [
        "10000000000000000000000000000",
        "1E+40",
        "0.00000000000000000000000000001",
    ])
    def test_amount_out_of_range(self, amount):
        """Amounts beyond 28 integer or 28 fractional digits are malformed."""
        with pytest.raises(RecordParseError) as exc_info:
            rows_from("type,client,tx,amount\ndeposit,1,1," + amount + "\n")

        assert "amount" in exc_info.value.detail

    def test_amount_range_limits_accepted(self):
        rows = rows_from(
            "type,client,tx,amount\n"
            "deposit,1,1,9999999999999999999999999999\n"
            "deposit,1,2,0.0000000000000000000000000001\n"
        )

        assert rows[0].amount == Decimal("9999999999999999999999999999")
        assert rows[1].amount == Decimal("1E-28")

    def test_id_bounds_accepted(self):
        rows = rows_from(
            "type, client, tx, amount\n"
            "deposit, 0, 0, 1.0\n"
            "deposit, 65535, 4294967295, 1.0\n"
        )

        assert rows[1].client == 65535
        assert rows[1].tx == 4294967295


class TestDecodeRecord:
    """Test mapping of type strings to the closed set of transaction types."""

    @pytest.mark.parametrize("type_string", [t.value for t in TransactionType])
    def test_known_types(self, type_string):
        record = decode_record(TransactionRow(type=type_string, client=1, tx=2))

        assert record.type == TransactionType(type_string)
        assert record.client == 1
        assert record.tx == 2
        assert record.amount is None

    def test_unknown_type(self):
        with pytest.raises(UnknownTransactionType) as exc_info:
            decode_record(TransactionRow(type="refund", client=1, tx=2, amount=Decimal("1")))

        assert exc_info.value.type_string == "refund"
        assert exc_info.value.error_code == "UNKNOWN_TRANSACTION_TYPE"

    def test_type_is_case_sensitive(self):
        with pytest.raises(UnknownTransactionType):
            decode_record(TransactionRow(type="Deposit", client=1, tx=2, amount=Decimal("1")))
