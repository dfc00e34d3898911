from transaction_analyzer.domain.parse import (
    detect_account_type,
    detect_column_mapping,
    format_signature,
    parse_csv_file,
    parse_csv_string,
)


def test_parse_csv_string_basic():
    text = "Date,Description,Amount\n2025-01-01,COFFEE,-3.50\n\n2025-01-02,\"SHOP, INC\",-10\n"

    result = parse_csv_string(text)

    assert result.headers == ["Date", "Description", "Amount"]
    assert result.errors == []
    assert len(result.rows) == 2
    assert result.rows[1]["Description"] == "SHOP, INC"


def test_parse_csv_string_strips_bom_and_header_whitespace():
    result = parse_csv_string("\ufeff Date , Description,Amount\n2025-01-01,COFFEE,-3.50\n")

    assert result.headers == ["Date", "Description", "Amount"]
    assert result.rows[0]["Date"] == "2025-01-01"


def test_parse_csv_string_reports_ragged_rows():
    text = "Date,Description,Amount\n2025-01-01,COFFEE\n2025-01-02,SHOP,-10,EXTRA\n"

    result = parse_csv_string(text)

    assert len(result.rows) == 2
    assert result.rows[0]["Amount"] == ""
    assert result.rows[1]["Amount"] == "-10"
    assert "Too few fields" in result.errors[0]
    assert "Too many fields" in result.errors[1]


def test_parse_csv_string_empty_input():
    result = parse_csv_string("")

    assert result.headers == []
    assert result.rows == []


def test_parse_csv_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text("Date,Description,Amount\n2025-01-01,COFFEE,-3.50\n", encoding="utf-8")

    result = parse_csv_file(path)

    assert result.headers == ["Date", "Description", "Amount"]
    assert len(result.rows) == 1


def test_parse_csv_file_missing(tmp_path):
    result = parse_csv_file(tmp_path / "missing.csv")

    assert result.rows == []
    assert len(result.errors) == 1


def test_detect_column_mapping_single_amount():
    mapping = detect_column_mapping(["Transaction Date", "Description", "Amount", "Category"])

    assert mapping is not None
    assert mapping.date == "Transaction Date"
    assert mapping.description == "Description"
    assert mapping.amount == "Amount"
    assert mapping.category == "Category"


def test_detect_column_mapping_debit_credit():
    mapping = detect_column_mapping(["Posting Date", "Memo", "Withdrawals", "Deposits"])

    assert mapping is not None
    assert mapping.amount is None
    assert mapping.debit == "Withdrawals"
    assert mapping.credit == "Deposits"
    assert mapping.category is None


def test_detect_column_mapping_requires_core_columns():
    assert detect_column_mapping(["Foo", "Bar"]) is None
    assert detect_column_mapping(["Date", "Description"]) is None


def test_detect_account_type_credit_card():
    headers = ["Date", "Description", "Amount", "Credit Limit"]
    rows = [
        {"Date": "2025-01-01", "Description": "PAYMENT - THANK YOU", "Amount": "500.00", "Credit Limit": ""},
        {"Date": "2025-01-02", "Description": "AUTOPAY ENROLLED", "Amount": "0", "Credit Limit": ""},
    ]

    detection = detect_account_type(headers, rows)

    assert detection.type == "credit_card"
    assert detection.confidence == "high"
    assert 'Header column "credit limit" found' in detection.reasons


def test_detect_account_type_bank():
    headers = ["Date", "Description", "Amount"]
    rows = [{"Date": "2025-01-01", "Description": "DIRECT DEPOSIT ACME PAYROLL", "Amount": "2000"}]

    detection = detect_account_type(headers, rows)

    assert detection.type == "bank"
    assert detection.confidence == "high"


def test_detect_account_type_unknown():
    detection = detect_account_type(["Date", "Description", "Amount"], [])

    assert detection.type == "unknown"
    assert detection.confidence == "low"


def test_detect_account_type_only_samples_leading_rows():
    headers = ["Date", "Description", "Amount"]
    rows = [{"Description": "COFFEE SHOP"}] * 3 + [{"Description": "DIRECT DEPOSIT PAYROLL"}]

    assert detect_account_type(headers, rows, sample_size=3).type == "unknown"


def test_format_signature_ignores_order_and_case():
    assert format_signature(["Date", "Amount", "Description"]) == "amount|date|description"
    assert format_signature(["description", "DATE", "amount"]) == format_signature(["Date", "Amount", "Description"])
