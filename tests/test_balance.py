from src.balance import calculate_balance
from src.models import RecordKind


def test_empty_records_are_settled(config):
    balance = calculate_balance([], config)
    assert balance.is_settled
    assert balance.debtor is None and balance.creditor is None


def test_shared_expense_default_split(config, make_record):
    # Alice pays 100 shared -> Bob owes Alice 50
    records = [make_record(kind=RecordKind.SHARED, payer="Alice", amount=100.0)]
    balance = calculate_balance(records, config)
    assert not balance.is_settled
    assert balance.debtor == "Bob"
    assert balance.creditor == "Alice"
    assert balance.net_amount == 50.0
    assert balance.describe() == "Bob owes Alice 50.00"


def test_expenses_from_both_sides_net_out(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=100.0),
        make_record(kind=RecordKind.SHARED, payer="Bob", amount=50.0),
    ]
    balance = calculate_balance(records, config)
    assert balance.debtor == "Bob"
    assert balance.net_amount == 25.0


def test_settlement_clears_balance(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=100.0),
        make_record(kind=RecordKind.SETTLEMENT, payer="Bob", amount=50.0, paid_to="Alice"),
    ]
    assert calculate_balance(records, config).is_settled


def test_overpayment_flips_direction(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=100.0),
        make_record(kind=RecordKind.SETTLEMENT, payer="Bob", amount=80.0, paid_to="Alice"),
    ]
    balance = calculate_balance(records, config)
    assert balance.debtor == "Alice"
    assert balance.creditor == "Bob"
    assert balance.net_amount == 30.0


def test_custom_split_and_personal_records(config, make_record):
    records = [
        make_record(payer="Bob", amount=500.0),
        make_record(kind=RecordKind.SHARED, payer="Bob", amount=90.0, split_amount=60.0, is_custom_split=True),
    ]
    balance = calculate_balance(records, config)
    assert balance.debtor == "Alice"
    assert balance.net_amount == 60.0


def test_balance_is_order_independent(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=33.33),
        make_record(kind=RecordKind.SHARED, payer="Bob", amount=71.1),
        make_record(kind=RecordKind.SETTLEMENT, payer="Bob", amount=4.05, paid_to="Alice"),
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=12.5, split_amount=10.0, is_custom_split=True),
    ]
    forward = calculate_balance(records, config)
    backward = calculate_balance(list(reversed(records)), config)
    assert forward.net_amount == backward.net_amount
    assert forward.debtor == backward.debtor


def test_drift_below_one_cent_counts_as_settled(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Alice", amount=10.0),
        make_record(kind=RecordKind.SETTLEMENT, payer="Bob", amount=4.995, paid_to="Alice"),
    ]
    assert calculate_balance(records, config).is_settled


def test_records_with_unknown_parties_are_skipped(config, make_record):
    records = [
        make_record(kind=RecordKind.SHARED, payer="Mallory", amount=100.0),
        make_record(kind=RecordKind.SETTLEMENT, payer="Bob", amount=10.0, paid_to="Bob"),
    ]
    assert calculate_balance(records, config).is_settled
