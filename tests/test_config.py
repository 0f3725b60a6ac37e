import pytest

from src.config import AppConfig, DEFAULT_PARTY_A, DEFAULT_PARTY_B
from src.errors import ConfigError

ENV_VARS = ("USER1_NAME", "USER2_NAME", "USER1_EMAIL", "USER2_EMAIL", "GOOGLE_SHEET_ID",
            "EXPENSES_DATA_FILE", "TREND_DAYS", "CURRENCY_SYMBOL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_from_env_defaults():
    config = AppConfig.from_env()
    assert config.parties == (DEFAULT_PARTY_A, DEFAULT_PARTY_B)
    assert config.identities == {}
    assert config.trend_days == 7
    assert config.sheet_id == ""


def test_from_env_reads_parties_and_identities(monkeypatch, tmp_path):
    monkeypatch.setenv("USER1_NAME", "Ana")
    monkeypatch.setenv("USER2_NAME", "Ben")
    monkeypatch.setenv("USER1_EMAIL", " Ana@Mail.com ")
    monkeypatch.setenv("USER2_EMAIL", "ben@mail.com")
    monkeypatch.setenv("TREND_DAYS", "14")
    monkeypatch.setenv("EXPENSES_DATA_FILE", str(tmp_path / "x.json"))
    config = AppConfig.from_env()
    assert config.parties == ("Ana", "Ben")
    assert config.identities == {"ana@mail.com": "Ana", "ben@mail.com": "Ben"}
    assert config.trend_days == 14
    assert config.data_file == str(tmp_path / "x.json")


def test_invalid_trend_days(monkeypatch):
    monkeypatch.setenv("TREND_DAYS", "soon")
    with pytest.raises(ConfigError):
        AppConfig.from_env()


@pytest.mark.parametrize("a,b", [("Sam", "Sam"), ("", "Bob"), ("Alice", "  ")])
def test_party_names_must_be_distinct_and_set(a, b):
    with pytest.raises(ConfigError):
        AppConfig(party_a=a, party_b=b)


def test_identity_must_map_to_a_party():
    with pytest.raises(ConfigError):
        AppConfig(party_a="A", party_b="B", identities={"c@x.com": "C"})


def test_party_helpers(config):
    assert config.other_party("Alice") == "Bob"
    assert config.other_party("Bob") == "Alice"
    assert config.other_party("Mallory") is None
    assert config.is_party("Bob")
    assert not config.is_party(None)
    assert config.is_allowed("BOB@example.com")
    assert not config.is_allowed("eve@example.com")
    assert not config.is_allowed(None)
    assert config.party_for_identity("alice@example.com") == "Alice"
    assert config.party_for_identity("eve@example.com") is None


def test_party_names_are_stored_stripped():
    config = AppConfig(party_a=" Alice ", party_b="Bob\t", identities={" Alice@Example.com": "Alice "})
    assert config.parties == ("Alice", "Bob")
    assert config.is_party("Alice")
    assert config.identities == {"alice@example.com": "Alice"}
    assert config.party_for_identity("alice@example.com") == "Alice"


def test_duplicate_email_is_rejected(monkeypatch):
    monkeypatch.setenv("USER1_EMAIL", "shared@mail.com")
    monkeypatch.setenv("USER2_EMAIL", "Shared@Mail.com")
    with pytest.raises(ConfigError):
        AppConfig.from_env()
