"""
config.py - deployment configuration

Party names, the identity allow-list and storage settings come from
environment variables. On Streamlit Cloud app.py copies the matching secrets
into the environment before anything here is read.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import os

from src.errors import ConfigError

_default_data_file = os.path.join(os.path.dirname(__file__), "..", "data", "expenses_data.json")

DEFAULT_PARTY_A = "Ashwin"
DEFAULT_PARTY_B = "Pooja"
DEFAULT_TREND_DAYS = 7


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable startup configuration.

    Fields:
      - party_a / party_b: the two party names used on every record
      - identities: lower-cased email -> party name (the sign-in allow-list)
      - sheet_id: Google Sheet id; empty means the local JSON file is used
      - data_file: path of the local JSON store
      - trend_days: length of the trailing window for daily trend charts
      - currency_symbol: prefix used when formatting amounts in the UI
    """
    party_a: str = DEFAULT_PARTY_A
    party_b: str = DEFAULT_PARTY_B
    identities: Dict[str, str] = field(default_factory=dict)
    sheet_id: str = ""
    service_account_json: str = ""
    service_account_file: str = ""
    data_file: str = _default_data_file
    trend_days: int = DEFAULT_TREND_DAYS
    currency_symbol: str = "₹"

    def __post_init__(self):
        a = (self.party_a or "").strip()
        b = (self.party_b or "").strip()
        if not a or not b:
            raise ConfigError("Both party names must be set")
        if a == b:
            raise ConfigError(f"Party names must differ (both are {a!r})")
        identities = {}
        for email, party in self.identities.items():
            party = (party or "").strip()
            if party not in (a, b):
                raise ConfigError(f"Identity {email!r} maps to unknown party {party!r}")
            identities[email.strip().lower()] = party
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "party_a", a)
        object.__setattr__(self, "party_b", b)
        object.__setattr__(self, "identities", identities)
        if self.trend_days < 1:
            raise ConfigError("trend_days must be at least 1")

    @classmethod
    def from_env(cls) -> "AppConfig":
        party_a = _env("USER1_NAME", DEFAULT_PARTY_A)
        party_b = _env("USER2_NAME", DEFAULT_PARTY_B)
        identities = {}
        for var, party in (("USER1_EMAIL", party_a), ("USER2_EMAIL", party_b)):
            email = _env(var).lower()
            if not email:
                continue
            if email in identities:
                raise ConfigError(f"{var} repeats the email already assigned to {identities[email]}")
            identities[email] = party
        try:
            trend_days = int(_env("TREND_DAYS", str(DEFAULT_TREND_DAYS)))
        except ValueError:
            raise ConfigError("TREND_DAYS must be an integer")
        return cls(
            party_a=party_a,
            party_b=party_b,
            identities=identities,
            sheet_id=_env("GOOGLE_SHEET_ID"),
            service_account_json=_env("GOOGLE_SERVICE_ACCOUNT_JSON"),
            service_account_file=_env("GOOGLE_SERVICE_ACCOUNT_FILE"),
            data_file=_env("EXPENSES_DATA_FILE") or _default_data_file,
            trend_days=trend_days,
            currency_symbol=_env("CURRENCY_SYMBOL", "₹"),
        )

    @property
    def parties(self) -> Tuple[str, str]:
        return (self.party_a, self.party_b)

    def is_party(self, name: Optional[str]) -> bool:
        return name in self.parties

    def other_party(self, name: Optional[str]) -> Optional[str]:
        """Return the counterpart of `name`, or None when it is not a party."""
        if name == self.party_a:
            return self.party_b
        if name == self.party_b:
            return self.party_a
        return None

    def is_allowed(self, email: Optional[str]) -> bool:
        return bool(email) and email.strip().lower() in self.identities

    def party_for_identity(self, email: Optional[str]) -> Optional[str]:
        if not email:
            return None
        return self.identities.get(email.strip().lower())
