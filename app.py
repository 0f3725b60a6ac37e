"""
app.py - minimal entrypoint for Streamlit app

Keep this file tiny so streamlit can import it without side-effects.
Run the app with:
    streamlit run app.py

Secrets are copied into environment variables first, so src.config reads
one source whether the app runs locally or on Streamlit Cloud.
"""
import json as _json
import os

import streamlit as _st

SECRET_KEYS = (
    "USER1_NAME",
    "USER2_NAME",
    "USER1_EMAIL",
    "USER2_EMAIL",
    "GOOGLE_SHEET_ID",
    "GOOGLE_SERVICE_ACCOUNT_JSON",
    "GOOGLE_SERVICE_ACCOUNT_FILE",
    "EXPENSES_DATA_FILE",
    "TREND_DAYS",
    "CURRENCY_SYMBOL",
)


def export_secrets_to_env():
    try:
        _secrets = dict(_st.secrets)
    except FileNotFoundError:
        # no secrets.toml: rely on the environment as-is
        return
    for _k in SECRET_KEYS:
        if _k in _secrets and _secrets[_k] and _k not in os.environ:
            os.environ[_k] = str(_secrets[_k])
    # Also support the standard Streamlit table-style service account secret:
    # [gcp_service_account] ...fields...
    if "GOOGLE_SERVICE_ACCOUNT_JSON" not in os.environ and _secrets.get("gcp_service_account"):
        os.environ["GOOGLE_SERVICE_ACCOUNT_JSON"] = _json.dumps(dict(_secrets["gcp_service_account"]))


export_secrets_to_env()

from src.ui import dashboard  # noqa: E402


def main():
    dashboard.main()


if __name__ == "__main__":
    main()
