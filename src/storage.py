"""
storage.py - record store adapters

A store holds a flat collection of record dicts addressed by an opaque key
and exposes:
  - subscribe(callback): deliver the whole collection now and after every
    change; returns a Subscription that must be closed when the view goes away
  - append(record) -> key, replace(key, record), delete(key)

Backends:
  - GoogleSheetsStore: durable storage in a Google Sheet (preferred)
  - LocalJsonStore: a JSON file written atomically (fallback)

Write failures raise StoreError; nothing is retried.
"""

from typing import Any, Callable, Dict, List, Tuple
import ast
import json
import logging
import os
import shutil
import tempfile
import uuid

from src.config import AppConfig
from src.errors import StoreError

# Optional Google Sheets backend imports are lazy/optional; we try to use them
try:
    import gspread
    from google.oauth2.service_account import Credentials
except ImportError:
    gspread = None
    Credentials = None

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Dict[str, Any]]
SnapshotCallback = Callable[[Snapshot], None]


class Subscription:
    """Handle for a live snapshot listener. Usable as a context manager."""

    def __init__(self, store: "RecordStore", callback: SnapshotCallback):
        self._store = store
        self._callback = callback
        self.active = True

    def deliver(self, snapshot: Snapshot):
        if self.active:
            self._callback(snapshot)

    def close(self):
        if self.active:
            self.active = False
            self._store._unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class RecordStore:
    """
    Base class: subscriber fan-out on top of four primitives implemented by
    each backend (snapshot, _append, _replace, _delete).
    """

    name = "store"

    def __init__(self):
        self._subscribers: List[Subscription] = []

    # -- primitives --------------------------------------------------------
    def snapshot(self) -> Snapshot:
        raise NotImplementedError

    def _append(self, key: str, record: Dict[str, Any]):
        raise NotImplementedError

    def _replace(self, key: str, record: Dict[str, Any]):
        raise NotImplementedError

    def _delete(self, key: str):
        raise NotImplementedError

    # -- subscription ------------------------------------------------------
    def subscribe(self, callback: SnapshotCallback) -> Subscription:
        # read first so a failed initial load leaves nothing registered
        snap = self.snapshot()
        sub = Subscription(self, callback)
        self._subscribers.append(sub)
        sub.deliver(snap)
        return sub

    def _unsubscribe(self, sub: Subscription):
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def refresh(self):
        """Re-read the collection and push it to every live subscriber."""
        if not self._subscribers:
            return
        snap = self.snapshot()
        for sub in list(self._subscribers):
            sub.deliver(snap)

    def _publish_after_write(self):
        # the write itself succeeded; a failed re-read only delays the next snapshot
        try:
            self.refresh()
        except StoreError:
            logger.exception("Write succeeded but the follow-up snapshot could not be read")

    # -- mutations ---------------------------------------------------------
    @staticmethod
    def new_key() -> str:
        return uuid.uuid4().hex

    def append(self, record: Dict[str, Any]) -> str:
        key = self.new_key()
        self._append(key, record)
        logger.info("Appended record key=%s to %s", key, self.name)
        self._publish_after_write()
        return key

    def replace(self, key: str, record: Dict[str, Any]):
        self._replace(key, record)
        logger.info("Replaced record key=%s in %s", key, self.name)
        self._publish_after_write()

    def delete(self, key: str):
        self._delete(key)
        logger.info("Deleted record key=%s from %s", key, self.name)
        self._publish_after_write()


class LocalJsonStore(RecordStore):
    """Records kept in one JSON file: {"records": {key: record}}."""

    name = "local_json"

    def __init__(self, path: str):
        super().__init__()
        self.path = os.path.abspath(path)

    def snapshot(self) -> Snapshot:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.exception("Failed to read %s", self.path)
            raise StoreError(f"Could not read {self.path}") from exc
        return dict(data.get("records", {}) or {})

    def _write(self, records: Snapshot):
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        # atomic write: write to temp file then move
        fd, tmp_path = tempfile.mkstemp(prefix="tmp_expenses_", dir=os.path.dirname(self.path), text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"records": records}, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, self.path)
        except OSError as exc:
            logger.exception("Failed to save data file %s", self.path)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreError(f"Could not write {self.path}") from exc

    def _append(self, key, record):
        records = self.snapshot()
        records[key] = dict(record)
        self._write(records)

    def _replace(self, key, record):
        records = self.snapshot()
        if key not in records:
            raise StoreError(f"No record with key {key}")
        records[key] = dict(record)
        self._write(records)

    def _delete(self, key):
        records = self.snapshot()
        if key not in records:
            raise StoreError(f"No record with key {key}")
        del records[key]
        self._write(records)


class GoogleSheetsStore(RecordStore):
    """
    Google Sheets persistence backend.

    Data layout: worksheet "records", one row per record, column A holds the
    store key and the remaining columns the record fields.
    """

    name = "google_sheets"
    RECORDS_SHEET_NAME = "records"
    HEADERS = [
        "key",
        "id",
        "type",
        "user",
        "category",
        "amount",
        "date",
        "timestamp",
        "createdAt",
        "note",
        "splitAmount",
        "splitWith",
        "isCustomSplit",
        "paidBy",
        "paidTo",
        "settledBy",
        "updatedAt",
    ]
    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(self, config: AppConfig):
        super().__init__()
        self.available = False
        self.reason = ""
        self.sheet_id = config.sheet_id
        self._config = config
        self._spreadsheet = None
        self._ws = None

        if not self.sheet_id:
            self.reason = "GOOGLE_SHEET_ID is not set"
            return
        if gspread is None or Credentials is None:
            self.reason = "Google Sheets dependencies are unavailable"
            return

        try:
            creds = self._build_credentials()
            client = gspread.authorize(creds)
            self._spreadsheet = client.open_by_key(self.sheet_id)
            self._ws = self._get_or_create_worksheet(self.RECORDS_SHEET_NAME, rows=1000, cols=len(self.HEADERS))
            self._ensure_headers()
            self.available = True
        except Exception as exc:
            self.reason = f"Google Sheets init failed ({exc.__class__.__name__})"
            logger.warning("Google Sheets backend unavailable: %s", self.reason)

    def _build_credentials(self):
        service_account_json = self._config.service_account_json
        service_account_file = self._config.service_account_file

        if service_account_json:
            try:
                info = json.loads(service_account_json)
            except ValueError:
                # tolerate Python-dict style strings often used by mistake in env vars
                info = ast.literal_eval(service_account_json)
            if not isinstance(info, dict):
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON must decode to an object")
            return Credentials.from_service_account_info(info, scopes=self.SCOPES)

        if service_account_file:
            return Credentials.from_service_account_file(service_account_file, scopes=self.SCOPES)

        # Fallback to application default credentials if available.
        import google.auth
        creds, _ = google.auth.default(scopes=self.SCOPES)
        return creds

    def _get_or_create_worksheet(self, title: str, rows: int, cols: int):
        try:
            return self._spreadsheet.worksheet(title)
        except gspread.exceptions.WorksheetNotFound:
            return self._spreadsheet.add_worksheet(title=title, rows=rows, cols=cols)

    def _ensure_headers(self):
        first = self._ws.row_values(1) or []
        if [x.strip() for x in first] != self.HEADERS:
            if self._ws.col_count < len(self.HEADERS):
                self._ws.resize(cols=len(self.HEADERS))
            self._ws.update(range_name="A1", values=[self.HEADERS], value_input_option="RAW")

    @classmethod
    def record_to_row(cls, key: str, record: Dict[str, Any]) -> List[str]:
        row = [key]
        for header in cls.HEADERS[1:]:
            value = record.get(header, "")
            if value is None:
                value = ""
            elif isinstance(value, bool):
                value = "true" if value else "false"
            row.append(str(value))
        return row

    @classmethod
    def row_to_record(cls, headers: List[str], row: List[str]) -> Tuple[str, Dict[str, Any]]:
        record: Dict[str, Any] = {}
        for idx, header in enumerate(headers):
            if not header:
                continue
            record[header] = row[idx] if idx < len(row) else ""
        key = str(record.pop("key", "")).strip()
        return key, record

    def _require(self):
        if not self.available:
            raise StoreError(f"Google Sheets backend unavailable: {self.reason}")

    def snapshot(self) -> Snapshot:
        self._require()
        try:
            values = self._ws.get_all_values() or []
        except Exception as exc:
            logger.exception("Failed to load records from Google Sheets")
            raise StoreError("Could not read records from Google Sheets") from exc
        if not values:
            return {}
        headers = [str(h).strip() for h in values[0]]
        out: Snapshot = {}
        for row in values[1:]:
            if not any(str(c).strip() for c in row):
                continue
            key, record = self.row_to_record(headers, row)
            if key:
                out[key] = record
        return out

    def _find_row(self, key: str) -> int:
        keys = self._ws.col_values(1)
        for idx, value in enumerate(keys):
            if idx > 0 and str(value).strip() == key:
                return idx + 1
        raise StoreError(f"No record with key {key}")

    def _append(self, key, record):
        self._require()
        try:
            # RAW keeps user content as plain values, not spreadsheet formulas
            self._ws.append_row(self.record_to_row(key, record), value_input_option="RAW")
        except Exception as exc:
            logger.exception("Failed to append record to Google Sheets")
            raise StoreError("Could not save record to Google Sheets") from exc

    def _replace(self, key, record):
        self._require()
        try:
            row_number = self._find_row(key)
            self._ws.update(
                range_name=f"A{row_number}",
                values=[self.record_to_row(key, record)],
                value_input_option="RAW",
            )
        except StoreError:
            raise
        except Exception as exc:
            logger.exception("Failed to update record %s in Google Sheets", key)
            raise StoreError("Could not update record in Google Sheets") from exc

    def _delete(self, key):
        self._require()
        try:
            self._ws.delete_rows(self._find_row(key))
        except StoreError:
            raise
        except Exception as exc:
            logger.exception("Failed to delete record %s from Google Sheets", key)
            raise StoreError("Could not delete record from Google Sheets") from exc


def open_store(config: AppConfig) -> Tuple[RecordStore, str]:
    """
    Pick the backend: Google Sheets when configured and reachable, otherwise
    the local JSON file. Returns the store and a short reason for the UI.
    """
    if config.sheet_id:
        gs = GoogleSheetsStore(config)
        if gs.available:
            logger.info("Using Google Sheets store")
            return gs, "Persistent storage active (Google Sheets)."
        logger.warning("Falling back to local JSON: %s", gs.reason)
        reason = gs.reason
    else:
        reason = "GOOGLE_SHEET_ID is not set"
    return LocalJsonStore(config.data_file), f"Using local file fallback: {reason}."
