"""
Database layer for NisseKomm.

Handles Google Sheets operations with retry logic for rate limits. Two
worksheets are used:

- Families: Family_Name, PIN_Hash, Session_ID, Timestamp
- Facts: Session_ID, Key, Value (JSON), Timestamp

Every read and write is filtered by exact Session_ID / Family_Name match so
one family never sees another family's progress.
"""

import json
import logging
import time
from datetime import datetime, UTC
from typing import Callable, Any

logger = logging.getLogger(__name__)


class RateLimitError(Exception):
    """Raised when Google Sheets API returns a rate limit error."""
    pass


class PersistenceError(Exception):
    """Raised when Google Sheets operations fail."""
    pass


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace('+00:00', 'Z')


def retry_with_backoff(func: Callable, max_attempts: int = 3) -> Any:
    """
    Retry a function with exponential backoff for rate limit errors.

    Waits 1s, 2s, 4s between attempts. Errors are classified as rate limits
    by their message ('rate limit', 'quota' or '429').

    Args:
        func: The function to retry (should be a callable with no arguments)
        max_attempts: Maximum number of retry attempts (default: 3)

    Returns:
        The return value of the successful function call

    Raises:
        RateLimitError: If all retry attempts fail with rate limit errors
        PersistenceError: If the function fails with a non-rate-limit error

    Example:
        >>> records = retry_with_backoff(lambda: worksheet.get_all_records())
    """
    for attempt in range(max_attempts):
        try:
            return func()
        except PersistenceError:
            raise
        except Exception as e:
            error_msg = str(e).lower()
            is_rate_limit = ('rate limit' in error_msg or
                             'quota' in error_msg or
                             '429' in error_msg)

            if not is_rate_limit:
                raise PersistenceError(f"Database operation failed: {e}") from e

            if attempt == max_attempts - 1:
                raise RateLimitError(f"Rate limit exceeded after {max_attempts} attempts") from e

            wait_time = 2 ** attempt
            logger.warning(f"Sheets rate limit hit, retrying in {wait_time}s (attempt {attempt + 1})")
            time.sleep(wait_time)

    raise RateLimitError(f"Rate limit exceeded after {max_attempts} attempts")


def _find_family_row(records: list[dict], family_name: str) -> int | None:
    for idx, record in enumerate(records):
        if record.get('Family_Name') == family_name:
            return idx + 2  # +2 for header row and 1-indexing
    return None


def get_family(family_name: str, sheets_client) -> dict | None:
    """
    Fetch a family's login record.

    Args:
        family_name: The family's unique identifier
        sheets_client: Families worksheet (gspread worksheet object)

    Returns:
        {'family_name', 'pin_hash', 'session_id', 'timestamp'} if found,
        None if the family doesn't exist

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _get_family():
        for record in sheets_client.get_all_records():
            if record.get('Family_Name') == family_name:
                return {
                    'family_name': record.get('Family_Name'),
                    'pin_hash': str(record.get('PIN_Hash', '')),
                    'session_id': str(record.get('Session_ID', '')),
                    'timestamp': record.get('Timestamp', ''),
                }
        return None

    return retry_with_backoff(_get_family)


def create_family(family_name: str, pin_hash: str, session_id: str, sheets_client) -> dict:
    """
    Register a new family.

    Args:
        family_name: The family's unique identifier
        pin_hash: The bcrypt hashed PIN
        session_id: Session id that keys the family's facts
        sheets_client: Families worksheet (gspread worksheet object)

    Returns:
        Family record dict for the newly created family

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _create_family():
        timestamp = _utc_timestamp()
        sheets_client.append_row([family_name, pin_hash, session_id, timestamp])
        return {
            'family_name': family_name,
            'pin_hash': pin_hash,
            'session_id': session_id,
            'timestamp': timestamp,
        }

    return retry_with_backoff(_create_family)


def update_family_pin(family_name: str, new_pin_hash: str, sheets_client) -> bool:
    """
    Replace a family's PIN_Hash (admin PIN recovery).

    ADMIN USE ONLY: not exposed through the UI.

    Args:
        family_name: The family's unique identifier
        new_pin_hash: The new bcrypt hashed PIN
        sheets_client: Families worksheet (gspread worksheet object)

    Returns:
        True if the PIN was updated, False if the family was not found

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries

    Example:
        >>> from nissekomm.auth import hash_pin
        >>> update_family_pin("Familien Hansen", hash_pin("4321"), worksheet)
        True
    """
    def _update_pin():
        row_num = _find_family_row(sheets_client.get_all_records(), family_name)
        if row_num is None:
            return False
        sheets_client.update_cell(row_num, 2, new_pin_hash)
        return True

    return retry_with_backoff(_update_pin)


def load_session_facts(session_id: str, sheets_client) -> dict[str, Any]:
    """
    Load every fact stored for one session.

    Rows whose Value is not valid JSON are skipped with a warning.

    Args:
        session_id: Session whose facts to load
        sheets_client: Facts worksheet (gspread worksheet object)

    Returns:
        Dict of fact key to decoded value

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    def _load():
        facts = {}
        for record in sheets_client.get_all_records():
            if str(record.get('Session_ID')) != session_id:
                continue
            key = record.get('Key')
            try:
                facts[key] = json.loads(str(record.get('Value', 'null')))
            except json.JSONDecodeError:
                logger.warning(f"Skipping unreadable fact {key!r} for session {session_id}")
        return facts

    return retry_with_backoff(_load)


def _find_fact_row(records: list[dict], session_id: str, key: str) -> int | None:
    for idx, record in enumerate(records):
        if str(record.get('Session_ID')) == session_id and record.get('Key') == key:
            return idx + 2  # +2 for header row and 1-indexing
    return None


def upsert_fact(session_id: str, key: str, value: Any, sheets_client) -> bool:
    """
    Write one fact, updating the existing (session, key) row if present.

    Writing the same value twice leaves a single row, so re-applying a fact
    is idempotent.

    Args:
        session_id: Session that owns the fact
        key: Fact key
        value: JSON-serializable value
        sheets_client: Facts worksheet (gspread worksheet object)

    Returns:
        True on success

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    encoded = json.dumps(value, ensure_ascii=False)

    def _upsert():
        timestamp = _utc_timestamp()
        row_num = _find_fact_row(sheets_client.get_all_records(), session_id, key)
        if row_num is None:
            sheets_client.append_row([session_id, key, encoded, timestamp])
        else:
            sheets_client.update_cell(row_num, 3, encoded)
            sheets_client.update_cell(row_num, 4, timestamp)
        return True

    return retry_with_backoff(_upsert)


def delete_fact(session_id: str, key: str, sheets_client) -> bool:
    """
    Remove one fact row.

    Returns:
        True if a row was removed, False if the fact did not exist
    """
    def _delete():
        row_num = _find_fact_row(sheets_client.get_all_records(), session_id, key)
        if row_num is None:
            return False
        sheets_client.delete_rows(row_num)
        return True

    return retry_with_backoff(_delete)


def clear_session_facts(session_id: str, sheets_client) -> int:
    """
    Remove every fact row of a session.

    Returns:
        Number of rows removed
    """
    def _clear():
        records = sheets_client.get_all_records()
        rows = [idx + 2 for idx, record in enumerate(records)
                if str(record.get('Session_ID')) == session_id]
        # Delete bottom-up so earlier row numbers stay valid
        for row_num in reversed(rows):
            sheets_client.delete_rows(row_num)
        return len(rows)

    return retry_with_backoff(_clear)
