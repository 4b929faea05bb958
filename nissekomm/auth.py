"""
Family login for NisseKomm.

A family logs in with a name and PIN. The first login creates the family;
later logins verify the PIN against its bcrypt hash. Each family gets a
stable session id that keys its game facts in the remote store.
"""

import logging
import uuid

import bcrypt

logger = logging.getLogger(__name__)

MIN_PIN_LENGTH = 4


def hash_pin(pin: str) -> str:
    """
    Hash a PIN using bcrypt with automatic salt generation.

    Args:
        pin: The plaintext PIN to hash

    Returns:
        The bcrypt hash as a string

    Example:
        >>> pin_hash = hash_pin("1234")
        >>> pin_hash != "1234"
        True
    """
    hashed = bcrypt.hashpw(pin.encode('utf-8'), bcrypt.gensalt())
    return hashed.decode('utf-8')


def verify_pin(pin: str, pin_hash: str) -> bool:
    """
    Verify a PIN against a stored bcrypt hash.

    Returns:
        True if PIN matches hash, False otherwise (including malformed hashes)
    """
    try:
        return bcrypt.checkpw(pin.encode('utf-8'), pin_hash.encode('utf-8'))
    except ValueError:
        # Malformed or empty stored hash
        return False


def new_session_id() -> str:
    return uuid.uuid4().hex


def authenticate_family(family_name: str, pin: str, sheets_client) -> dict | None:
    """
    Log a family in, creating it on first use.

    1. Look up family_name in the Families worksheet
    2. Not found: hash the PIN, issue a session id and create the row
    3. Found: verify the PIN against the stored hash

    Args:
        family_name: The family's unique identifier
        pin: The plaintext PIN
        sheets_client: Families worksheet

    Returns:
        Family record dict ({'family_name', 'pin_hash', 'session_id',
        'timestamp'}) on success, None on a wrong PIN

    Raises:
        PersistenceError: If database operation fails
        RateLimitError: If rate limit is exceeded after retries
    """
    from nissekomm.database import create_family, get_family

    family = get_family(family_name, sheets_client)

    if family is None:
        logger.info(f"Registering new family: {family_name}")
        return create_family(family_name, hash_pin(pin), new_session_id(), sheets_client)

    if verify_pin(pin, family.get('pin_hash', '')):
        return family

    logger.info(f"Rejected login for family: {family_name}")
    return None


def reset_family_pin(family_name: str, new_pin: str, sheets_client) -> bool:
    """
    Set a new PIN for a family (admin PIN recovery).

    ADMIN USE ONLY.

    Returns:
        True if updated, False if the family was not found or the PIN is too short
    """
    from nissekomm.database import update_family_pin

    if len(new_pin) < MIN_PIN_LENGTH:
        return False
    return update_family_pin(family_name, hash_pin(new_pin), sheets_client)
