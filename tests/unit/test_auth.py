"""
Unit tests for authentication module.
"""

from nissekomm.auth import hash_pin, verify_pin, authenticate_family, reset_family_pin


class TestPinHashing:
    """Test PIN hashing functionality."""

    def test_hash_pin_returns_different_value(self):
        """Hash should never equal plaintext PIN."""
        assert hash_pin("1234") != "1234"

    def test_hash_pin_different_salts(self):
        """Same PIN should produce different hashes due to different salts."""
        assert hash_pin("1234") != hash_pin("1234")


class TestPinVerification:
    """Test PIN verification functionality."""

    def test_verify_pin_correct_pin(self):
        """Correct PIN should verify successfully."""
        assert verify_pin("2412", hash_pin("2412")) is True

    def test_verify_pin_incorrect_pin(self):
        """Incorrect PIN should fail verification."""
        assert verify_pin("0000", hash_pin("2412")) is False

    def test_verify_pin_invalid_hash(self):
        """Invalid hash format should return False."""
        assert verify_pin("any_pin", "invalid_hash") is False

    def test_verify_pin_empty_hash(self):
        """A family row with an empty hash never verifies."""
        assert verify_pin("1234", "") is False


class MockFamilyStore:
    """In-memory stand-in for the Families worksheet functions."""

    def __init__(self):
        self.families = {}

    def get_family(self, family_name, client):
        return self.families.get(family_name)

    def create_family(self, family_name, pin_hash, session_id, client):
        family = {
            'family_name': family_name,
            'pin_hash': pin_hash,
            'session_id': session_id,
            'timestamp': '2025-12-01T00:00:00Z'
        }
        self.families[family_name] = family
        return family

    def update_family_pin(self, family_name, new_pin_hash, client):
        if family_name not in self.families:
            return False
        self.families[family_name]['pin_hash'] = new_pin_hash
        return True


def _patch_store(monkeypatch, store):
    monkeypatch.setattr('nissekomm.database.get_family', store.get_family)
    monkeypatch.setattr('nissekomm.database.create_family', store.create_family)
    monkeypatch.setattr('nissekomm.database.update_family_pin', store.update_family_pin)


class TestAuthenticateFamily:
    """Test family authentication functionality."""

    def test_authenticate_new_family(self, monkeypatch):
        """New family should be created and authenticated."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)

        family = authenticate_family("Hansen", "1234", None)

        assert family is not None
        assert family['family_name'] == "Hansen"
        assert family['pin_hash'] != "1234"
        assert family['session_id']

    def test_new_families_get_distinct_sessions(self, monkeypatch):
        """Each family is issued its own session id."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)

        hansen = authenticate_family("Hansen", "1234", None)
        olsen = authenticate_family("Olsen", "1234", None)

        assert hansen['session_id'] != olsen['session_id']

    def test_authenticate_existing_family_correct_pin(self, monkeypatch):
        """Existing family with correct PIN keeps its session."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)
        store.create_family("Hansen", hash_pin("1234"), "sess-hansen", None)

        family = authenticate_family("Hansen", "1234", None)

        assert family is not None
        assert family['session_id'] == "sess-hansen"

    def test_authenticate_existing_family_incorrect_pin(self, monkeypatch):
        """Existing family with incorrect PIN should fail authentication."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)
        store.create_family("Hansen", hash_pin("1234"), "sess-hansen", None)

        assert authenticate_family("Hansen", "9999", None) is None

    def test_authenticate_against_worksheet(self, families_sheet):
        """End to end through the database layer with a mock worksheet."""
        created = authenticate_family("Berg", "2412", families_sheet)
        again = authenticate_family("Berg", "2412", families_sheet)

        assert len(families_sheet.rows) == 1
        assert again['session_id'] == created['session_id']
        assert authenticate_family("Berg", "0000", families_sheet) is None


class TestResetFamilyPin:
    """Test admin PIN reset."""

    def test_reset_pin(self, monkeypatch):
        """After a reset only the new PIN works."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)
        store.create_family("Hansen", hash_pin("1234"), "sess-hansen", None)

        assert reset_family_pin("Hansen", "4321", None) is True
        assert authenticate_family("Hansen", "4321", None) is not None
        assert authenticate_family("Hansen", "1234", None) is None

    def test_reset_pin_too_short(self, monkeypatch):
        """PINs shorter than four characters are refused."""
        store = MockFamilyStore()
        _patch_store(monkeypatch, store)
        store.create_family("Hansen", hash_pin("1234"), "sess-hansen", None)

        assert reset_family_pin("Hansen", "12", None) is False

    def test_reset_pin_unknown_family(self, monkeypatch):
        """Unknown family cannot be reset."""
        _patch_store(monkeypatch, MockFamilyStore())
        assert reset_family_pin("Nobody", "4321", None) is False
