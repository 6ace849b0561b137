import pytest

from arcade_index.errors import InvalidInputError
from arcade_index.identity import MAX_IDENTITY_LENGTH, normalize_identity


@pytest.mark.unit
class TestNormalizeIdentity:

    def test_lower_cases_and_trims(self):
        assert normalize_identity("  0xAbCdEF12 ") == "0xabcdef12"

    def test_case_variants_map_to_same_key(self):
        assert normalize_identity("ALICE") == normalize_identity("alice") == normalize_identity("Alice")

    def test_accepts_account_style_identifiers(self):
        assert normalize_identity("Chain:Shard-1.alice_01") == "chain:shard-1.alice_01"

    @pytest.mark.parametrize("raw", ["", "   ", "has space", "semi;colon", "slash/es", "ünïcode"])
    def test_rejects_malformed(self, raw):
        with pytest.raises(InvalidInputError):
            normalize_identity(raw)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidInputError):
            normalize_identity(12345)
        with pytest.raises(InvalidInputError):
            normalize_identity(None)

    def test_length_limit(self):
        assert normalize_identity("a" * MAX_IDENTITY_LENGTH) == "a" * MAX_IDENTITY_LENGTH
        with pytest.raises(InvalidInputError):
            normalize_identity("a" * (MAX_IDENTITY_LENGTH + 1))
