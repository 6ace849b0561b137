import pytest

from arcade_index.errors import InvalidInputError
from arcade_index.models.schemas import GameType
from arcade_index.validators.sync_validators import (
    clamp_limit,
    validate_display_name,
    validate_game_type,
    validate_non_negative_int,
    validate_optional_int,
    validate_shard_ref,
    validate_submission_id,
)


@pytest.mark.unit
class TestDisplayName:

    @pytest.mark.parametrize("name", ["abc", "Player_One", "x-y-z", "a" * 20, "007"])
    def test_valid(self, name):
        assert validate_display_name(name) == name

    @pytest.mark.parametrize("name", ["ab", "a" * 21, "two words", "emoji😀", "semi;colon", ""])
    def test_invalid(self, name):
        with pytest.raises(InvalidInputError):
            validate_display_name(name)

    def test_non_string(self):
        with pytest.raises(InvalidInputError):
            validate_display_name(None)


@pytest.mark.unit
class TestGameType:

    def test_every_known_type_accepted(self):
        for game_type in GameType:
            assert validate_game_type(game_type.value) is game_type

    @pytest.mark.parametrize("name", ["PINBALL", "speed_clicker", "", None, 1])
    def test_unknown_type_rejected(self, name):
        with pytest.raises(InvalidInputError):
            validate_game_type(name)


@pytest.mark.unit
class TestNumbers:

    def test_non_negative(self):
        assert validate_non_negative_int(0, "rawScore") == 0
        assert validate_non_negative_int(42, "rawScore") == 42

    @pytest.mark.parametrize("value", [-1, 1.5, "10", True, None])
    def test_rejected(self, value):
        with pytest.raises(InvalidInputError):
            validate_non_negative_int(value, "xpEarned")

    def test_optional_int_allows_none_and_negative(self):
        assert validate_optional_int(None, "bonusData") is None
        assert validate_optional_int(-3, "bonusData") == -3
        with pytest.raises(InvalidInputError):
            validate_optional_int(False, "bonusData")


@pytest.mark.unit
class TestOptionalStrings:

    def test_shard_ref(self):
        assert validate_shard_ref(None) is None
        assert validate_shard_ref("") is None
        assert validate_shard_ref("chain-7") == "chain-7"
        with pytest.raises(InvalidInputError):
            validate_shard_ref("x" * 129)

    def test_submission_id(self):
        assert validate_submission_id(None) is None
        assert validate_submission_id("tx:0xabc-1") == "tx:0xabc-1"
        for bad in ["", "has space", "x" * 129, 5]:
            with pytest.raises(InvalidInputError):
                validate_submission_id(bad)


@pytest.mark.unit
class TestClampLimit:

    def test_default_when_missing(self):
        assert clamp_limit(None, 10, 100) == 10

    def test_within_range_unchanged(self):
        assert clamp_limit(25, 10, 100) == 25

    def test_bounds(self):
        assert clamp_limit(0, 10, 100) == 1
        assert clamp_limit(-7, 10, 100) == 1
        assert clamp_limit(5000, 10, 100) == 100
