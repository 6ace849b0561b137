import math

import pytest

from arcade_index.progression import level_for_xp, next_level_xp, xp_for_level


@pytest.mark.unit
class TestLevelForXp:

    @pytest.mark.parametrize("xp, level", [
        (0, 1),
        (99, 1),
        (100, 2),
        (200, 2),
        (399, 2),
        (400, 3),
        (900, 4),
        (10_000, 11),
    ])
    def test_known_values(self, xp, level):
        assert level_for_xp(xp) == level

    def test_matches_square_root_formula(self):
        for xp in range(0, 50_000, 37):
            assert level_for_xp(xp) == math.floor(math.sqrt(xp / 100)) + 1

    def test_exact_for_large_values(self):
        # (10**9)**2 * 100 is the first XP of level 10**9 + 1
        threshold = (10 ** 9) ** 2 * 100
        assert level_for_xp(threshold) == 10 ** 9 + 1
        assert level_for_xp(threshold - 1) == 10 ** 9

    def test_negative_xp_rejected(self):
        with pytest.raises(ValueError):
            level_for_xp(-1)


@pytest.mark.unit
class TestThresholds:

    def test_xp_for_level_is_inverse(self):
        for level in range(1, 50):
            assert level_for_xp(xp_for_level(level)) == level
            if level > 1:
                assert level_for_xp(xp_for_level(level) - 1) == level - 1

    def test_next_level_xp(self):
        assert next_level_xp(0) == 100
        assert next_level_xp(150) == 400
        assert next_level_xp(400) == 900

    def test_level_below_one_rejected(self):
        with pytest.raises(ValueError):
            xp_for_level(0)
