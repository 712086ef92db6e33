import pytest

from soaria.engine import rewards


class TestExperience:
    def test_level_curve(self):
        assert rewards.xp_for_next_level(1) == 100
        assert rewards.xp_for_next_level(12) == 1200

    def test_gain_below_threshold(self):
        assert rewards.apply_experience(1, 40, 50) == (1, 90)

    def test_exact_threshold_levels_up(self):
        assert rewards.apply_experience(1, 40, 60) == (2, 0)

    def test_multiple_level_ups_carry_over(self):
        # 100 to reach 2, 200 to reach 3, 50 left
        assert rewards.apply_experience(1, 0, 350) == (3, 50)

    @pytest.mark.parametrize("level,experience", [(0, 0), (-3, -10)])
    def test_bad_inputs_are_floored(self, level, experience):
        assert rewards.apply_experience(level, experience, 10) == (1, 10)


class TestGrants:
    def test_item_name_fallback(self, store, db, user):
        assert rewards.grant_item(db, user, 5, 3) == "Item"
        assert store.inventory[(user, 5)] == 3

    def test_level_up_advances_reach_level(self, store, db, user):
        from soaria.engine.lifecycle import accept_quest

        quest = store.add_quest(objectives=[("reach_level", 6)])
        accept_quest(db, user, quest["id"])

        assert rewards.grant_experience(db, user, 500) == 6
        assert store.status(user, quest["id"]) == "completed"
