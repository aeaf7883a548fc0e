import pytest

from app.features.hierarchy.levels import (
    AccessLevel,
    HIERARCHY_LEVELS,
    can_manage,
    meets_level,
    parse_level,
    rank,
)


def test_ranks_are_ordered_from_super_admin_down():
    ordered = sorted(HIERARCHY_LEVELS, key=HIERARCHY_LEVELS.get, reverse=True)
    assert ordered == [
        AccessLevel.SUPER_ADMIN,
        AccessLevel.MANAGER,
        AccessLevel.DEPUTY,
        AccessLevel.BRANCH_ADMIN,
        AccessLevel.DIRECTORATE,
        AccessLevel.TEAM_LEADER,
        AccessLevel.EXPERT,
    ]


def test_every_level_but_sector_lead_has_a_rank():
    assert set(AccessLevel) - set(HIERARCHY_LEVELS) == {AccessLevel.SECTOR_LEAD}


def test_sector_lead_ranks_like_an_unknown_level():
    assert rank(AccessLevel.SECTOR_LEAD) == rank("sector_lead") == 0
    assert not meets_level(AccessLevel.SECTOR_LEAD, AccessLevel.DIRECTORATE)
    assert not can_manage(AccessLevel.SECTOR_LEAD, AccessLevel.EXPERT)
    assert can_manage(AccessLevel.EXPERT, AccessLevel.SECTOR_LEAD)


@pytest.mark.parametrize("value", ["public", "", None, "SUPER_ADMIN"])
def test_unknown_levels_rank_zero(value):
    assert rank(value) == 0
    assert parse_level(value) is None


def test_rank_accepts_strings_and_enums():
    assert rank("manager") == rank(AccessLevel.MANAGER) == 90


def test_can_manage_is_strict():
    assert can_manage(AccessLevel.MANAGER, AccessLevel.DEPUTY)
    assert not can_manage(AccessLevel.DEPUTY, AccessLevel.DEPUTY)
    assert not can_manage(AccessLevel.EXPERT, AccessLevel.TEAM_LEADER)


def test_every_ranked_level_outranks_unknown():
    for level in HIERARCHY_LEVELS:
        assert can_manage(level, "public")
    assert not can_manage("public", "public")


def test_can_manage_is_antisymmetric():
    for a in AccessLevel:
        for b in AccessLevel:
            assert not (can_manage(a, b) and can_manage(b, a))


def test_meets_level_includes_equal_rank():
    assert meets_level(AccessLevel.DIRECTORATE, AccessLevel.DIRECTORATE)
    assert meets_level(AccessLevel.MANAGER, AccessLevel.DIRECTORATE)
    assert not meets_level(AccessLevel.TEAM_LEADER, AccessLevel.DIRECTORATE)
    assert not meets_level("public", AccessLevel.EXPERT)
