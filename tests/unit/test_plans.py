import pytest

from guestlens.core.plans import MB, PlanLimits, limits_for, normalize_plan_name, remaining_capacity
from guestlens.models.enums import PlanName


@pytest.mark.parametrize("raw, expected", [
    ("free", PlanName.free),
    ("Starter", PlanName.starter),
    ("HOBBY", PlanName.hobby),
    ("Pro (monthly)", PlanName.pro),
    ("Business Pro", PlanName.business),
    ("enterprise", PlanName.free),
    ("", PlanName.free),
    (None, PlanName.free),
])
def test_normalize_plan_name(raw, expected):
    assert normalize_plan_name(raw) == expected


def test_limits_table():
    assert limits_for("free") == PlanLimits(PlanName.free, 10 * MB, 20)
    assert limits_for("starter").max_photos_per_event == 100
    assert limits_for("hobby").max_file_size_bytes == 25 * MB
    assert limits_for("pro") == PlanLimits(PlanName.pro, 50 * MB, 1000)
    assert limits_for("business").max_photos_per_event is None


def test_unknown_plan_is_most_restrictive():
    unknown = limits_for("platinum")
    assert unknown.max_file_size_bytes == min(l.max_file_size_bytes for l in map(limits_for, PlanName))


def test_remaining_capacity():
    assert remaining_capacity(limits_for("free"), 5) == 15
    assert remaining_capacity(limits_for("free"), 25) == 0
    assert remaining_capacity(limits_for("business"), 10_000) is None
