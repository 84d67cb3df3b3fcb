import json

import pytest

from klondike.rules import FLEXIBLE, PROFILES, STRICT, SimulationProfile


def test_builtin_profiles():
    assert (STRICT.max_moves, STRICT.max_stock_cycles, STRICT.stuck_limit) == (3000, 8, 200)
    assert STRICT.accept_threshold == 52
    assert (FLEXIBLE.max_moves, FLEXIBLE.max_stock_cycles, FLEXIBLE.stuck_limit) == (500, 3, 50)
    assert FLEXIBLE.accept_threshold == 48
    assert PROFILES == {"strict": STRICT, "flexible": FLEXIBLE}


@pytest.mark.parametrize(
    "solved,expected",
    [(52, True), (48, True), (47, False), (0, False)],
)
def test_flexible_acceptance(solved, expected):
    assert FLEXIBLE.accepts(solved) is expected


def test_strict_only_accepts_complete_clears():
    assert STRICT.accepts(52)
    assert not STRICT.accepts(51)


def test_profile_coerces_loose_numeric_input():
    profile = SimulationProfile(
        name="custom",
        max_moves="750",
        max_stock_cycles=" Three ",
        stuck_limit=40.0,
        accept_threshold="44",
    )
    assert profile.max_moves == 750
    assert profile.max_stock_cycles == 3
    assert profile.stuck_limit == 40
    assert profile.accept_threshold == 44


@pytest.mark.parametrize(
    "field,value,error",
    [
        ("max_moves", -1, ValueError),
        ("max_moves", True, TypeError),
        ("max_moves", [500], TypeError),
        ("max_stock_cycles", "lots", ValueError),
        ("stuck_limit", 2.5, ValueError),
        ("stuck_limit", float("nan"), ValueError),
        ("accept_threshold", 53, ValueError),
    ],
)
def test_profile_rejects_invalid_limits(field, value, error):
    values = FLEXIBLE.to_dict()
    values[field] = value
    with pytest.raises(error):
        SimulationProfile.from_dict(values)


def test_profile_json_round_trip_ignores_unknown_keys():
    payload = json.loads(STRICT.to_json())
    payload["comment"] = "ignored"
    restored = SimulationProfile.from_json(json.dumps(payload))
    assert restored == STRICT


def test_with_threshold_keeps_caps():
    relaxed = STRICT.with_threshold(40)
    assert relaxed.accept_threshold == 40
    assert relaxed.max_moves == STRICT.max_moves
    assert STRICT.accept_threshold == 52


def test_with_overrides_revalidates():
    assert FLEXIBLE.with_overrides(stuck_limit=" 75 ").stuck_limit == 75
    assert FLEXIBLE.stuck_limit == 50


@pytest.mark.parametrize(
    "value,error",
    [
        (None, TypeError),
        ("", ValueError),
        ("abc", ValueError),
        (-3, ValueError),
        (12.9, ValueError),
        (float("inf"), ValueError),
        (True, TypeError),
    ],
)
def test_stuck_limit_override_rejects_bad_values(value, error):
    with pytest.raises(error):
        FLEXIBLE.with_overrides(stuck_limit=value)


@pytest.mark.parametrize("payload", [["strict"], "strict"])
def test_from_dict_requires_a_mapping(payload):
    with pytest.raises(TypeError):
        SimulationProfile.from_dict(payload)


def test_from_dict_reports_missing_fields():
    values = STRICT.to_dict()
    del values["stuck_limit"]
    with pytest.raises(ValueError, match="stuck_limit"):
        SimulationProfile.from_dict(values)
