from klog.utils.patch import MISSING, Missing, Present, present_values


def test_missing_is_a_falsy_singleton() -> None:
    assert Missing() is MISSING
    assert not MISSING
    assert repr(MISSING) == "MISSING"


def test_present_none_is_distinct_from_missing() -> None:
    cleared = Present(None)
    assert cleared != MISSING
    assert cleared.value is None


def test_present_values_keeps_only_supplied_fields() -> None:
    patch = {"title": Present("New"), "excerpt": Present(None), "content": MISSING}
    assert present_values(patch) == {"title": "New", "excerpt": None}
