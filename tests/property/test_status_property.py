from hypothesis import given
from hypothesis import strategies as st

from pipewatch.core.normalizer import STATUS_MAP, normalize_status
from pipewatch.models.build import BuildStatus


@given(st.sampled_from(sorted(STATUS_MAP)), st.sampled_from([str.lower, str.upper, str.title]))
def test_status_mapping_ignores_case(raw: str, case) -> None:
    assert normalize_status(case(raw)) == STATUS_MAP[raw].value


@given(st.text(min_size=1).filter(lambda value: value.upper() not in STATUS_MAP))
def test_unmapped_status_passes_through_lowercased(raw: str) -> None:
    assert normalize_status(raw) == raw.lower()


@given(st.sampled_from([member.value for member in BuildStatus]))
def test_build_status_values_are_lowercase(value: str) -> None:
    assert value == value.lower()
