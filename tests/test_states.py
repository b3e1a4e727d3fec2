import numpy as np
import pytest

from partition_rj import ConfigurationError, GroupedParameterState


def test_construction_derives_sizes_and_occupancy():
    st = GroupedParameterState([0, 2, 2, 0, 2], [1.0, 9.0, 3.0, 9.0])
    assert st.n == 5
    assert st.k_max == 4
    assert st.k == 2
    assert st.sizes.tolist() == [2, 0, 3, 0]
    assert st.active.tolist() == [True, False, True, False]
    assert st.free_slots().tolist() == [1, 3]
    assert st.splittable_slots().tolist() == [0, 2]
    assert st.members(2).tolist() == [1, 2, 4]
    assert st.value_of(4) == 3.0
    assert st.slot_of(3) == 0
    st.check_invariants()


def test_alternative_constructors():
    st = GroupedParameterState.identity([1.0, 2.0, 3.0])
    assert st.grouping.tolist() == [0, 1, 2]
    assert st.k == 3

    st = GroupedParameterState.single_group(4, 6, 2.0)
    assert st.sizes.tolist() == [4, 0, 0, 0, 0, 0]
    assert all(st.value_of(e) == 2.0 for e in range(4))


@pytest.mark.parametrize(
    "grouping, values",
    [
        ([0, 3], [1.0, 1.0, 1.0]),
        ([0, -1], [1.0, 1.0]),
        ([], [1.0]),
        ([0], []),
    ],
)
def test_invalid_configuration_raises(grouping, values):
    with pytest.raises(ConfigurationError):
        GroupedParameterState(grouping, values)


def test_active_must_match_values_and_occupancy():
    with pytest.raises(ConfigurationError):
        GroupedParameterState([0, 1], [1.0, 1.0, 1.0], active=[True, True])
    with pytest.raises(ConfigurationError):
        GroupedParameterState([0, 1], [1.0, 1.0, 1.0], active=[True, False, True])
    st = GroupedParameterState([0, 1], [1.0, 1.0, 1.0], active=[True, True, False])
    assert st.k == 2


def test_non_positive_occupied_value_warns():
    with pytest.warns(RuntimeWarning):
        GroupedParameterState([0, 0], [-1.0, 1.0])
    # free slots are not checked
    GroupedParameterState([0, 0], [1.0, -1.0])


def test_read_only_views():
    st = GroupedParameterState([0, 0], [1.0, 1.0])
    with pytest.raises(ValueError):
        st.values[0] = 5.0


def test_restore_rolls_back_bit_for_bit():
    st = GroupedParameterState([0, 0, 1, 1], [1.5, 2.5, 7.0])
    st.checkpoint()
    before = st.as_dict()

    st.assign(3, 2)
    st.assign(1, 2)
    st.set_value(2, 4.25)
    st.set_value(0, 0.1)
    assert st.sizes.tolist() == [1, 1, 2]
    assert st.touched_entries() == [1, 3]
    assert st.touched_slots() == [0, 1, 2]

    st.restore()
    after = st.as_dict()
    for key in before:
        assert np.array_equal(before[key], after[key])
    assert st.touched_entries() == []
    st.check_invariants()


def test_commit_keeps_changes_and_clears_journal():
    st = GroupedParameterState([0, 0, 1], [1.0, 2.0, 3.0])
    st.checkpoint()
    st.assign(2, 2)
    st.set_value(2, 5.0)
    st.commit()
    st.restore()  # nothing to roll back
    assert st.grouping.tolist() == [0, 0, 2]
    assert st.value_of(2) == 5.0


def test_is_dirty_tracks_grouping_and_target_value():
    st = GroupedParameterState([0, 0, 1, 2], [1.0, 2.0, 3.0])
    st.checkpoint()
    assert not any(st.is_dirty(e) for e in range(4))

    st.set_value(0, 1.1)
    assert st.is_dirty(0) and st.is_dirty(1)
    assert not st.is_dirty(2) and not st.is_dirty(3)

    st.assign(3, 1)
    assert st.is_dirty(3)
    assert not st.is_dirty(2)  # slot 1 grew but its value did not change
    st.commit()
    assert not any(st.is_dirty(e) for e in range(4))


def test_copy_is_independent():
    st = GroupedParameterState([0, 1], [1.0, 2.0, 3.0])
    cp = st.copy()
    cp.assign(1, 0)
    cp.set_value(0, 9.0)
    assert st.grouping.tolist() == [0, 1]
    assert st.value_of(0) == 1.0
