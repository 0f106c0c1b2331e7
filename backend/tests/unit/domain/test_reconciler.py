"""
Unit Tests for the Reconciler and index shifting
"""
import pytest

from ohsurvey.domain.area_path import AreaPath, canonicalize, parse
from ohsurvey.domain.area_tree import AreaNode, remove_area, resolve
from ohsurvey.domain.aggregate import new_survey, apply_patch
from ohsurvey.domain.reconciler import (
    valid_keys,
    reconcile,
    reconcile_aggregate,
    shift_after_removal,
    remap_after_move,
)


def key(*indices):
    return canonicalize(AreaPath(*indices))


def one_main_one_sub():
    return (AreaNode(name='Main', sub_areas=(AreaNode(name='Sub'),)),)


def deep_tree():
    return (
        AreaNode(name='A', sub_areas=(
            AreaNode(name='A1', sub_areas=(AreaNode(name='A1a'),)),
            AreaNode(name='A2'),
        )),
        AreaNode(name='B'),
    )


class TestValidKeys:
    def test_every_level_enumerated(self):
        assert valid_keys(deep_tree()) == {key(0), key(0, 0), key(0, 0, 0), key(0, 1), key(1)}

    def test_empty_tree(self):
        assert valid_keys(()) == frozenset()


class TestReconcile:
    def test_drops_dangling_main(self):
        store = {key(0): 'main', key(0, 0): 'sub', key(1): 'gone'}
        result = reconcile(one_main_one_sub(), store)
        assert result == {key(0): 'main', key(0, 0): 'sub'}

    def test_sub_sub_entry_dropped_after_parent_removed(self):
        tree = deep_tree()
        store = {key(0, 0, 0): ['noise'], key(1): ['kept']}
        after = remove_area(tree, AreaPath(0, 0))
        # A2 slid into index 0 and has no children, so ss 0 no longer resolves
        assert key(0, 0, 0) not in reconcile(after, store)

    def test_malformed_key_dropped_without_raising(self):
        store = {'not json': 1, key(0): 2}
        assert reconcile(one_main_one_sub(), store) == {key(0): 2}

    @pytest.mark.parametrize('bad_key', ['', '[]', '{"sub":0}', '{"main":-1}', '{"main":0,"ss":0}', '{'])
    def test_other_malformed_keys(self, bad_key):
        assert reconcile(one_main_one_sub(), {bad_key: 'x'}) == {}

    def test_unchanged_store_returned_by_identity(self):
        store = {key(0): 'a', key(0, 0): 'b'}
        assert reconcile(one_main_one_sub(), store) is store

    def test_empty_store(self):
        store = {}
        assert reconcile(deep_tree(), store) is store
        assert reconcile(deep_tree(), None) == {}

    def test_non_canonical_valid_key_survives(self):
        spaced = '{"main": 0}'
        store = {spaced: 'kept'}
        assert reconcile(one_main_one_sub(), store) is store

    def test_everything_dropped_for_empty_tree(self):
        assert reconcile((), {key(0): 'a', 'junk': 'b'}) == {}

    def test_idempotent(self):
        store = {key(0): 1, key(3): 2, 'bad': 3, key(0, 0, 0): 4, key(0, 1): 5}
        once = reconcile(deep_tree(), store)
        twice = reconcile(deep_tree(), once)
        assert twice == once
        assert twice is once

    def test_complete_and_minimal(self):
        tree = deep_tree()
        valid = valid_keys(tree)
        store = {key(0): 1, key(5): 2, key(0, 1): 3, key(0, 1, 0): 4, key(1): 5, 'x': 6}
        result = reconcile(tree, store)

        # Completeness: everything left resolves
        for k in result:
            assert resolve(tree, parse(k)) is not None
        # Minimality: nothing valid was lost
        for k in store:
            if k in valid:
                assert k in result


class TestReconcileAggregate:
    def test_reconciles_every_category(self):
        aggregate = new_survey(areas=one_main_one_sub())
        stale = {key(0): 'keep', key(4): 'drop'}
        aggregate = apply_patch(aggregate, {
            'noise_sources_by_area': dict(stale),
            'comments_by_area': dict(stale),
            'hearing_issued_status': dict(stale),
        })

        result = reconcile_aggregate(aggregate)

        assert result.noise_sources_by_area == {key(0): 'keep'}
        assert result.comments_by_area == {key(0): 'keep'}
        assert result.hearing_issued_status == {key(0): 'keep'}
        assert result.measurements_by_area is aggregate.measurements_by_area

    def test_clean_aggregate_returned_by_identity(self):
        aggregate = new_survey(areas=one_main_one_sub(), comments_by_area={key(0): 'fine'})
        assert reconcile_aggregate(aggregate) is aggregate

    def test_read_only_never_reconciles(self):
        aggregate = new_survey(areas=(), comments_by_area={key(0): 'stale'})
        assert reconcile_aggregate(aggregate, read_only=True) is aggregate

    def test_dangling_selection_cleared(self):
        aggregate = new_survey(areas=one_main_one_sub(), current_area_path=AreaPath(2))
        assert reconcile_aggregate(aggregate).current_area_path is None

    def test_live_selection_kept(self):
        aggregate = new_survey(areas=one_main_one_sub(), current_area_path=AreaPath(0, 0))
        assert reconcile_aggregate(aggregate) is aggregate

    def test_read_only_keeps_dangling_selection(self):
        aggregate = new_survey(areas=(), current_area_path=AreaPath(0))
        assert reconcile_aggregate(aggregate, read_only=True).current_area_path == AreaPath(0)


class TestShiftAfterRemoval:
    def test_main_removal_shifts_later_mains(self):
        store = {key(0): 'a', key(1): 'b', key(1, 0): 'b-sub', key(2): 'c'}
        result = shift_after_removal(store, AreaPath(1))
        assert result == {key(0): 'a', key(1): 'c'}

    def test_later_main_descendants_follow(self):
        store = {key(2, 1): 'c-sub', key(2, 1, 0): 'c-sub-sub'}
        result = shift_after_removal(store, AreaPath(0))
        assert result == {key(1, 1): 'c-sub', key(1, 1, 0): 'c-sub-sub'}

    def test_sub_removal_only_touches_siblings(self):
        store = {key(0): 'main', key(0, 0): 'x', key(0, 2): 'z', key(1, 2): 'other main'}
        result = shift_after_removal(store, AreaPath(0, 1))
        assert result == {key(0): 'main', key(0, 0): 'x', key(0, 1): 'z', key(1, 2): 'other main'}

    def test_sub_sub_removal(self):
        store = {key(0, 0, 0): 'a', key(0, 0, 1): 'b', key(0, 1, 1): 'other'}
        result = shift_after_removal(store, AreaPath(0, 0, 0))
        assert result == {key(0, 0, 0): 'b', key(0, 1, 1): 'other'}

    def test_malformed_keys_left_for_reconcile(self):
        store = {'junk': 1, key(0): 2}
        assert shift_after_removal(store, AreaPath(0)) == {'junk': 1}

    def test_untouched_store_keeps_identity(self):
        store = {key(0): 'a'}
        assert shift_after_removal(store, AreaPath(3)) is store

    def test_two_spellings_of_one_area_keep_canonical_entry(self):
        store = {key(2): 'canon', '{"main": 2}': 'spaced'}
        assert shift_after_removal(store, AreaPath(1)) == {key(1): 'canon'}

    def test_canonical_entry_wins_regardless_of_order(self):
        store = {'{"main": 2, "sub": 0}': 'spaced', key(2, 0): 'canon', key(0): 'a'}
        assert shift_after_removal(store, AreaPath(1)) == {key(1, 0): 'canon', key(0): 'a'}

    def test_rekeyed_spelling_becomes_canonical(self):
        store = {'{"main": 2}': 'spaced'}
        assert shift_after_removal(store, AreaPath(0)) == {key(1): 'spaced'}


class TestRemapAfterMove:
    def test_move_forward(self):
        store = {key(0): 'a', key(1): 'b', key(2): 'c'}
        assert remap_after_move(store, AreaPath(0), 2) == {key(2): 'a', key(0): 'b', key(1): 'c'}

    def test_move_backward_with_descendants(self):
        store = {key(0): 'a', key(2): 'c', key(2, 0): 'c-sub'}
        assert remap_after_move(store, AreaPath(2), 0) == {key(1): 'a', key(0): 'c', key(0, 0): 'c-sub'}

    def test_same_index_is_noop(self):
        store = {key(0): 'a'}
        assert remap_after_move(store, AreaPath(0), 0) is store

    def test_two_spellings_collapse_to_canonical_entry(self):
        store = {'{"main": 0}': 'spaced', key(0): 'canon', key(1): 'b'}
        assert remap_after_move(store, AreaPath(0), 1) == {key(1): 'canon', key(0): 'b'}
