"""
Unit Tests for the Area Tree
"""
import pytest

from ohsurvey.core.exceptions import AreaNotFoundError, InvalidAreaOperationError
from ohsurvey.domain.area_path import AreaPath
from ohsurvey.domain.area_tree import (
    AreaNode,
    resolve,
    iter_area_paths,
    leaf_paths,
    replace_at,
    add_area,
    update_area,
    remove_area,
    move_area,
    area_label,
    area_trail,
    areas_to_list,
    areas_from_list,
)


def build_tree():
    return (
        AreaNode(name='Plant', sub_areas=(
            AreaNode(name='Boilers', sub_areas=(AreaNode(name='Feed pumps'),)),
            AreaNode(name='Turbines'),
        )),
        AreaNode(name='Workshop'),
    )


class TestResolve:
    def test_resolves_each_level(self):
        tree = build_tree()
        assert resolve(tree, AreaPath(0)).name == 'Plant'
        assert resolve(tree, AreaPath(0, 1)).name == 'Turbines'
        assert resolve(tree, AreaPath(0, 0, 0)).name == 'Feed pumps'

    @pytest.mark.parametrize('path', [AreaPath(2), AreaPath(1, 0), AreaPath(0, 2), AreaPath(0, 0, 1)])
    def test_out_of_range_is_none(self, path):
        assert resolve(build_tree(), path) is None

    def test_iter_area_paths_is_depth_first(self):
        paths = [path for path, _ in iter_area_paths(build_tree())]
        assert paths == [AreaPath(0), AreaPath(0, 0), AreaPath(0, 0, 0), AreaPath(0, 1), AreaPath(1)]

    def test_iter_ignores_nodes_below_depth_limit(self):
        too_deep = AreaNode(name='x', sub_areas=(AreaNode(name='y', sub_areas=(
            AreaNode(name='z', sub_areas=(AreaNode(name='too deep'),)),
        )),))
        assert len(list(iter_area_paths((too_deep,)))) == 3

    def test_leaf_paths(self):
        assert leaf_paths(build_tree()) == [AreaPath(0, 0, 0), AreaPath(0, 1), AreaPath(1)]


class TestStructuralSharing:
    def test_replace_at_rebuilds_only_ancestors(self):
        tree = build_tree()
        updated = replace_at(tree, AreaPath(0, 0, 0), lambda n: AreaNode(name='Renamed', id=n.id))

        assert updated is not tree
        assert updated[1] is tree[1]
        assert updated[0].sub_areas[1] is tree[0].sub_areas[1]
        assert updated[0] is not tree[0]
        assert updated[0].sub_areas[0].sub_areas[0].name == 'Renamed'

    def test_replace_at_unresolved_returns_input(self):
        tree = build_tree()
        assert replace_at(tree, AreaPath(5), lambda n: n) is tree
        assert replace_at(tree, AreaPath(0, 1, 0), lambda n: AreaNode(name='x')) is tree


class TestEdits:
    def test_add_main_and_nested(self):
        tree = add_area((), AreaNode(name='A'))
        tree = add_area(tree, AreaNode(name='A1'), AreaPath(0))
        tree = add_area(tree, AreaNode(name='A1a'), AreaPath(0, 0))
        assert resolve(tree, AreaPath(0, 0, 0)).name == 'A1a'

    def test_add_under_missing_parent(self):
        with pytest.raises(AreaNotFoundError):
            add_area(build_tree(), AreaNode(name='x'), AreaPath(7))

    def test_add_below_sub_sub_rejected(self):
        with pytest.raises(InvalidAreaOperationError):
            add_area(build_tree(), AreaNode(name='x'), AreaPath(0, 0, 0))

    def test_update_area(self):
        tree = build_tree()
        updated = update_area(tree, AreaPath(1), name='Main workshop', noise_level_db=91.5)
        assert resolve(updated, AreaPath(1)).name == 'Main workshop'
        assert resolve(updated, AreaPath(1)).noise_level_db == 91.5
        assert updated[0] is tree[0]

    def test_update_area_rejects_sub_areas(self):
        with pytest.raises(InvalidAreaOperationError):
            update_area(build_tree(), AreaPath(0), sub_areas=())

    def test_update_missing_area(self):
        with pytest.raises(AreaNotFoundError):
            update_area(build_tree(), AreaPath(0, 5), name='x')

    def test_update_with_same_values_keeps_identity(self):
        tree = build_tree()
        assert update_area(tree, AreaPath(1), name='Workshop') is tree

    def test_remove_area_drops_descendants(self):
        tree = build_tree()
        updated = remove_area(tree, AreaPath(0, 0))
        assert [n.name for n in resolve(updated, AreaPath(0)).sub_areas] == ['Turbines']
        assert updated[1] is tree[1]

    def test_remove_missing_area_is_noop(self):
        tree = build_tree()
        assert remove_area(tree, AreaPath(3)) is tree

    def test_move_area_clamps(self):
        tree = build_tree()
        moved = move_area(tree, AreaPath(0), 99)
        assert [n.name for n in moved] == ['Workshop', 'Plant']
        assert move_area(tree, AreaPath(0), 0) is tree


class TestLabels:
    def test_labels(self):
        tree = build_tree()
        assert area_label(tree, AreaPath(0)) == 'Main Area: Plant'
        assert area_label(tree, AreaPath(0, 1)) == 'Sub Area: Turbines'
        assert area_label(tree, AreaPath(0, 0, 0)) == 'Sub Sub Area: Feed pumps'
        assert area_label(tree, AreaPath(9)) == 'Unknown Area'
        assert area_label(tree, None) == 'Unknown Area'

    def test_trail(self):
        assert area_trail(build_tree(), AreaPath(0, 0, 0)) == 'Plant > Boilers > Feed pumps'
        assert area_trail(build_tree(), AreaPath(4)) == ''


class TestEncoding:
    def test_round_trip_preserves_tree(self):
        tree = build_tree()
        assert areas_from_list(areas_to_list(tree)) == tree

    def test_decoding_truncates_and_tolerates_missing_fields(self):
        data = [{'name': 'A', 'sub_areas': [{'name': 'B', 'sub_areas': [{'name': 'C', 'sub_areas': [{'name': 'D'}]}]}]}]
        tree = areas_from_list(data)
        assert resolve(tree, AreaPath(0, 0, 0)).name == 'C'
        assert resolve(tree, AreaPath(0, 0, 0)).sub_areas == ()
        assert resolve(tree, AreaPath(0)).details_completed is False

    def test_non_list_decodes_to_empty_tree(self):
        assert areas_from_list({'name': 'x'}) == ()
