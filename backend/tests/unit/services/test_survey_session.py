"""
Unit Tests for SurveySession
Tests for: read-only capability, structural edits, store writes, equipment
"""
import pytest

from ohsurvey.core.exceptions import (
    AreaNotFoundError,
    EquipmentNotFoundError,
    InvalidAreaOperationError,
    ReadOnlySurveyError,
    UnknownCategoryError,
)
from ohsurvey.domain.area_path import AreaPath
from ohsurvey.domain.area_tree import AreaNode, resolve
from ohsurvey.domain.aggregate import (
    Equipment,
    EquipmentType,
    SurveyStatus,
    aggregate_from_dict,
    aggregate_to_dict,
    new_survey,
)
from ohsurvey.services.survey_session import SurveySession


def three_mains(**fields):
    return new_survey(
        areas=(AreaNode(name='A'), AreaNode(name='B'), AreaNode(name='C')),
        **fields
    )


class TestOpening:
    def test_clean_survey_opens_clean(self):
        session = SurveySession(three_mains())
        assert session.revision == 0
        assert session.dirty is False

    def test_writable_open_drops_stale_entries(self):
        session = SurveySession(three_mains(comments_by_area={'{"main":7}': 'gone', '{"main":0}': 'kept'}))
        assert session.aggregate.comments_by_area == {'{"main":0}': 'kept'}
        assert session.dirty is True

    def test_read_only_open_leaves_aggregate_untouched(self):
        aggregate = three_mains(status=SurveyStatus.COMPLETED, comments_by_area={'{"main":7}': 'stale'})
        session = SurveySession(aggregate, read_only=True)
        assert session.aggregate is aggregate
        assert session.dirty is False

    def test_stored_dangling_selection_cleared_on_open(self):
        stored = aggregate_to_dict(three_mains(current_area_path=AreaPath(2)))
        stored['areas'] = stored['areas'][:1]

        session = SurveySession(aggregate_from_dict(stored))

        assert session.aggregate.current_area_path is None
        assert session.dirty is True


class TestReadOnly:
    @pytest.fixture
    def session(self):
        aggregate = three_mains(status=SurveyStatus.COMPLETED, comments_by_area={'{"main":0}': 'loud'})
        return SurveySession(aggregate, read_only=True)

    @pytest.mark.parametrize('write', [
        lambda s: s.set_entry('comments', AreaPath(0), 'changed'),
        lambda s: s.delete_entry('comments', AreaPath(0)),
        lambda s: s.add_area(AreaNode(name='D')),
        lambda s: s.update_area(AreaPath(0), name='Renamed'),
        lambda s: s.remove_area(AreaPath(0)),
        lambda s: s.move_area(AreaPath(0), 2),
        lambda s: s.mark_completed(AreaPath(0)),
        lambda s: s.select_area(AreaPath(1)),
        lambda s: s.patch({'client': 'Other'}),
        lambda s: s.add_equipment(Equipment(type=EquipmentType.SLM)),
        lambda s: s.complete(),
    ])
    def test_writes_refused(self, session, write):
        before = session.aggregate
        with pytest.raises(ReadOnlySurveyError) as exc_info:
            write(session)
        assert exc_info.value.status_code == 409
        assert session.aggregate is before

    def test_reads_allowed(self, session):
        assert session.get_entry('comments', AreaPath(0)) == 'loud'
        assert session.area_label(AreaPath(2)) == 'Main Area: C'


class TestStoreWrites:
    def test_set_and_get(self):
        session = SurveySession(three_mains())
        session.set_entry('noise_sources', AreaPath(1), [{'source': 'Compressor'}])

        assert session.get_entry('noise_sources', AreaPath(1)) == [{'source': 'Compressor'}]
        assert session.revision == 1

    def test_missing_entry_gives_category_default(self):
        session = SurveySession(three_mains())
        assert session.get_entry('controls', AreaPath(0))['admin_controls'] == []
        assert session.get_entry('hearing_issued_status', AreaPath(0)) == 'Yes'

    def test_unresolved_path_is_noop(self):
        session = SurveySession(three_mains())
        before = session.aggregate
        assert session.set_entry('comments', AreaPath(5), 'nowhere') is before
        assert session.delete_entry('comments', AreaPath(5)) is before
        assert session.revision == 0

    def test_unknown_category(self):
        session = SurveySession(three_mains())
        with pytest.raises(UnknownCategoryError):
            session.set_entry('vibration', AreaPath(0), [])

    def test_not_issued_clears_devices(self):
        session = SurveySession(three_mains())
        session.set_entry('hearing_protection_devices', AreaPath(0), [{'type': 'Earplug'}])
        session.set_entry('hearing_protection_devices', AreaPath(1), [{'type': 'Earmuff'}])

        session.set_entry('hearing_issued_status', AreaPath(0), 'No')

        assert session.get_entry('hearing_issued_status', AreaPath(0)) == 'No'
        assert session.get_entry('hearing_protection_devices', AreaPath(0)) == []
        assert session.get_entry('hearing_protection_devices', AreaPath(1)) == [{'type': 'Earmuff'}]

    def test_returned_entries_are_copies(self):
        session = SurveySession(three_mains())
        session.set_entry('measurements', AreaPath(0), [{'readings': [90.0]}])
        value = session.get_entry('measurements', AreaPath(0))
        value[0]['readings'].append(120.0)
        assert session.get_entry('measurements', AreaPath(0)) == [{'readings': [90.0]}]


class TestAreaEdits:
    def test_add_returns_new_paths(self):
        session = SurveySession(new_survey())
        main = session.add_area(AreaNode(name='Mill'))
        sub = session.add_area(AreaNode(name='Crusher'), main)
        leaf = session.add_area(AreaNode(name='Feeder'), sub)

        assert (main, sub, leaf) == (AreaPath(0), AreaPath(0, 0), AreaPath(0, 0, 0))
        assert session.revision == 3

    def test_add_below_sub_sub_refused(self):
        session = SurveySession(new_survey())
        main = session.add_area(AreaNode(name='Mill'))
        leaf = session.add_area(AreaNode(name='Feeder'), session.add_area(AreaNode(name='Crusher'), main))
        with pytest.raises(InvalidAreaOperationError):
            session.add_area(AreaNode(name='Too deep'), leaf)

    def test_update_with_same_values_is_noop(self):
        session = SurveySession(three_mains())
        session.update_area(AreaPath(0), name='A')
        assert session.revision == 0

    def test_remove_shifts_later_siblings_data(self):
        session = SurveySession(three_mains(
            comments_by_area={'{"main":0}': 'a', '{"main":1}': 'b', '{"main":2}': 'c'},
            current_area_path=AreaPath(2),
        ))

        session.remove_area(AreaPath(0))

        assert [node.name for node in session.aggregate.areas] == ['B', 'C']
        assert session.aggregate.comments_by_area == {'{"main":0}': 'b', '{"main":1}': 'c'}
        assert session.aggregate.current_area_path == AreaPath(1)

    def test_removing_selected_area_clears_selection(self):
        session = SurveySession(three_mains(current_area_path=AreaPath(0)))
        session.remove_area(AreaPath(0))
        assert session.aggregate.current_area_path is None

    def test_remove_sub_drops_its_descendants_data(self):
        aggregate = new_survey(
            areas=(AreaNode(name='A', sub_areas=(AreaNode(name='A1', sub_areas=(AreaNode(name='A1a'),)),)),),
            noise_sources_by_area={'{"main":0,"sub":0,"ss":0}': [{'source': 'Fan'}], '{"main":0}': [{'source': 'Hum'}]},
        )
        session = SurveySession(aggregate)
        session.remove_area(AreaPath(0, 0))
        assert session.aggregate.noise_sources_by_area == {'{"main":0}': [{'source': 'Hum'}]}

    def test_remove_missing_area(self):
        session = SurveySession(three_mains())
        with pytest.raises(AreaNotFoundError):
            session.remove_area(AreaPath(0, 0))

    def test_move_carries_data(self):
        session = SurveySession(three_mains(
            comments_by_area={'{"main":0}': 'a', '{"main":1}': 'b', '{"main":2}': 'c'},
            current_area_path=AreaPath(0),
        ))

        session.move_area(AreaPath(0), 10)

        assert [node.name for node in session.aggregate.areas] == ['B', 'C', 'A']
        assert session.get_entry('comments', AreaPath(2)) == 'a'
        assert session.get_entry('comments', AreaPath(0)) == 'b'
        assert session.aggregate.current_area_path == AreaPath(2)

    def test_move_to_same_index_is_noop(self):
        session = SurveySession(three_mains())
        session.move_area(AreaPath(1), 1)
        assert session.revision == 0

    def test_mark_completed(self):
        session = SurveySession(three_mains())
        session.mark_completed(AreaPath(1))
        assert resolve(session.aggregate.areas, AreaPath(1)).details_completed is True
        session.mark_completed(AreaPath(1, 2))
        assert session.revision == 1

    def test_select_area(self):
        session = SurveySession(three_mains())
        session.select_area(AreaPath(2))
        session.select_area(AreaPath(8))
        assert session.aggregate.current_area_path == AreaPath(2)

    def test_replacing_areas_reconciles(self):
        session = SurveySession(three_mains(comments_by_area={'{"main":2}': 'c'}))
        session.patch({'areas': (AreaNode(name='Only'),)})
        assert session.aggregate.comments_by_area == {}

    def test_replacing_areas_clears_dangling_selection(self):
        session = SurveySession(three_mains(current_area_path=AreaPath(2)))
        session.patch({'areas': session.aggregate.areas[:1]})
        assert session.aggregate.current_area_path is None

    def test_replacing_areas_keeps_live_selection(self):
        session = SurveySession(three_mains(current_area_path=AreaPath(0)))
        session.patch({'areas': session.aggregate.areas[:1]})
        assert session.aggregate.current_area_path == AreaPath(0)


class TestEquipment:
    def test_remove_clears_references(self):
        calibrator = Equipment(type=EquipmentType.CALIBRATOR, name='CAL200')
        meter = Equipment(type=EquipmentType.SLM, name='NL-52', paired_calibrator_id=calibrator.id)
        session = SurveySession(three_mains(
            equipment=(meter, calibrator),
            measurements_by_area={'{"main":0}': [{'slm_id': meter.id, 'calibrator_id': calibrator.id, 'readings': [90.0]}]},
        ))

        session.remove_equipment(calibrator.id)

        assert [item.id for item in session.aggregate.equipment] == [meter.id]
        assert session.aggregate.equipment[0].paired_calibrator_id == ''
        record = session.get_entry('measurements', AreaPath(0))[0]
        assert record['calibrator_id'] == ''
        assert record['slm_id'] == meter.id

    def test_update(self):
        meter = Equipment(type=EquipmentType.SLM, name='NL-52')
        session = SurveySession(three_mains(equipment=(meter,)))
        session.update_equipment(meter.id, serial='00123', id='ignored')
        assert session.aggregate.equipment[0].serial == '00123'
        assert session.aggregate.equipment[0].id == meter.id

    def test_unknown_equipment(self):
        session = SurveySession(three_mains())
        with pytest.raises(EquipmentNotFoundError):
            session.remove_equipment('missing')


class TestLifecycle:
    def test_complete_makes_session_read_only(self):
        session = SurveySession(three_mains())
        session.complete()

        assert session.read_only is True
        assert session.aggregate.status is SurveyStatus.COMPLETED
        assert session.aggregate.completed_at.endswith('Z')
        assert session.dirty is True
        with pytest.raises(ReadOnlySurveyError):
            session.set_entry('comments', AreaPath(0), 'late edit')

    def test_mark_saved(self):
        session = SurveySession(three_mains())
        session.set_entry('comments', AreaPath(0), 'one')
        session.set_entry('comments', AreaPath(0), 'two')
        session.mark_saved(1)
        assert session.dirty is True
        session.mark_saved(2)
        assert session.dirty is False
        session.mark_saved(1)
        assert session.dirty is False
