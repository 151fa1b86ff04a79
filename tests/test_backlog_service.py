"""
Backlog service tests: authorization, validation and delegation to the ranking engine.
"""
import pytest
from sqlalchemy import select

from conftest import assert_dense, positions, titles
from models import db, Attachment, Pbi, PbiStatus
from services import backlog_service
from services.backlog_errors import Forbidden, InvalidArgument, NotFound, ValidationError
from services.pbi_query_builder import PbiFilter


@pytest.fixture
def backlog(acme, acme_member):
    created = {}
    for title, pbi_type, status in [
        ('Login page', 'feature', 'todo'),
        ('Crash on save', 'bug', 'in_progress'),
        ('Button colour', 'tweak', 'done'),
        ('Voice input', 'idea', 'blocked'),
    ]:
        created[title] = backlog_service.create_pbi(
            acme_member, acme, {'title': title, 'type': pbi_type, 'status': status}
        )
    return created


class TestCreate:

    def test_create_appends_with_defaults(self, acme, acme_member):
        pbi = backlog_service.create_pbi(acme_member, acme, {
            'title': '  Export to CSV  ',
            'type': 'feature',
            'description': 'Admins want spreadsheets',
            'effort': 'M',
        })

        assert pbi.title == 'Export to CSV'
        assert pbi.status == PbiStatus.TODO.value
        assert pbi.effort == 'M'
        assert pbi.stack_position == 1
        assert pbi.created_by_id == acme_member.id

    def test_second_create_goes_to_bottom(self, acme, acme_member, backlog):
        pbi = backlog_service.create_pbi(acme_member, acme, {'title': 'Fifth', 'type': 'bug'})
        assert pbi.stack_position == 5

    @pytest.mark.parametrize('data', [
        {'type': 'feature'},
        {'title': '   ', 'type': 'feature'},
        {'title': 'No type'},
        {'title': 'Bad type', 'type': 'epic'},
        {'title': 'Bad status', 'type': 'bug', 'status': 'archived'},
        {'title': 'Bad effort', 'type': 'bug', 'effort': 'XXL'},
    ])
    def test_invalid_input_writes_nothing(self, acme, acme_member, data):
        with pytest.raises(ValidationError):
            backlog_service.create_pbi(acme_member, acme, data)
        assert positions(acme) == []

    def test_other_client_user_is_forbidden(self, acme, globex_member):
        with pytest.raises(Forbidden):
            backlog_service.create_pbi(globex_member, acme, {'title': 'Sneaky', 'type': 'bug'})
        assert positions(acme) == []

    def test_flowency_admin_may_create_anywhere(self, acme, globex, flowency_admin):
        backlog_service.create_pbi(flowency_admin, acme, {'title': 'One', 'type': 'idea'})
        backlog_service.create_pbi(flowency_admin, globex, {'title': 'Two', 'type': 'idea'})
        assert titles(acme) == ['One']
        assert titles(globex) == ['Two']


class TestRead:

    def test_list_in_stack_order(self, acme, acme_member, backlog):
        pbis = backlog_service.list_pbis(acme_member, acme)
        assert [pbi.title for pbi in pbis] == ['Login page', 'Crash on save', 'Button colour', 'Voice input']

    def test_list_with_filters(self, acme, acme_member, backlog):
        filters = PbiFilter.of(statuses=[PbiStatus.TODO, PbiStatus.BLOCKED])
        pbis = backlog_service.list_pbis(acme_member, acme, filters)
        assert [pbi.title for pbi in pbis] == ['Login page', 'Voice input']

    def test_list_forbidden_for_other_client(self, acme, globex_member, backlog):
        with pytest.raises(Forbidden):
            backlog_service.list_pbis(globex_member, acme)

    def test_get_unknown(self, acme_member):
        with pytest.raises(NotFound):
            backlog_service.get_pbi(acme_member, 'missing')

    def test_get_other_client_pbi_is_forbidden(self, globex_member, backlog):
        with pytest.raises(Forbidden):
            backlog_service.get_pbi(globex_member, backlog['Login page'].id)


class TestUpdate:

    def test_field_update(self, acme_member, backlog):
        pbi_id = backlog['Crash on save'].id

        pbi = backlog_service.update_pbi(acme_member, pbi_id, {
            'title': 'Crash on save (Safari)',
            'status': 'done',
            'effort': None,
        })

        assert pbi.title == 'Crash on save (Safari)'
        assert pbi.status == 'done'
        assert pbi.effort is None
        assert pbi.stack_position == 2

    def test_position_change_moves_item(self, acme, acme_member, backlog):
        pbi = backlog_service.update_pbi(acme_member, backlog['Voice input'].id, {'stack_position': 1})

        assert pbi.stack_position == 1
        assert titles(acme) == ['Voice input', 'Login page', 'Crash on save', 'Button colour']

    def test_position_and_fields_together(self, acme, acme_member, backlog):
        pbi = backlog_service.update_pbi(acme_member, backlog['Login page'].id, {
            'stack_position': 3,
            'status': 'in_progress',
        })

        assert pbi.stack_position == 3
        assert pbi.status == 'in_progress'
        assert titles(acme) == ['Crash on save', 'Button colour', 'Login page', 'Voice input']

    def test_out_of_range_position_is_clamped(self, acme, acme_member, backlog):
        pbi = backlog_service.update_pbi(acme_member, backlog['Login page'].id, {'stack_position': 40})
        assert pbi.stack_position == 4
        assert_dense(acme)

    def test_unchanged_position_is_ignored(self, acme, acme_member, backlog):
        pbi = backlog_service.update_pbi(acme_member, backlog['Button colour'].id, {
            'stack_position': 3,
            'title': 'Button colour (brand)',
        })
        assert pbi.stack_position == 3
        assert titles(acme)[2] == 'Button colour (brand)'

    @pytest.mark.parametrize('position', ['2', 2.5, True])
    def test_non_integer_position_rejected(self, acme, acme_member, backlog, position):
        with pytest.raises(ValidationError):
            backlog_service.update_pbi(acme_member, backlog['Voice input'].id, {'stack_position': position})
        assert titles(acme)[3] == 'Voice input'

    def test_invalid_field_rejected_before_move(self, acme, acme_member, backlog):
        with pytest.raises(ValidationError):
            backlog_service.update_pbi(acme_member, backlog['Voice input'].id, {
                'stack_position': 1,
                'type': 'epic',
            })
        assert titles(acme)[0] == 'Login page'

    def test_other_client_cannot_update(self, globex_member, backlog):
        with pytest.raises(Forbidden):
            backlog_service.update_pbi(globex_member, backlog['Login page'].id, {'title': 'Hijacked'})


class TestDelete:

    def test_delete_compacts_and_drops_blobs(self, acme, acme_member, backlog, blob_store):
        pbi = backlog['Crash on save']
        db.session.add(Attachment(
            pbi_id=pbi.id,
            filename='trace.txt',
            storage_key=f"attachments/{acme.id}/{pbi.id}/1-trace.txt",
            content_type='text/plain',
            size_bytes=120,
        ))
        db.session.commit()

        backlog_service.delete_pbi(acme_member, pbi.id)

        assert titles(acme) == ['Login page', 'Button colour', 'Voice input']
        assert_dense(acme)
        assert blob_store.deleted == [f"attachments/{acme.id}/{pbi.id}/1-trace.txt"]
        assert db.session.scalars(select(Attachment)).all() == []

    def test_blob_failure_does_not_block_delete(self, acme, acme_member, backlog, blob_store):
        pbi = backlog['Login page']
        db.session.add(Attachment(
            pbi_id=pbi.id,
            filename='mock.png',
            storage_key=f"attachments/{acme.id}/{pbi.id}/1-mock.png",
            content_type='image/png',
            size_bytes=2048,
        ))
        db.session.commit()
        blob_store.fail_deletes = True

        backlog_service.delete_pbi(acme_member, pbi.id)

        assert db.session.get(Pbi, pbi.id) is None
        assert titles(acme) == ['Crash on save', 'Button colour', 'Voice input']

    def test_other_client_cannot_delete(self, acme, globex_member, backlog):
        with pytest.raises(Forbidden):
            backlog_service.delete_pbi(globex_member, backlog['Login page'].id)
        assert len(titles(acme)) == 4


class TestReorder:

    def test_single_move(self, acme, acme_member, backlog):
        result = backlog_service.reorder_pbi(acme_member, backlog['Voice input'].id, 2)
        assert result.new_position == 2
        assert titles(acme) == ['Login page', 'Voice input', 'Crash on save', 'Button colour']

    def test_bulk(self, acme, acme_member, backlog):
        ordered = [backlog[t].id for t in ['Voice input', 'Button colour', 'Crash on save', 'Login page']]

        assert backlog_service.bulk_reorder(acme_member, acme, ordered) == 4
        assert titles(acme) == ['Voice input', 'Button colour', 'Crash on save', 'Login page']

    def test_bulk_forbidden_for_other_client(self, acme, globex_member, backlog):
        ordered = [pbi.id for pbi in backlog.values()]
        with pytest.raises(Forbidden):
            backlog_service.bulk_reorder(globex_member, acme, ordered)

    def test_bulk_with_foreign_ids(self, acme, globex, acme_member, flowency_admin, backlog):
        other = backlog_service.create_pbi(flowency_admin, globex, {'title': 'Elsewhere', 'type': 'bug'})
        ordered = [pbi.id for pbi in backlog.values()] + [other.id]

        with pytest.raises(InvalidArgument):
            backlog_service.bulk_reorder(acme_member, acme, ordered)

