"""
User management: who may see, edit, re-role and remove accounts.
"""
import pytest

from models import db, Pbi, PbiComment, User, UserRole
from services import comment_service, user_service
from services.backlog_errors import EmptyInput, Forbidden, NotFound, ValidationError


class TestVisibility:

    def test_flowency_admin_sees_anyone(self, flowency_admin, globex_member):
        assert user_service.get_user(flowency_admin, globex_member.id) is globex_member

    def test_user_sees_self_and_teammates(self, acme_admin, acme_member):
        assert user_service.get_user(acme_member, acme_member.id) is acme_member
        assert user_service.get_user(acme_member, acme_admin.id) is acme_admin

    def test_other_client_is_forbidden(self, acme_member, globex_member):
        with pytest.raises(Forbidden):
            user_service.get_user(acme_member, globex_member.id)

    def test_agency_account_is_hidden_from_client_users(self, acme_admin, flowency_admin):
        with pytest.raises(Forbidden):
            user_service.get_user(acme_admin, flowency_admin.id)

    def test_missing_user(self, flowency_admin):
        with pytest.raises(NotFound):
            user_service.get_user(flowency_admin, 'missing')

    def test_team_listed_by_name(self, acme, make_user, acme_admin, acme_member, globex_member):
        make_user(client=acme, name='Zed')
        make_user(client=acme, name='Amy')

        team = user_service.list_users_by_client(acme_member, acme)

        assert [u.name for u in team] == ['Acme Admin', 'Acme Member', 'Amy', 'Zed']

    def test_team_of_other_client_is_forbidden(self, acme, globex_member):
        with pytest.raises(Forbidden):
            user_service.list_users_by_client(globex_member, acme)


class TestUpdate:

    def test_user_edits_own_profile(self, acme_member):
        user = user_service.update_user(acme_member, acme_member.id, {
            'name': '  Renamed  ', 'avatar_url': 'https://img.test/a.png',
        })

        assert user.name == 'Renamed'
        assert user.avatar_url == 'https://img.test/a.png'
        assert user.role == UserRole.CLIENT_MEMBER.value

    def test_flowency_admin_edits_anyone(self, flowency_admin, globex_member):
        user_service.update_user(flowency_admin, globex_member.id, {'name': 'Fixed Typo', 'avatar_url': None})

        assert globex_member.name == 'Fixed Typo'
        assert globex_member.avatar_url is None

    def test_teammate_cannot_edit_profile(self, acme_admin, acme_member):
        with pytest.raises(Forbidden):
            user_service.update_user(acme_admin, acme_member.id, {'name': 'Not Yours'})
        assert acme_member.name == 'Acme Member'

    def test_flowency_admin_changes_role(self, flowency_admin, acme_member):
        user = user_service.update_user(flowency_admin, acme_member.id, {'role': 'client_admin'})

        assert user.role == 'client_admin'
        assert user.is_client_admin

    @pytest.mark.parametrize('actor_fixture', ['acme_admin', 'acme_member'])
    def test_only_flowency_admin_changes_roles(self, request, acme_member, actor_fixture):
        actor = request.getfixturevalue(actor_fixture)

        with pytest.raises(Forbidden):
            user_service.update_user(actor, acme_member.id, {'role': 'client_admin'})
        assert acme_member.role == 'client_member'

    def test_flowency_admin_role_is_fixed(self, make_user, flowency_admin):
        other_admin = make_user(UserRole.FLOWENCY_ADMIN.value, name='Second Admin')

        with pytest.raises(ValidationError):
            user_service.update_user(flowency_admin, other_admin.id, {'role': 'client_member'})

    @pytest.mark.parametrize('role', ['flowency_admin', 'owner', None, ''])
    def test_invalid_role(self, flowency_admin, acme_member, role):
        with pytest.raises(ValidationError):
            user_service.update_user(flowency_admin, acme_member.id, {'role': role})

    @pytest.mark.parametrize('data', [{}, {'email': 'new@example.com'}])
    def test_nothing_to_update(self, acme_member, data):
        with pytest.raises(EmptyInput):
            user_service.update_user(acme_member, acme_member.id, data)

    @pytest.mark.parametrize('data', [{'name': '   '}, {'name': None}, {'avatar_url': 42}])
    def test_invalid_values(self, acme_member, data):
        with pytest.raises(ValidationError):
            user_service.update_user(acme_member, acme_member.id, data)

    def test_other_client_is_forbidden(self, acme_admin, globex_member):
        with pytest.raises(Forbidden):
            user_service.update_user(acme_admin, globex_member.id, {'name': 'x'})


class TestDelete:

    def test_flowency_admin_deletes_user(self, flowency_admin, acme_member):
        user_id = acme_member.id

        user_service.delete_user(flowency_admin, user_id)

        assert db.session.get(User, user_id) is None

    @pytest.mark.parametrize('actor_fixture', ['acme_admin', 'acme_member'])
    def test_only_flowency_admin_deletes(self, request, acme_member, actor_fixture):
        actor = request.getfixturevalue(actor_fixture)

        with pytest.raises(Forbidden):
            user_service.delete_user(actor, acme_member.id)
        assert db.session.get(User, acme_member.id) is not None

    def test_cannot_delete_self(self, flowency_admin):
        with pytest.raises(ValidationError):
            user_service.delete_user(flowency_admin, flowency_admin.id)

    def test_cannot_delete_flowency_admin(self, make_user, flowency_admin):
        other_admin = make_user(UserRole.FLOWENCY_ADMIN.value, name='Second Admin')

        with pytest.raises(ValidationError):
            user_service.delete_user(flowency_admin, other_admin.id)

    def test_missing_user(self, flowency_admin):
        with pytest.raises(NotFound):
            user_service.delete_user(flowency_admin, 'missing')

    def test_authored_work_survives(self, acme, flowency_admin, acme_member, make_pbi):
        pbi = make_pbi(acme, 'Checkout', created_by_id=acme_member.id)
        comment = comment_service.create_comment(acme_member, pbi.id, 'Looks good')
        user_id, comment_id, pbi_id = acme_member.id, comment.id, pbi.id

        user_service.delete_user(flowency_admin, user_id)

        assert db.session.get(PbiComment, comment_id).user_id is None
        assert db.session.get(Pbi, pbi_id).created_by_id is None


class TestUserRoutes:

    def test_get(self, login, acme_member, acme_admin, globex_member):
        http = login(acme_member)

        response = http.get(f'/api/users/{acme_admin.id}')
        assert response.status_code == 200
        assert response.get_json()['user']['name'] == 'Acme Admin'
        assert 'password_hash' not in response.get_json()['user']

        assert http.get(f'/api/users/{globex_member.id}').status_code == 403
        assert http.get('/api/users/missing').status_code == 404

    def test_requires_login(self, client, acme_member):
        assert client.get(f'/api/users/{acme_member.id}').status_code == 401

    def test_patch_own_name(self, login, acme_member):
        response = login(acme_member).patch(f'/api/users/{acme_member.id}', json={'name': 'New Name'})

        assert response.status_code == 200
        assert response.get_json()['user']['name'] == 'New Name'

    @pytest.mark.parametrize('body, status', [
        ({}, 400),
        ([], 400),
        ({'role': 'client_admin'}, 403),
    ])
    def test_patch_rejections(self, login, acme_member, body, status):
        response = login(acme_member).patch(f'/api/users/{acme_member.id}', json=body)

        assert response.status_code == status
        assert response.get_json()['success'] is False

    def test_role_change_by_flowency_admin(self, login, flowency_admin, acme_member):
        response = login(flowency_admin).patch(f'/api/users/{acme_member.id}', json={'role': 'client_admin'})

        assert response.status_code == 200
        assert response.get_json()['user']['role'] == 'client_admin'

    def test_delete(self, login, flowency_admin, acme_admin, acme_member):
        user_id = acme_member.id

        assert login(acme_admin).delete(f'/api/users/{user_id}').status_code == 403

        http = login(flowency_admin)
        assert http.delete(f'/api/users/{user_id}').status_code == 200
        assert http.get(f'/api/users/{user_id}').status_code == 404
        assert http.delete(f'/api/users/{flowency_admin.id}').status_code == 400

    def test_list_client_users(self, login, acme, acme_admin, acme_member, globex_member):
        listing = login(acme_admin).get(f'/api/clients/{acme.slug}/users').get_json()

        assert listing['total'] == 2
        assert [u['name'] for u in listing['users']] == ['Acme Admin', 'Acme Member']

        assert login(globex_member).get(f'/api/clients/{acme.slug}/users').status_code == 403
