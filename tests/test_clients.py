"""
Client (tenant) management: slugs, archive/restore, stats and the admin-only routes.
"""
import pytest

from models import Client, UserRole
from services import client_service
from services.backlog_errors import NotFound, ValidationError


class TestSlugs:

    @pytest.mark.parametrize('name, slug', [
        ('Acme Corp', 'acme-corp'),
        ('  Ünïcode & Co.  ', 'n-code-co'),
        ('--Already--Dashed--', 'already-dashed'),
        ('R2-D2 Droids', 'r2-d2-droids'),
    ])
    def test_slugify(self, name, slug):
        assert Client.slugify(name) == slug

    def test_duplicate_names_get_numbered_slugs(self, make_client):
        first = make_client('Initech')
        second = make_client('Initech')
        third = make_client('Initech')

        assert [first.slug, second.slug, third.slug] == ['initech', 'initech-1', 'initech-2']

    def test_explicit_slug_must_be_free(self, make_client):
        make_client('Initech')
        with pytest.raises(ValidationError):
            client_service.create_client('Other', slug='initech')

    def test_name_without_slug_characters(self, app):
        with pytest.raises(ValidationError):
            client_service.create_client('!!!')

    def test_update_slug_checks_uniqueness(self, make_client):
        make_client('Taken')
        mine = make_client('Mine')

        with pytest.raises(ValidationError):
            client_service.update_client(mine, {'slug': 'taken'})

        updated = client_service.update_client(mine, {'slug': 'Mine Renamed', 'description': 'New'})
        assert updated.slug == 'mine-renamed'
        assert updated.description == 'New'


class TestLifecycle:

    def test_archive_hides_from_default_listing(self, acme, globex):
        client_service.archive_client(globex)

        assert [c.slug for c in client_service.list_clients()] == ['acme']
        assert {c.slug for c in client_service.list_clients(include_archived=True)} == {'acme', 'globex'}
        assert globex.is_archived

    def test_restore(self, globex):
        client_service.archive_client(globex)
        client_service.restore_client(globex)
        assert not globex.is_archived

    def test_unknown_slug(self, app):
        with pytest.raises(NotFound):
            client_service.get_client_by_slug('missing')

    def test_stats(self, acme, acme_member, make_pbi):
        make_pbi(acme, 'A', status='todo')
        make_pbi(acme, 'B', status='todo')
        make_pbi(acme, 'C', status='done')

        stats = client_service.get_client_stats(acme)

        assert stats['todo'] == 2
        assert stats['done'] == 1
        assert stats['in_progress'] == 0
        assert stats['blocked'] == 0
        assert stats['total_pbis'] == 3
        assert stats['total_users'] == 1


class TestRoutes:

    def test_admin_creates_client(self, login, flowency_admin):
        response = login(flowency_admin).post('/api/clients', json={'name': 'Umbrella Corp'})

        assert response.status_code == 201
        assert response.get_json()['client']['slug'] == 'umbrella-corp'

    def test_client_admin_cannot_create(self, login, acme_admin):
        response = login(acme_admin).post('/api/clients', json={'name': 'Umbrella Corp'})
        assert response.status_code == 403

    def test_member_sees_only_own_client(self, login, acme, globex, acme_member):
        data = login(acme_member).get('/api/clients').get_json()
        assert [c['slug'] for c in data['clients']] == ['acme']

    def test_admin_sees_all_clients(self, login, acme, globex, flowency_admin):
        data = login(flowency_admin).get('/api/clients').get_json()
        assert [c['slug'] for c in data['clients']] == ['acme', 'globex']

    def test_get_includes_stats(self, login, acme, acme_member, make_pbi):
        make_pbi(acme, 'A')
        data = login(acme_member).get(f'/api/clients/{acme.slug}').get_json()
        assert data['stats']['total_pbis'] == 1

    def test_get_other_client_is_403(self, login, acme, globex_member):
        assert login(globex_member).get(f'/api/clients/{acme.slug}').status_code == 403

    def test_client_admin_updates_own_client(self, login, acme, acme_admin):
        response = login(acme_admin).patch(f'/api/clients/{acme.slug}', json={'description': 'Rockets'})

        assert response.status_code == 200
        assert response.get_json()['client']['description'] == 'Rockets'

    def test_member_cannot_update_client(self, login, acme, acme_member):
        response = login(acme_member).patch(f'/api/clients/{acme.slug}', json={'description': 'Nope'})
        assert response.status_code == 403

    def test_archive_and_restore(self, login, acme, flowency_admin):
        http = login(flowency_admin)

        archived = http.delete(f'/api/clients/{acme.slug}').get_json()['client']
        assert archived['archived_at'] is not None

        restored = http.post(f'/api/clients/{acme.slug}/restore').get_json()['client']
        assert restored['archived_at'] is None

    def test_roles_are_stable_strings(self):
        assert [role.value for role in UserRole] == ['flowency_admin', 'client_admin', 'client_member']
