"""
Tests for the province and publisher directory.
"""
import pytest

from apps.directory.models import Province, Publisher


@pytest.fixture
def gauteng(db):
    return Province.objects.create(name='Gauteng', code='GP')


@pytest.fixture
def western_cape(db):
    return Province.objects.create(name='Western Cape', code='WC')


@pytest.mark.django_db
class TestPublisherQuerySet:
    """Test Publisher.objects filters."""

    def test_in_province_accepts_instance_id_or_code(self, gauteng, western_cape):
        """Provinces can be given as instance, UUID or case-insensitive code."""
        health = Publisher.objects.create(name='Department of Health', province=gauteng)
        Publisher.objects.create(name='City of Cape Town', province=western_cape)

        assert list(Publisher.objects.in_province(gauteng)) == [health]
        assert list(Publisher.objects.in_province(str(gauteng.id))) == [health]
        assert list(Publisher.objects.in_province('gp')) == [health]

    def test_search_matches_name_and_description(self, gauteng):
        """Search covers name and description."""
        Publisher.objects.create(name='Roads Agency', province=gauteng, description='Infrastructure tenders')
        Publisher.objects.create(name='Health', province=gauteng)

        assert Publisher.objects.search('infrastructure').count() == 1
        assert Publisher.objects.search('roads').count() == 1


@pytest.mark.django_db
class TestProvinceAPI:
    """Test /v1/provinces."""

    def test_user_lists_provinces_with_counts(self, auth_client, regular_user, gauteng, western_cape):
        """Any signed-in user browses provinces."""
        Publisher.objects.create(name='Health', province=gauteng)

        response = auth_client(regular_user).get('/v1/provinces')

        assert response.status_code == 200
        counts = {row['code']: row['publisher_count'] for row in response.data['results']}
        assert counts == {'GP': 1, 'WC': 0}

    def test_admin_creates_province(self, auth_client, admin_user):
        """Codes are stored uppercased."""
        response = auth_client(admin_user).post(
            '/v1/provinces', {'name': 'Limpopo', 'code': ' lp '}, format='json'
        )

        assert response.status_code == 201
        assert response.data['code'] == 'LP'
        assert response.data['publisher_count'] == 0

    def test_manager_cannot_create(self, auth_client, manager_user):
        """Writes are admin-only."""
        response = auth_client(manager_user).post(
            '/v1/provinces', {'name': 'Limpopo', 'code': 'LP'}, format='json'
        )

        assert response.status_code == 403

    def test_delete_province_with_publishers_conflicts(self, auth_client, admin_user, gauteng):
        """Provinces in use cannot be deleted."""
        Publisher.objects.create(name='Health', province=gauteng)

        response = auth_client(admin_user).delete(f'/v1/provinces/{gauteng.id}')

        assert response.status_code == 409
        assert Province.objects.filter(id=gauteng.id).exists()

    def test_delete_empty_province(self, auth_client, admin_user, gauteng):
        """Unused provinces can be deleted."""
        response = auth_client(admin_user).delete(f'/v1/provinces/{gauteng.id}')

        assert response.status_code == 204

    def test_anonymous_is_unauthorized(self, api_client, db):
        """The directory needs a session."""
        assert api_client.get('/v1/provinces').status_code == 401


@pytest.mark.django_db
class TestPublisherAPI:
    """Test /v1/publishers."""

    def test_filter_by_province_code(self, auth_client, regular_user, gauteng, western_cape):
        """The province filter takes a code."""
        Publisher.objects.create(name='Health', province=gauteng)
        Publisher.objects.create(name='Cape Town', province=western_cape)

        response = auth_client(regular_user).get('/v1/publishers', {'province': 'WC'})

        assert response.status_code == 200
        assert [row['name'] for row in response.data['results']] == ['Cape Town']
        assert response.data['results'][0]['province_name'] == 'Western Cape'

    def test_admin_creates_publisher(self, auth_client, admin_user, gauteng):
        """Publishers reference a province by ID."""
        response = auth_client(admin_user).post(
            '/v1/publishers',
            {'name': 'Education', 'province': str(gauteng.id), 'website': 'https://education.gpg.gov.za'},
            format='json'
        )

        assert response.status_code == 201
        assert Publisher.objects.get(name='Education').province == gauteng

    def test_duplicate_name_in_province_is_rejected(self, auth_client, admin_user, gauteng):
        """Names are unique within a province."""
        Publisher.objects.create(name='Education', province=gauteng)

        response = auth_client(admin_user).post(
            '/v1/publishers', {'name': 'Education', 'province': str(gauteng.id)}, format='json'
        )

        assert response.status_code == 400

    def test_user_cannot_update(self, auth_client, regular_user, gauteng):
        """Plain users only read."""
        publisher = Publisher.objects.create(name='Health', province=gauteng)

        response = auth_client(regular_user).patch(
            f'/v1/publishers/{publisher.id}', {'name': 'Renamed'}, format='json'
        )

        assert response.status_code == 403
