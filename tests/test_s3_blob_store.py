"""
S3 blob store: presigned URL parameters, deletes and app wiring, against a recording boto3 client.
"""
import pytest

from conftest import TEST_CONFIG, FakeBlobStore
from services import s3_blob_store
from services.blob_store import BlobStore
from services.s3_blob_store import DEFAULT_REGION, S3BlobStore, s3_blob_store_from_config


class RecordingS3Client:
    def __init__(self):
        self.presigned = []
        self.deleted = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.presigned.append((operation, Params, ExpiresIn))
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?op={operation}&ttl={ExpiresIn}"

    def delete_object(self, Bucket, Key):
        self.deleted.append((Bucket, Key))
        return {}


@pytest.fixture
def s3_client():
    return RecordingS3Client()


@pytest.fixture
def store(s3_client):
    return S3BlobStore(bucket='backlog-test', region='eu-west-2', client=s3_client)


class TestInterface:

    def test_blob_store_is_abstract(self):
        with pytest.raises(TypeError):
            BlobStore()

    def test_partial_implementation_cannot_be_built(self):
        class UploadOnly(BlobStore):
            def upload_url(self, key, content_type, expires_in):
                return key

        with pytest.raises(TypeError):
            UploadOnly()

    def test_implementations_are_blob_stores(self, store):
        assert isinstance(store, BlobStore)
        assert isinstance(FakeBlobStore(), BlobStore)


class TestS3BlobStore:

    def test_upload_url_signs_put_with_content_type(self, store, s3_client):
        url = store.upload_url('attachments/c/p/1-a.png', 'image/png', 300)

        assert url.startswith('https://s3.test/backlog-test/attachments/c/p/1-a.png')
        assert s3_client.presigned == [(
            'put_object',
            {'Bucket': 'backlog-test', 'Key': 'attachments/c/p/1-a.png', 'ContentType': 'image/png'},
            300,
        )]

    def test_download_url_signs_get(self, store, s3_client):
        store.download_url('attachments/c/p/1-a.png', 3600)

        assert s3_client.presigned == [(
            'get_object', {'Bucket': 'backlog-test', 'Key': 'attachments/c/p/1-a.png'}, 3600,
        )]

    def test_delete(self, store, s3_client):
        store.delete('attachments/c/p/1-a.png')

        assert s3_client.deleted == [('backlog-test', 'attachments/c/p/1-a.png')]

    def test_bucket_is_required(self, s3_client):
        with pytest.raises(ValueError):
            S3BlobStore(bucket='', client=s3_client)

    def test_default_client_uses_region(self, monkeypatch, s3_client):
        created = []

        def _client(service, region_name=None):
            created.append((service, region_name))
            return s3_client

        monkeypatch.setattr(s3_blob_store.boto3, 'client', _client)

        S3BlobStore(bucket='backlog-test', region='us-east-1')

        assert created == [('s3', 'us-east-1')]


class TestConfiguration:

    def test_no_bucket_means_no_store(self):
        assert s3_blob_store_from_config({'S3_BUCKET': None}) is None

    def test_region_defaults(self, monkeypatch, s3_client):
        monkeypatch.setattr(s3_blob_store.boto3, 'client', lambda service, region_name=None: s3_client)

        store = s3_blob_store_from_config({'S3_BUCKET': 'backlog-test', 'S3_REGION': None})

        assert store.bucket == 'backlog-test'
        assert store.region == DEFAULT_REGION == 'eu-west-2'

    def test_create_app_builds_s3_store_when_bucket_set(self, monkeypatch, s3_client):
        from app import create_app

        monkeypatch.setattr(s3_blob_store.boto3, 'client', lambda service, region_name=None: s3_client)

        app = create_app(config={**TEST_CONFIG, 'S3_BUCKET': 'backlog-test', 'S3_REGION': 'eu-west-1'})

        store = app.extensions['blob_store']
        assert isinstance(store, S3BlobStore)
        assert (store.bucket, store.region) == ('backlog-test', 'eu-west-1')

    def test_injected_store_wins_over_bucket(self):
        from app import create_app

        injected = FakeBlobStore()
        app = create_app(config={**TEST_CONFIG, 'S3_BUCKET': 'backlog-test'}, blob_store=injected)

        assert app.extensions['blob_store'] is injected

    def test_no_bucket_leaves_attachments_unconfigured(self):
        from app import create_app

        assert create_app(config=TEST_CONFIG).extensions['blob_store'] is None
