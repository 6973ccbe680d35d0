"""Tests for MinIO storage helpers and the media host built on them."""

import json
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image

from services import storage
from services.media import MinioMediaHost


class FakeS3Error(Exception):
    def __init__(self, code):
        super().__init__(code)
        self.code = code


@pytest.fixture(autouse=True)
def _reset_cache():
    storage.get_minio_client.cache_clear()
    yield
    storage.get_minio_client.cache_clear()


def test_get_minio_client_uses_settings(monkeypatch):
    mock_client = MagicMock(name="Minio")
    created_clients = []

    monkeypatch.setattr(storage.settings, "minio_secure", True)

    def fake_minio(endpoint, access_key, secret_key, secure):
        created_clients.append(
            {
                "endpoint": endpoint,
                "access_key": access_key,
                "secret_key": secret_key,
                "secure": secure,
            }
        )
        return mock_client

    monkeypatch.setattr(storage, "Minio", fake_minio)

    client = storage.get_minio_client()
    assert client is mock_client
    assert storage.get_minio_client() is client  # cached

    assert created_clients == [
        {
            "endpoint": storage.settings.minio_endpoint,
            "access_key": storage.settings.minio_access_key,
            "secret_key": storage.settings.minio_secret_key,
            "secure": True,
        }
    ]


def test_ensure_bucket_existing():
    client = MagicMock()
    client.bucket_exists.return_value = True

    storage.ensure_bucket(client)

    client.bucket_exists.assert_called_once_with(storage.settings.minio_bucket)
    client.make_bucket.assert_not_called()


def test_ensure_bucket_creates_when_missing():
    client = MagicMock()
    client.bucket_exists.return_value = False

    storage.ensure_bucket(client, "thumbnails")

    client.bucket_exists.assert_called_once_with("thumbnails")
    client.make_bucket.assert_called_once_with("thumbnails")


def test_ensure_bucket_grants_anonymous_read_on_create():
    client = MagicMock()
    client.bucket_exists.return_value = False

    storage.ensure_bucket(client, "thumbnails")

    bucket_name, policy = client.set_bucket_policy.call_args.args
    assert bucket_name == "thumbnails"
    (statement,) = json.loads(policy)["Statement"]
    assert statement["Effect"] == "Allow"
    assert statement["Principal"] == {"AWS": ["*"]}
    assert statement["Action"] == ["s3:GetObject"]
    assert statement["Resource"] == ["arn:aws:s3:::thumbnails/*"]


def test_ensure_bucket_leaves_existing_policy_alone():
    client = MagicMock()
    client.bucket_exists.return_value = True

    storage.ensure_bucket(client, "thumbnails")

    client.set_bucket_policy.assert_not_called()


def test_ensure_bucket_handles_existing_race(monkeypatch):
    client = MagicMock()
    client.bucket_exists.return_value = False
    client.make_bucket.side_effect = FakeS3Error("BucketAlreadyOwnedByYou")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    storage.ensure_bucket(client)

    client.make_bucket.assert_called_once()
    client.set_bucket_policy.assert_not_called()


def test_ensure_bucket_reraises_other_errors(monkeypatch):
    client = MagicMock()
    client.bucket_exists.return_value = False
    client.make_bucket.side_effect = FakeS3Error("AccessDenied")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    with pytest.raises(FakeS3Error):
        storage.ensure_bucket(client)


def test_put_object_streams_bytes():
    client = MagicMock()

    storage.put_object("blog/a.jpg", b"jpeg-bytes", "image/jpeg", client=client, bucket_name="media")

    args, kwargs = client.put_object.call_args
    assert args == ("media", "blog/a.jpg")
    assert kwargs["length"] == len(b"jpeg-bytes")
    assert kwargs["content_type"] == "image/jpeg"
    assert kwargs["data"].read() == b"jpeg-bytes"


def test_delete_object_ignores_missing(monkeypatch):
    client = MagicMock()
    client.remove_object.side_effect = FakeS3Error("NoSuchKey")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    storage.delete_object("blog/gone.jpg", client, "media")

    client.remove_object.assert_called_once_with("media", "blog/gone.jpg")


def test_delete_object_reraises_other_errors(monkeypatch):
    client = MagicMock()
    client.remove_object.side_effect = FakeS3Error("AccessDenied")
    monkeypatch.setattr(storage, "S3Error", FakeS3Error)

    with pytest.raises(FakeS3Error):
        storage.delete_object("blog/a.jpg", client, "media")


def _media_host(client) -> MinioMediaHost:
    return MinioMediaHost(
        bucket="blog-media",
        public_base_url="https://cdn.example.com/",
        folder="/blog/",
        quality=70,
        client_factory=lambda: client,
    )


def test_media_host_url_roundtrip():
    host = _media_host(MagicMock())

    url = host.url_for("blog/abc.jpg")

    assert url == "https://cdn.example.com/blog-media/blog/abc.jpg"
    assert host.object_key_from_url(url) == "blog/abc.jpg"


@pytest.mark.parametrize(
    "url",
    [
        "https://elsewhere.example.com/blog-media/blog/abc.jpg",
        "https://cdn.example.com/blog-media/",
    ],
)
def test_media_host_rejects_foreign_urls(url):
    with pytest.raises(ValueError):
        _media_host(MagicMock()).object_key_from_url(url)


@pytest.mark.asyncio
async def test_media_host_upload_stores_jpeg(image_bytes):
    client = MagicMock()
    client.bucket_exists.return_value = True
    host = _media_host(client)

    url = await host.upload(await host.prepare(image_bytes((300, 200))))

    assert url.startswith("https://cdn.example.com/blog-media/blog/")
    assert url.endswith(".jpg")
    args, kwargs = client.put_object.call_args
    assert args == ("blog-media", host.object_key_from_url(url))
    assert kwargs["content_type"] == "image/jpeg"
    with Image.open(BytesIO(kwargs["data"].read())) as stored:
        assert stored.format == "JPEG"
        assert stored.size == (300, 200)


@pytest.mark.asyncio
async def test_media_host_prepare_rejects_non_images():
    client = MagicMock()
    host = _media_host(client)

    with pytest.raises(ValueError, match="Invalid image file."):
        await host.prepare(b"definitely not an image")

    client.put_object.assert_not_called()


@pytest.mark.asyncio
async def test_media_host_delete_removes_object():
    client = MagicMock()
    host = _media_host(client)

    await host.delete("https://cdn.example.com/blog-media/blog/abc.jpg")

    client.remove_object.assert_called_once_with("blog-media", "blog/abc.jpg")


@pytest.mark.asyncio
async def test_media_host_checks_bucket_once(image_bytes):
    client = MagicMock()
    client.bucket_exists.return_value = False
    host = _media_host(client)
    prepared = await host.prepare(image_bytes())

    await host.upload(prepared)
    await host.upload(prepared)

    client.bucket_exists.assert_called_once_with("blog-media")
    client.make_bucket.assert_called_once_with("blog-media")
    client.set_bucket_policy.assert_called_once()
    assert client.put_object.call_count == 2
