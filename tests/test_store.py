"""Tests for ObjectStore."""

from __future__ import annotations

import io
from datetime import datetime, timezone

import pytest
from botocore.exceptions import EndpointConnectionError

from s3adaptor import (
    BucketAlreadyOwnedByYouError,
    BucketInfo,
    BucketNotEmptyError,
    BucketNotFoundError,
    ConnectivityError,
    ErrorKind,
    ObjectBody,
    ObjectNotFoundError,
    ObjectStore,
    S3AdaptorError,
    ValidationError,
)
from tests.conftest import BUCKET
from tests.fakes import client_error


class TestRequestShapes:
    """Test the parameters sent to the boto3 client."""

    def test_create_bucket_in_default_region(self, mock_store, mock_s3):
        mock_store.create_bucket("new-bucket", {"acl": "private", "object_lock_enabled": True})

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="new-bucket",
            ACL="private",
            ObjectLockEnabledForBucket=True,
        )
        mock_s3.get_waiter.assert_not_called()

    def test_create_bucket_in_other_region_waits(self, mock_s3):
        store = ObjectStore(mock_s3, region="eu-west-1")

        store.create_bucket("new-bucket", {"object_ownership": "BucketOwnerEnforced"})

        mock_s3.create_bucket.assert_called_once_with(
            Bucket="new-bucket",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-1"},
            ObjectOwnership="BucketOwnerEnforced",
        )
        mock_s3.get_waiter.assert_called_once_with("bucket_exists")
        mock_s3.get_waiter.return_value.wait.assert_called_once_with(Bucket="new-bucket")

    def test_put_object_with_options(self, mock_store, mock_s3):
        mock_store.put_object(
            "b",
            "docs/a.txt",
            b"hello",
            {"content_type": "text/plain", "metadata": {"owner": "alice"}, "storage_class": ""},
        )

        mock_s3.put_object.assert_called_once_with(
            Body=b"hello",
            Bucket="b",
            Key="docs/a.txt",
            ContentType="text/plain",
            Metadata={"owner": "alice"},
        )

    def test_get_object_with_options(self, mock_store, mock_s3):
        mock_s3.get_object.return_value = {"Body": io.BytesIO(b"data"), "ContentLength": 4}

        body = mock_store.get_object(
            "b",
            "k",
            {"range": "bytes=0-3", "if_modified_since": "2024-01-01T00:00:00Z", "version_id": "v1"},
        )

        mock_s3.get_object.assert_called_once_with(
            Bucket="b",
            Key="k",
            Range="bytes=0-3",
            IfModifiedSince=datetime(2024, 1, 1, tzinfo=timezone.utc),
            VersionId="v1",
        )
        assert isinstance(body, ObjectBody)
        assert body.content_length == 4

    def test_list_objects_params(self, mock_store, mock_s3):
        mock_s3.list_objects_v2.return_value = {
            "Contents": [{"Key": "a", "Size": 3, "ETag": '"x"', "StorageClass": "STANDARD"}],
            "IsTruncated": True,
            "NextContinuationToken": "next",
            "CommonPrefixes": [{"Prefix": "dir/"}],
        }

        page = mock_store.list_objects(
            "b", {"prefix": "p/", "delimiter": "/", "max_keys": 1, "continuation_token": "tok"}
        )

        mock_s3.list_objects_v2.assert_called_once_with(
            Bucket="b", Prefix="p/", Delimiter="/", MaxKeys=1, ContinuationToken="tok"
        )
        assert page.count == 1
        assert page.objects[0].key == "a"
        assert page.objects[0].size == 3
        assert page.is_truncated
        assert page.next_continuation_token == "next"
        assert page.common_prefixes == ["dir/"]

    def test_copy_object(self, mock_store, mock_s3):
        mock_store.copy_object("src", "a.txt", "dst", "b.txt", {"metadata_directive": "COPY"})

        mock_s3.copy_object.assert_called_once_with(
            CopySource={"Bucket": "src", "Key": "a.txt"},
            Bucket="dst",
            Key="b.txt",
            MetadataDirective="COPY",
        )

    def test_upload_part_params(self, mock_store, mock_s3):
        mock_s3.upload_part.return_value = {"ETag": '"etag-1"'}

        etag = mock_store.upload_part(
            "b", "k", "up-1", 1, b"part", {"content_md5": "abc==", "content_length": 4}
        )

        assert etag == '"etag-1"'
        mock_s3.upload_part.assert_called_once_with(
            Body=b"part",
            Bucket="b",
            Key="k",
            UploadId="up-1",
            PartNumber=1,
            ContentMD5="abc==",
            ContentLength=4,
        )

    def test_upload_part_missing_etag(self, mock_store, mock_s3):
        mock_s3.upload_part.return_value = {}

        with pytest.raises(S3AdaptorError, match="missing ETag"):
            mock_store.upload_part("b", "k", "up-1", 1, b"part")

    def test_initiate_multipart_missing_upload_id(self, mock_store, mock_s3):
        mock_s3.create_multipart_upload.return_value = {}

        with pytest.raises(S3AdaptorError, match="missing UploadId"):
            mock_store.initiate_multipart("b", "k")

    def test_complete_multipart_keeps_given_order(self, mock_store, mock_s3):
        mock_store.complete_multipart("b", "k", "up-1", [(2, '"e2"'), (1, '"e1"')])

        mock_s3.complete_multipart_upload.assert_called_once_with(
            Bucket="b",
            Key="k",
            UploadId="up-1",
            MultipartUpload={"Parts": [{"ETag": '"e2"', "PartNumber": 2}, {"ETag": '"e1"', "PartNumber": 1}]},
        )

    def test_get_bucket_location_defaults_to_us_east_1(self, mock_store, mock_s3):
        mock_s3.get_bucket_location.return_value = {"LocationConstraint": None}

        assert mock_store.get_bucket_location("b") == "us-east-1"

    def test_list_buckets_region_lookup_failure(self, mock_store, mock_s3):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        mock_s3.list_buckets.return_value = {
            "Buckets": [{"Name": "one", "CreationDate": created}, {"Name": "two", "CreationDate": created}]
        }
        mock_s3.get_bucket_location.side_effect = [
            {"LocationConstraint": "eu-central-1"},
            client_error("AccessDenied", "Access Denied", "GetBucketLocation", 403),
        ]

        buckets = mock_store.list_buckets()

        assert buckets == [
            BucketInfo(name="one", creation_date=created, region="eu-central-1"),
            BucketInfo(name="two", creation_date=created, region=""),
        ]

    def test_transport_error_is_connectivity(self, mock_store, mock_s3):
        mock_s3.head_object.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

        with pytest.raises(ConnectivityError):
            mock_store.head_object("b", "k")

    def test_default_namespace(self, mock_store, mock_s3):
        mock_s3.get_object.side_effect = client_error("NoSuchKey", "missing", "GetObject", 404)

        with pytest.raises(ObjectNotFoundError) as excinfo:
            mock_store.get_object("b", "k")

        assert excinfo.value.namespace == "s3adaptor"


class TestPresign:
    """Test presigned URL generation."""

    def test_get_defaults(self, mock_store, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://signed"

        assert mock_store.presign("b", "k") == "https://signed"
        mock_s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "b", "Key": "k"},
            ExpiresIn=900,
        )

    def test_get_response_overrides(self, mock_store, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://signed"

        mock_store.presign(
            "b",
            "k",
            options={
                "version_id": "v2",
                "response_content_type": "application/pdf",
                "content_disposition": "attachment",
                "expiration_minutes": 1,
            },
        )

        mock_s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={
                "Bucket": "b",
                "Key": "k",
                "VersionId": "v2",
                "ResponseContentType": "application/pdf",
                "ResponseContentDisposition": "attachment",
            },
            ExpiresIn=60,
        )

    def test_put_from_options(self, mock_store, mock_s3):
        mock_s3.generate_presigned_url.return_value = "https://signed"

        mock_store.presign(
            "b", "k", options={"http_method": "put", "content_type": "image/png", "expiration_minutes": 10}
        )

        mock_s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="put_object",
            Params={"Bucket": "b", "Key": "k", "ContentType": "image/png"},
            ExpiresIn=600,
        )

    def test_unsupported_method(self, mock_store, mock_s3):
        with pytest.raises(ValidationError, match="Unsupported HTTP method: DELETE. Supported methods: GET, PUT"):
            mock_store.presign("b", "k", "DELETE")
        mock_s3.generate_presigned_url.assert_not_called()

    @pytest.mark.parametrize("minutes", [0, -5, "15", True])
    def test_invalid_expiration(self, mock_store, minutes):
        with pytest.raises(ValidationError, match="expiration_minutes"):
            mock_store.presign("b", "k", options={"expiration_minutes": minutes})

    def test_empty_url(self, mock_store, mock_s3):
        mock_s3.generate_presigned_url.return_value = ""

        with pytest.raises(S3AdaptorError, match="empty"):
            mock_store.presign("b", "k")


class TestBuckets:
    """Test bucket operations against the in-memory service."""

    def test_create_list_delete(self, store, fake_s3):
        store.create_bucket("second")

        names = [b.name for b in store.list_buckets()]
        assert names == ["second", BUCKET]
        assert all(b.region == "us-east-1" for b in store.list_buckets())

        store.delete_bucket("second")
        assert "second" not in fake_s3.buckets

    def test_create_existing_bucket(self, store):
        with pytest.raises(BucketAlreadyOwnedByYouError) as excinfo:
            store.create_bucket(BUCKET)

        assert excinfo.value.kind is ErrorKind.BUCKET_ALREADY_OWNED_BY_CALLER
        assert excinfo.value.namespace == "test.s3"

    def test_delete_non_empty_bucket(self, store):
        store.put_object(BUCKET, "a", b"x")

        with pytest.raises(BucketNotEmptyError):
            store.delete_bucket(BUCKET)

    def test_missing_bucket(self, store):
        with pytest.raises(BucketNotFoundError):
            store.get_bucket_location("nope")

    def test_bucket_region(self, fake_s3):
        store = ObjectStore(fake_s3, region="ap-south-1")
        store.create_bucket("regional")

        assert store.get_bucket_location("regional") == "ap-south-1"


class TestObjects:
    """Test object operations against the in-memory service."""

    def test_put_and_get(self, store, fake_s3):
        data = b"x" * 10_000
        store.put_object(BUCKET, "blob.bin", data, {"content_type": "application/octet-stream"})

        with store.get_object(BUCKET, "blob.bin") as body:
            assert body.content_length == 10_000
            assert body.content_type == "application/octet-stream"
            chunks = list(body)

        assert [len(c) for c in chunks] == [4096, 4096, 1808]
        assert b"".join(chunks) == data
        assert fake_s3.streams[-1].close_calls == 1

    def test_read_to_end_releases_stream(self, store, fake_s3):
        store.put_object(BUCKET, "small.txt", b"hello")

        body = store.get_object(BUCKET, "small.txt")
        assert body.read() == b"hello"
        assert body.read() == b""

        assert body.closed
        assert fake_s3.streams[-1].close_calls == 1
        assert body.read() == b""

    def test_read_after_early_close(self, store):
        store.put_object(BUCKET, "small.txt", b"hello")

        body = store.get_object(BUCKET, "small.txt")
        body.close()

        with pytest.raises(S3AdaptorError, match="Stream is closed."):
            body.read()

    def test_get_missing_object(self, store):
        with pytest.raises(ObjectNotFoundError) as excinfo:
            store.get_object(BUCKET, "missing.txt")

        assert excinfo.value.code == "NoSuchKey"
        assert excinfo.value.namespace == "test.s3"

    def test_put_from_path(self, store, fake_s3, tmp_path):
        path = tmp_path / "report.csv"
        path.write_bytes(b"a,b\n1,2\n")

        store.put_object(BUCKET, "report.csv", path)
        store.put_object(BUCKET, "report2.csv", str(path))

        assert fake_s3.buckets[BUCKET].objects["report.csv"].data == b"a,b\n1,2\n"
        assert fake_s3.buckets[BUCKET].objects["report2.csv"].data == b"a,b\n1,2\n"

    def test_put_missing_path(self, store, fake_s3, tmp_path):
        with pytest.raises(ValidationError, match="Cannot open file"):
            store.put_object(BUCKET, "x", tmp_path / "absent.bin")

        assert fake_s3.calls == []

    def test_put_from_file_object(self, store, fake_s3):
        store.put_object(BUCKET, "f", io.BytesIO(b"payload"))

        assert fake_s3.buckets[BUCKET].objects["f"].data == b"payload"

    def test_put_from_chunk_source(self, store, fake_s3):
        released = []

        def produce():
            try:
                yield b"alpha-"
                yield b""
                yield b"beta"
            finally:
                released.append(True)

        store.put_object(BUCKET, "gen", produce())

        assert fake_s3.buckets[BUCKET].objects["gen"].data == b"alpha-beta"
        assert released == [True]

    def test_put_from_async_chunk_source(self, store, fake_s3):
        async def produce():
            yield b"async-"
            yield b"chunks"

        store.put_object(BUCKET, "agen", produce())

        assert fake_s3.buckets[BUCKET].objects["agen"].data == b"async-chunks"

    def test_failing_chunk_source_sends_nothing(self, store, fake_s3):
        def produce():
            yield b"partial"
            raise OSError("disk error")

        with pytest.raises(ConnectivityError, match="disk error"):
            store.put_object(BUCKET, "broken", produce())

        assert "broken" not in fake_s3.buckets[BUCKET].objects
        assert not any(op == "put_object" for op, _ in fake_s3.calls)

    def test_unsupported_body(self, store):
        with pytest.raises(ValidationError, match="Unsupported body type"):
            store.put_object(BUCKET, "n", 42)

    @pytest.mark.parametrize(("bucket", "key"), [("", "k"), (BUCKET, ""), (None, "k")])
    def test_empty_names_are_rejected(self, store, fake_s3, bucket, key):
        with pytest.raises(ValidationError):
            store.put_object(bucket, key, b"x")

        assert fake_s3.calls == []

    def test_delete_is_idempotent(self, store, fake_s3):
        store.put_object(BUCKET, "gone", b"x")

        store.delete_object(BUCKET, "gone")
        store.delete_object(BUCKET, "gone")

        assert "gone" not in fake_s3.buckets[BUCKET].objects

    def test_delete_in_missing_bucket_raises(self, store):
        with pytest.raises(BucketNotFoundError):
            store.delete_object("nope", "k")

    def test_object_exists(self, store):
        store.put_object(BUCKET, "here", b"x")

        assert store.object_exists(BUCKET, "here") is True
        assert store.object_exists(BUCKET, "not-here") is False

    def test_object_exists_access_denied(self, store, fake_s3):
        fake_s3.failures["head_object"] = client_error("AccessDenied", "Access Denied", "HeadObject", 403)

        with pytest.raises(S3AdaptorError) as excinfo:
            store.object_exists(BUCKET, "here")

        assert excinfo.value.kind is ErrorKind.GENERIC
        assert excinfo.value.code == "AccessDenied"

    def test_head_object(self, store):
        store.put_object(BUCKET, "doc.pdf", b"%PDF", {"content_type": "application/pdf", "metadata": {"owner": "bob"}})

        meta = store.head_object(BUCKET, "doc.pdf")

        assert meta.key == "doc.pdf"
        assert meta.content_length == 4
        assert meta.content_type == "application/pdf"
        assert meta.storage_class == "STANDARD"
        assert meta.user_metadata == {"owner": "bob"}
        assert meta.etag.startswith('"')

    def test_head_missing_object(self, store):
        with pytest.raises(ObjectNotFoundError):
            store.head_object(BUCKET, "nothing")

    def test_copy_object(self, store, fake_s3):
        store.put_object(BUCKET, "src.txt", b"copy me", {"metadata": {"k": "v"}})

        store.copy_object(BUCKET, "src.txt", BUCKET, "dst.txt")

        assert fake_s3.buckets[BUCKET].objects["dst.txt"].data == b"copy me"
        assert store.head_object(BUCKET, "dst.txt").user_metadata == {"k": "v"}

    def test_list_objects_pagination(self, store):
        for name in ("e", "c", "a", "d", "b"):
            store.put_object(BUCKET, f"logs/{name}.log", name.encode())
        store.put_object(BUCKET, "other.txt", b"x")

        keys: list[str] = []
        pages = 0
        token = None
        while True:
            options = {"prefix": "logs/", "max_keys": 2}
            if token:
                options["continuation_token"] = token
            page = store.list_objects(BUCKET, options)
            pages += 1
            keys.extend(obj.key for obj in page.objects)
            if not page.is_truncated:
                assert page.next_continuation_token is None
                break
            assert page.count == 2
            token = page.next_continuation_token

        assert pages == 3
        assert keys == [f"logs/{n}.log" for n in "abcde"]

    def test_list_empty_bucket(self, store):
        page = store.list_objects(BUCKET)

        assert page.count == 0
        assert not page.is_truncated
