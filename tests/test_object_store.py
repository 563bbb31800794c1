"""Object store gateway tests against a stubbed boto3 S3 client."""

import boto3
import pytest
from botocore.stub import ANY, Stubber

from src.domain.errors import UpstreamFailure
from src.infrastructure.object_store import ObjectStoreGateway


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def _put_params(**overrides):
    params = {
        "Bucket": "permit-photos",
        "Key": ANY,
        "Body": ANY,
        "ContentType": "image/jpeg",
        "ACL": "private",
        "Metadata": ANY,
    }
    params.update(overrides)
    return params


class TestObjectKeys:
    def test_key_is_namespaced_by_driver_and_slot(self, s3_client):
        store = ObjectStoreGateway("permit-photos", client=s3_client)
        key = store.object_key("IMG_001.JPG", "waybill_1", 42)
        assert key.startswith("42/waybill_1/")
        assert key.endswith(".jpg")

    def test_keys_are_unique(self, s3_client):
        store = ObjectStoreGateway("permit-photos", client=s3_client)
        assert store.object_key("a.png", "car_exterior", 1) != store.object_key(
            "a.png", "car_exterior", 1
        )

    def test_public_url_wins(self, s3_client):
        store = ObjectStoreGateway(
            "permit-photos",
            client=s3_client,
            endpoint_url="https://s3.example.com",
            public_url="https://cdn.example.com/",
        )
        assert store.url_for("1/waybill_1/x.jpg") == "https://cdn.example.com/1/waybill_1/x.jpg"

    def test_endpoint_url_includes_bucket(self, s3_client):
        store = ObjectStoreGateway(
            "permit-photos", client=s3_client, endpoint_url="https://s3.example.com"
        )
        assert store.url_for("k") == "https://s3.example.com/permit-photos/k"


class TestUpload:
    @pytest.mark.asyncio
    async def test_upload_returns_reference_and_url(self, s3_client):
        store = ObjectStoreGateway(
            "permit-photos", client=s3_client, public_url="https://cdn.example.com"
        )
        with Stubber(s3_client) as stubber:
            stubber.add_response("put_object", {"ETag": '"abc"'}, _put_params())
            stored = await store.upload(b"\xff\xd8", "a.jpg", "image/jpeg", "waybill_2", 7)
            stubber.assert_no_pending_responses()

        assert stored.reference.startswith("7/waybill_2/")
        assert stored.url == f"https://cdn.example.com/{stored.reference}"

    @pytest.mark.asyncio
    async def test_client_error_becomes_upstream_failure(self, s3_client):
        store = ObjectStoreGateway("permit-photos", client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_client_error(
                "put_object",
                service_error_code="AccessDenied",
                http_status_code=403,
                expected_params=_put_params(),
            )
            with pytest.raises(UpstreamFailure):
                await store.upload(b"\xff", "a.jpg", "image/jpeg", "waybill_1", 7)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_success(self, s3_client):
        store = ObjectStoreGateway("permit-photos", client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_response(
                "delete_object", {}, {"Bucket": "permit-photos", "Key": "7/waybill_1/x.jpg"}
            )
            assert await store.delete("7/waybill_1/x.jpg") is True

    @pytest.mark.asyncio
    async def test_delete_failure_is_reported_not_raised(self, s3_client):
        store = ObjectStoreGateway("permit-photos", client=s3_client)
        with Stubber(s3_client) as stubber:
            stubber.add_client_error("delete_object", service_error_code="NoSuchBucket")
            assert await store.delete("7/waybill_1/x.jpg") is False
