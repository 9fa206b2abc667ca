"""Tests for rpg_admin.assets: key layout, id allocation, signing."""

import base64

import pytest
from botocore.exceptions import ClientError

from conftest import FakeS3
from rpg_admin import assets
from rpg_admin.assets import AssetError, AssetRegistry, decode_image


def _registry(keys: list[str] | None = None, **kwargs) -> tuple[AssetRegistry, FakeS3]:
    client = FakeS3(keys, **kwargs)
    return AssetRegistry(bucket="bucket", client=client), client


# ---------------------------------------------------------------------------
# Id allocation
# ---------------------------------------------------------------------------

def test_key_layout():
    reg, _ = _registry()
    assert reg.key("items", 6) == "images/items/6.webp"


def test_ids_only_numeric_images():
    reg, _ = _registry([
        "images/items/1.webp",
        "images/items/2.png",
        "images/items/5.JPG",
        "images/items/notes.txt",
        "images/items/7.txt",
        "images/items/icon.webp",
        "images/perks/9.webp",
    ])
    assert reg.ids("items") == [1, 2, 5]


def test_next_id_is_max_plus_one():
    reg, _ = _registry(["images/items/1.webp", "images/items/2.webp", "images/items/5.webp"])
    assert reg.next_id("items") == 6


def test_next_id_empty_category():
    reg, _ = _registry(["images/items/3.webp"])
    assert reg.next_id("talents") == 1


def test_put_allocates_and_uploads():
    reg, client = _registry(["images/items/1.webp", "images/items/2.webp", "images/items/5.webp"])
    asset_id, key, url = reg.put("items", b"img")
    assert asset_id == 6
    assert key == "images/items/6.webp"
    assert client.puts[0]["Bucket"] == "bucket"
    assert client.puts[0]["ContentType"] == "image/webp"
    assert url.startswith("https://signed.example/images/items/6.webp")


def test_put_with_explicit_id_overwrites():
    reg, client = _registry(["images/items/3.webp"])
    asset_id, key, _ = reg.put("items", b"new", asset_id=3)
    assert (asset_id, key) == (3, "images/items/3.webp")
    assert client.objects[key] == b"new"


def test_list_failure_raises_asset_error():
    reg, client = _registry()

    def broken(**kwargs):
        raise ClientError({"Error": {"Code": "NoSuchBucket", "Message": "gone"}}, "ListObjectsV2")

    client.paginate = broken
    with pytest.raises(AssetError):
        reg.ids("items")


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------

def test_sign_uses_ttl():
    reg, _ = _registry()
    assert reg.sign("perks", 4).endswith("images/perks/4.webp?ttl=3600")


def test_sign_no_asset_is_empty():
    reg, _ = _registry()
    assert reg.sign("perks", 0) == ""
    assert reg.sign("perks", None) == ""


def test_sign_failure_is_empty_url():
    reg, _ = _registry(fail_sign=True)
    assert reg.sign("items", 1) == ""


def test_listing_signed_for_a_day():
    reg, _ = _registry(["images/enemies/2.webp"])
    assert reg.list("enemies") == [
        {"id": 2, "url": "https://signed.example/images/enemies/2.webp?ttl=86400"}
    ]


def test_module_sign_without_registry():
    assert assets.sign("items", 1) == ""


def test_module_registry_missing_raises():
    with pytest.raises(AssetError):
        assets.registry()


# ---------------------------------------------------------------------------
# decode_image
# ---------------------------------------------------------------------------

def test_decode_plain_base64():
    assert decode_image(base64.b64encode(b"abc").decode()) == b"abc"


def test_decode_strips_data_url_prefix():
    encoded = "data:image/png;base64," + base64.b64encode(b"png").decode()
    assert decode_image(encoded) == b"png"


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_image("not base64!!")
