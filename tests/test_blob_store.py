import os

import pytest

from carelink.services.blob_store import BlobStoreError, LocalBlobStore, safe_filename


def test_upload_read_and_delete_prefix(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    store.upload("bucket", "user-1/a.png", b"a")
    store.upload("bucket", "user-1/b.png", b"b")
    assert store.read("bucket", "user-1/a.png") == b"a"
    assert store.local_path("bucket", "user-1/a.png").endswith(os.path.join("bucket", "user-1", "a.png"))

    store.delete_prefix("bucket", "user-1")
    assert not store.exists("bucket", "user-1/a.png")
    with pytest.raises(BlobStoreError):
        store.local_path("bucket", "user-1/a.png")
    store.delete_prefix("bucket", "user-1")


def test_upload_without_upsert_refuses_to_overwrite(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    store.upload("bucket", "x.png", b"1")
    with pytest.raises(BlobStoreError):
        store.upload("bucket", "x.png", b"2")
    store.upload("bucket", "x.png", b"2", upsert=True)
    assert store.read("bucket", "x.png") == b"2"


def test_paths_cannot_escape_bucket(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    with pytest.raises(BlobStoreError):
        store.upload("bucket", "../outside.png", b"x")


def test_safe_filename():
    assert safe_filename("../my id (1).png") == "my_id__1_.png"
    assert safe_filename(None) == "file"
