import hashlib

import pytest

from redirectory.config.settings import Settings
from redirectory.errors import (
    BadRequestError,
    NotFoundError,
    SizeMismatchError,
    UnsupportedBackendError,
)
from redirectory.releases.reconciler import ReleaseReconciler, mime_type
from redirectory.revisions.levels import PackageRevisionLevel, RecipeRevisionLevel
from redirectory.revisions.models import Mode, PackageReference
from tests.fixtures.app_client import TEST_SIGNING_KEY

REF = PackageReference(name="zlib", version="1.3", user="github", channel="madler")


@pytest.fixture
def reconciler(release_store):
    return ReleaseReconciler(release_store, Settings(signing_key=TEST_SIGNING_KEY))


@pytest.mark.parametrize(
    "filename, expected",
    [
        ("conanmanifest.txt", "text/plain"),
        ("conanfile.py", "text/x-python"),
        ("conan_package.tgz", "application/gzip"),
        ("conaninfo", "application/octet-stream"),
        ("archive.zip", "application/octet-stream"),
    ],
)
def test_mime_type(filename, expected):
    assert mime_type(filename) == expected


def test_get_release_read_only_does_not_create(reconciler, release_store):
    with pytest.raises(NotFoundError):
        reconciler.get_release(REF)
    assert release_store.created_releases == []


def test_get_release_creates_once(reconciler, release_store):
    first = reconciler.get_release(REF, Mode.CREATE)
    second = reconciler.get_release(REF, Mode.CREATE)
    assert first == second
    assert release_store.created_releases == [("madler", "zlib", "1.3")]


def test_get_release_finds_v_prefixed_tag(reconciler, release_store):
    existing = release_store.add_release("madler", "zlib", "v1.3")
    assert reconciler.get_release(REF, Mode.CREATE) == existing
    assert release_store.created_releases == []


def test_unsupported_host_is_refused(reconciler, release_store):
    ref = PackageReference(name="zlib", version="1.3", user="gitlab", channel="madler")
    with pytest.raises(UnsupportedBackendError):
        reconciler.get_release(ref, Mode.CREATE)
    assert release_store.created_releases == []


def test_put_file_prefixes_asset_name_with_level(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    level = PackageRevisionLevel(REF, "rrev1", "pkg1", "prev1")
    asset = reconciler.put_file(release, level, "conan_package.tgz", b"payload")

    assert asset.name == "rrev1.package.pkg1.prev1.conan_package.tgz"
    assert asset.md5 == hashlib.md5(b"payload").hexdigest()
    assert release_store.asset_names("madler", "zlib", "1.3") == [asset.name]


def test_get_assets_filters_by_level(reconciler):
    release = reconciler.get_release(REF, Mode.CREATE)
    export = RecipeRevisionLevel(REF, "rrev1")
    package = PackageRevisionLevel(REF, "rrev1", "pkg1", "prev1")
    reconciler.put_file(release, export, "conanfile.py", b"x")
    reconciler.put_file(release, package, "conaninfo.txt", b"y")
    reconciler.put_file(release, RecipeRevisionLevel(REF, "rrev2"), "conanfile.py", b"z")

    assert list(reconciler.get_assets(export, release)) == ["conanfile.py"]
    assert list(reconciler.get_assets(package, release)) == ["conaninfo.txt"]


def test_size_mismatch_is_recovered_by_next_upload(reconciler, release_store):
    level = RecipeRevisionLevel(REF, "0")

    release = reconciler.get_release(REF, Mode.CREATE)
    with pytest.raises(SizeMismatchError):
        reconciler.put_file(release, level, "one.txt", b"111", content_length=2)

    release = reconciler.get_release(REF, Mode.CREATE)
    two = reconciler.put_file(release, level, "two.txt", b"222", content_length=3)
    release = reconciler.get_release(REF, Mode.CREATE)
    three = reconciler.put_file(release, level, "three.txt", b"333", content_length=3)

    assert two.id != three.id
    assert release_store.created_releases == [("madler", "zlib", "1.3")]
    assert release_store.asset_names("madler", "zlib", "1.3") == ["0.export.two.txt", "0.export.three.txt"]


def test_delete_assets_skips_lookup_when_empty(reconciler):
    # No release exists; an empty deletion must not look for one.
    assert reconciler.delete_assets(REF, []) == 0


def test_delete_assets(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    asset = reconciler.put_file(release, RecipeRevisionLevel(REF, "rrev1"), "conanfile.py", b"x")
    assert reconciler.delete_assets(REF, [asset]) == 1
    assert release_store.deleted_assets == [asset.id]
    assert release_store.asset_names("madler", "zlib", "1.3") == []


def test_delete_assets_when_release_is_gone(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    asset = reconciler.put_file(release, RecipeRevisionLevel(REF, "rrev1"), "conanfile.py", b"x")
    release_store.releases.clear()

    assert reconciler.delete_assets(REF, [asset]) == 0
    assert release_store.deleted_assets == []


def test_put_file_replaces_asset_left_by_unrecorded_upload(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    level = RecipeRevisionLevel(REF, "rrev1")
    first = reconciler.put_file(release, level, "conanfile.py", b"old")
    second = reconciler.put_file(release, level, "conanfile.py", b"new")

    assert release_store.deleted_assets == [first.id]
    assert release_store.asset_names("madler", "zlib", "1.3") == ["rrev1.export.conanfile.py"]
    assert second.md5 == hashlib.md5(b"new").hexdigest()


def test_put_file_streams_chunks(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    level = PackageRevisionLevel(REF, "rrev1", "pkg1", "prev1")
    asset = reconciler.put_file(release, level, "conan_package.tgz", iter([b"ab", b"cd"]), 4)

    assert asset.md5 == hashlib.md5(b"abcd").hexdigest()
    assert release_store.uploads == [(asset.name, "application/gzip", b"abcd")]


def test_put_file_stops_reading_past_declared_length(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    chunks = iter([b"aa", b"bb", b"cc"])
    with pytest.raises(SizeMismatchError):
        reconciler.put_file(release, RecipeRevisionLevel(REF, "0"), "one.txt", chunks, 3)

    # The upload was abandoned before the rest of the body was read.
    assert next(chunks) == b"cc"
    assert release_store.asset_names("madler", "zlib", "1.3") == []


def test_put_file_body_shorter_than_declared(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    with pytest.raises(SizeMismatchError):
        reconciler.put_file(release, RecipeRevisionLevel(REF, "0"), "one.txt", iter([b"ab"]), 4)
    assert release_store.asset_names("madler", "zlib", "1.3") == []


def test_put_file_chunks_need_declared_length(reconciler):
    release = reconciler.get_release(REF, Mode.CREATE)
    with pytest.raises(BadRequestError):
        reconciler.put_file(release, RecipeRevisionLevel(REF, "0"), "one.txt", iter([b"ab"]))


def test_put_empty_file(reconciler, release_store):
    release = reconciler.get_release(REF, Mode.CREATE)
    asset = reconciler.put_file(release, RecipeRevisionLevel(REF, "0"), "empty.txt", iter([]), 0)
    assert asset.md5 == hashlib.md5(b"").hexdigest()
    assert release_store.uploads == [(asset.name, "text/plain", b"")]
