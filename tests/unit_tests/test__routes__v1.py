import hashlib
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from tests.fixtures.app_client import TEST_SIGNING_KEY
from tests.fixtures.release_store import TEST_LOGIN, TEST_TOKEN
from redirectory.tokens import CapabilityTokenIssuer

RECIPE = "/v1/conans/zlib/1.3/github/madler"
PACKAGE = f"{RECIPE}/packages/pkg1"

CONANFILE = b"from conan import ConanFile\n"
PACKAGE_TGZ = b"\x1f\x8b binary"


def upload_via_signed_urls(client: TestClient, endpoint: str, files: dict):
    response = client.post(f"{endpoint}/upload_urls", json={name: len(body) for name, body in files.items()})
    assert response.status_code == status.HTTP_200_OK
    urls = response.json()
    assert sorted(urls) == sorted(files)
    for name, body in files.items():
        assert client.put(urls[name], content=body).status_code == status.HTTP_201_CREATED
    return urls


def test_upload_urls_are_signed_for_each_file(client: TestClient):
    response = client.post(f"{RECIPE}/upload_urls", json={"conanfile.py": 28})
    url = urlsplit(response.json()["conanfile.py"])
    query = parse_qs(url.query)

    assert url.path == "/v1/files/zlib/1.3/github/madler/0/export/conanfile.py"
    assert query["user"] == [TEST_LOGIN]
    assert query["auth"] == [TEST_TOKEN]
    capability = CapabilityTokenIssuer(TEST_SIGNING_KEY).decode(query["signature"][0])
    assert capability.resource_path == "zlib/1.3/github/madler/0/export/conanfile.py"
    assert capability.filesize == 28


def test_recipe_round_trip(client: TestClient, release_store):
    upload_via_signed_urls(client, RECIPE, {"conanfile.py": CONANFILE})

    response = client.get(RECIPE)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"conanfile.py": hashlib.md5(CONANFILE).hexdigest()}

    response = client.get(f"{RECIPE}/download_urls")
    assert response.json()["conanfile.py"].endswith("/0.export.conanfile.py")

    # Revision-aware clients see the same upload as revision "0".
    assert client.get("/v2/conans/zlib/1.3/github/madler/latest").json()["revision"] == "0"

    response = client.get("/v1/files/zlib/1.3/github/madler/0/export/conanfile.py")
    assert response.status_code == status.HTTP_301_MOVED_PERMANENTLY


def test_package_round_trip(client: TestClient):
    upload_via_signed_urls(client, RECIPE, {"conanfile.py": CONANFILE})
    upload_via_signed_urls(client, PACKAGE, {"conan_package.tgz": PACKAGE_TGZ})

    response = client.get(PACKAGE)
    assert response.json() == {"conan_package.tgz": hashlib.md5(PACKAGE_TGZ).hexdigest()}
    response = client.get(f"{PACKAGE}/download_urls")
    assert response.json()["conan_package.tgz"].endswith("/0.package.pkg1.0.conan_package.tgz")


def test_signed_url_is_bound_to_size(client: TestClient):
    response = client.post(f"{RECIPE}/upload_urls", json={"conanfile.py": len(CONANFILE)})
    url = response.json()["conanfile.py"]
    response = client.put(url, content=CONANFILE + b"extra")
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_signed_url_is_bound_to_file(client: TestClient):
    response = client.post(f"{RECIPE}/upload_urls", json={"conanfile.py": len(CONANFILE)})
    url = response.json()["conanfile.py"].replace("conanfile.py?", "conanmanifest.txt?")
    response = client.put(url, content=CONANFILE)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_unsigned_upload_is_refused(client: TestClient):
    response = client.put("/v1/files/zlib/1.3/github/madler/0/export/conanfile.py", content=CONANFILE)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.parametrize("package_ids", [[], ["pkg1", "pkg1"]])
def test_delete_packages(client: TestClient, release_store, package_ids):
    upload_via_signed_urls(client, RECIPE, {"conanfile.py": CONANFILE})
    upload_via_signed_urls(client, PACKAGE, {"conan_package.tgz": PACKAGE_TGZ})

    response = client.post(f"{RECIPE}/packages/delete", json={"package_ids": package_ids})
    assert response.status_code == status.HTTP_200_OK
    assert client.get(PACKAGE).status_code == status.HTTP_404_NOT_FOUND
    assert release_store.asset_names("madler", "zlib", "1.3") == ["0.export.conanfile.py"]


def test_delete_unknown_package(client: TestClient):
    upload_via_signed_urls(client, RECIPE, {"conanfile.py": CONANFILE})
    response = client.post(f"{RECIPE}/packages/delete", json={"package_ids": ["nope"]})
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_recipe(client: TestClient, release_store):
    upload_via_signed_urls(client, RECIPE, {"conanfile.py": CONANFILE})
    assert client.delete(RECIPE).status_code == status.HTTP_200_OK
    assert client.get(RECIPE).status_code == status.HTTP_404_NOT_FOUND
    assert release_store.asset_names("madler", "zlib", "1.3") == []
