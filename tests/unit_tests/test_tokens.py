import pytest

from redirectory.errors import InvalidCapabilityError
from redirectory.tokens import CapabilityTokenIssuer

PATH = "zlib/1.3/github/madler/0/export/conanfile.py"
NOW = 1_700_000_000


class FrozenClock:
    def __init__(self, value: float = NOW):
        self.value = value

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def issuer(clock):
    return CapabilityTokenIssuer("secret", ttl_minutes=30, clock=clock)


def test_issue_then_verify(issuer):
    token = issuer.issue(PATH, "octocat", 1234)
    capability = issuer.verify(token, PATH, "octocat", 1234)
    assert capability.exp == NOW + 30 * 60


def test_same_inputs_give_same_token(issuer):
    assert issuer.issue(PATH, "octocat", 1234) == issuer.issue(PATH, "octocat", 1234)


def test_expired_token(issuer, clock):
    token = issuer.issue(PATH, "octocat", 1234)
    clock.value = NOW + 30 * 60
    with pytest.raises(InvalidCapabilityError, match="expired"):
        issuer.verify(token, PATH, "octocat", 1234)


@pytest.mark.parametrize(
    "path, user, size",
    [
        ("zlib/1.3/github/madler/0/export/conanmanifest.txt", "octocat", 1234),
        (PATH, "mallory", 1234),
        (PATH, "octocat", 1235),
    ],
)
def test_token_is_bound_to_path_user_and_size(issuer, path, user, size):
    token = issuer.issue(PATH, "octocat", 1234)
    with pytest.raises(InvalidCapabilityError):
        issuer.verify(token, path, user, size)


def test_token_from_another_secret(issuer, clock):
    forged = CapabilityTokenIssuer("other", clock=clock).issue(PATH, "octocat", 1234)
    with pytest.raises(InvalidCapabilityError, match="Invalid signature"):
        issuer.verify(forged, PATH, "octocat", 1234)


@pytest.mark.parametrize("token", ["", "abc", "a.b.c", "a.b.c.d"])
def test_malformed_token(issuer, token):
    with pytest.raises(InvalidCapabilityError):
        issuer.decode(token)


def test_tampered_claims(issuer):
    header, _, signature = issuer.issue(PATH, "octocat", 1234).split(".")
    _, payload, _ = issuer.issue(PATH, "octocat", 999999).split(".")
    with pytest.raises(InvalidCapabilityError):
        issuer.decode(f"{header}.{payload}.{signature}")
