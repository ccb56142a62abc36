##########################################
# --- Revision Store entity graph --- #
##########################################

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Generic, List, MutableMapping, MutableSequence, TypeVar, Union

from pydantic import BaseModel, Field

from redirectory.errors import EmptyError

LATEST = "latest"


def now() -> datetime:
    return datetime.now(timezone.utc)


class Mode(str, Enum):
    """How a resolve call treats a missing node."""
    READ_ONLY = "read-only"
    READ_WRITE = "read-write"
    CREATE = "create"


@dataclass(frozen=True)
class PackageReference:
    """`name/version@user/channel`, as taken from a request path."""
    name: str
    version: str
    user: str
    channel: str

    def __str__(self) -> str:
        return f"{self.name}/{self.version}@{self.user}/{self.channel}"

    @property
    def host(self) -> str:
        return self.user

    @property
    def owner(self) -> str:
        return self.channel

    @property
    def repo(self) -> str:
        return self.name

    @property
    def path(self) -> str:
        return f"{self.name}/{self.version}/{self.user}/{self.channel}"


class Asset(BaseModel):
    """One file of a revision, as recorded when it was uploaded."""
    name: str = Field(description="Asset name in the release (level-prefixed).")
    md5: str
    url: str = Field(description="Permanent, unauthenticated download URL.")
    id: int = Field(description="Release-store asset id.")


class PackageRevision(BaseModel):
    id: str
    time: datetime = Field(default_factory=now)
    assets: Dict[str, Asset] = Field(default_factory=dict)


class Package(BaseModel):
    """All revisions of one binary configuration."""
    id: str
    revisions: List[PackageRevision] = Field(default_factory=list)


class RecipeRevision(BaseModel):
    id: str
    time: datetime = Field(default_factory=now)
    assets: Dict[str, Asset] = Field(default_factory=dict)
    packages: Dict[str, Package] = Field(default_factory=dict)


class Recipe(BaseModel):
    reference: str
    revisions: List[RecipeRevision] = Field(default_factory=list)


T = TypeVar("T")


@dataclass
class Cursor(Generic[T]):
    """
    A resolved node: its value, the container that owns it, and its position there.

    Valid until the next mutation of `container`. `position` is an index into a
    list of revisions or a key into a mapping of packages/recipes.
    """
    value: T
    container: Union[MutableSequence[T], MutableMapping[str, T]]
    position: Union[int, str]

    def remove(self) -> T:
        """Splice the node out of its container."""
        if isinstance(self.position, int) and self.container[self.position] is not self.value:
            raise RuntimeError("stale cursor: container changed since resolution")
        value = self.container[self.position]
        del self.container[self.position]
        return value


Revision = TypeVar("Revision", RecipeRevision, PackageRevision)


def latest_revision(revisions: List[Revision]) -> Cursor[Revision]:
    """
    Select the revision with the greatest `time`.

    Ties go to the earliest entry: a later revision only wins if its time is
    strictly greater.
    """
    if not revisions:
        raise EmptyError("No revisions")
    index = 0
    for i in range(1, len(revisions)):
        if revisions[i].time > revisions[index].time:
            index = i
    return Cursor(revisions[index], revisions, index)
