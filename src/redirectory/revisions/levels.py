"""Addresses of the two levels that own files: a recipe revision and a package revision."""
from dataclasses import dataclass

from redirectory.revisions.models import PackageReference


@dataclass(frozen=True)
class RecipeRevisionLevel:
    """Export files (conanfile, manifest, sources) of one recipe revision."""
    reference: PackageReference
    rrev: str

    @property
    def asset_prefix(self) -> str:
        return f"{self.rrev}.export."

    @property
    def resource_path(self) -> str:
        return f"{self.reference.path}/{self.rrev}/export"

    def asset_name(self, filename: str) -> str:
        return self.asset_prefix + filename


@dataclass(frozen=True)
class PackageRevisionLevel:
    """Files of one package revision of one binary configuration."""
    reference: PackageReference
    rrev: str
    package_id: str
    prev: str

    @property
    def asset_prefix(self) -> str:
        return f"{self.rrev}.package.{self.package_id}.{self.prev}."

    @property
    def resource_path(self) -> str:
        return f"{self.reference.path}/{self.rrev}/package/{self.package_id}/{self.prev}"

    def asset_name(self, filename: str) -> str:
        return self.asset_prefix + filename
