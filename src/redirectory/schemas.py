####################################
# --- Request/response schemas --- #
####################################

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class RevisionInfo(BaseModel):
    """One recipe or package revision."""
    revision: str = Field(description="The revision id.")
    time: str = Field(description="ISO 8601 creation time.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "revision": "f1c6a1d6bf1fe1a1e8d2e1f3b9d0a1c4",
                "time": "2024-01-01T00:00:00+00:00",
            }
        }
    )


class RecipeRevisionsResponse(BaseModel):
    """Response model for `GET /v2/conans/:ref/revisions`."""
    reference: str
    revisions: List[RevisionInfo]


class PackageRevisionsResponse(BaseModel):
    """Response model for `GET /v2/conans/:ref/revisions/:rrev/packages/:pkg/revisions`."""
    package_reference: str
    revisions: List[RevisionInfo]


class FilesResponse(BaseModel):
    """Response model for the `.../files` listings."""
    files: Dict[str, Dict] = Field(description="Filename to (empty) metadata.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "files": {
                    "conanfile.py": {},
                    "conanmanifest.txt": {},
                    "conan_export.tgz": {},
                }
            }
        }
    )


class DeletePackagesRequest(BaseModel):
    """Body of `POST /v1/conans/:ref/packages/delete`."""
    package_ids: List[str] = Field(
        default_factory=list,
        description="Packages to delete; empty means every package of the latest recipe revision.",
    )
