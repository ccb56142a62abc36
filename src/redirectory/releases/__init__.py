"""Remote release store: GitHub client and the reconciler that maps revisions onto it."""
from redirectory.releases.github import GitHubClient, Release, RemoteAsset
from redirectory.releases.reconciler import ReleaseReconciler, ReleaseStoreClient, mime_type

__all__ = [
    "GitHubClient",
    "Release",
    "ReleaseReconciler",
    "ReleaseStoreClient",
    "RemoteAsset",
    "mime_type",
]
