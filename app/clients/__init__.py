"""Expose constructed client wrappers."""

from .blob_store import BlobStore, S3BlobStore, SQLiteBlobStore, build_blob_store
from .github import GitHubAPIClient, GitHubAPIError, GitHubOAuthClient, GitHubOAuthError
from .sqlite_store import SQLiteSubscriptionTable

__all__ = [
    "BlobStore",
    "GitHubAPIClient",
    "GitHubAPIError",
    "GitHubOAuthClient",
    "GitHubOAuthError",
    "S3BlobStore",
    "SQLiteBlobStore",
    "SQLiteSubscriptionTable",
    "build_blob_store",
]
