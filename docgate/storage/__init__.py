"""Storage for docgate.

This package provides the upload pipeline that validates documents and
the backends it forwards them to.
"""

from docgate.storage.backends import S3StorageBackend, StorageBackend, UploadArtifact
from docgate.storage.uploads import UploadPipeline

__all__ = ["S3StorageBackend", "StorageBackend", "UploadArtifact", "UploadPipeline"]
