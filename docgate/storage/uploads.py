"""Upload pipeline: validate an incoming document and forward it to storage."""

import logging
import os
import tempfile
from contextlib import contextmanager
from typing import BinaryIO, Iterator

from starlette.datastructures import UploadFile

from docgate.core.exceptions import ValidationError, ValidationReason
from docgate.storage.backends import StorageBackend, UploadArtifact

logger = logging.getLogger(__name__)

RAW_RESOURCE_TYPE = "raw"
DEFAULT_MAX_SIZE = 5 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


def _is_seekable(stream: BinaryIO) -> bool:
    try:
        return stream.seekable()
    except (AttributeError, ValueError):
        return False


def _measure(stream: BinaryIO) -> int:
    """Size of the bytes between the current position and the end."""
    start = stream.tell()
    end = stream.seek(0, os.SEEK_END)
    stream.seek(start)
    return end - start


class UploadPipeline:
    """Validates documents and relays them to a storage backend.

    Checks run in a fixed order: content type first, then size. Only a
    document that passes both is forwarded, and it is forwarded exactly once;
    a backend failure is raised to the caller without retrying.

    Example:
        pipeline = UploadPipeline(backend)
        artifact = await pipeline.upload(fileobj, "application/pdf", size)
        await pipeline.delete(artifact.public_id)
    """

    def __init__(
        self,
        backend: StorageBackend,
        allowed_content_type: str = "application/pdf",
        max_size: int = DEFAULT_MAX_SIZE,
        resource_type: str = RAW_RESOURCE_TYPE,
        staging_dir: str | None = None,
    ):
        """Initialize the pipeline.

        Args:
            backend: Where validated documents are sent
            allowed_content_type: The only content type accepted
            max_size: Size ceiling in bytes
            resource_type: Hint passed to the backend with every operation
            staging_dir: Directory for staging files (system default if None)
        """
        self.backend = backend
        self.allowed_content_type = allowed_content_type
        self.max_size = max_size
        self.resource_type = resource_type
        self.staging_dir = staging_dir

    def validate_content_type(self, content_type: str | None) -> None:
        if content_type != self.allowed_content_type:
            raise ValidationError(
                ValidationReason.UNSUPPORTED_TYPE,
                "Only PDF files are allowed."
                if self.allowed_content_type == "application/pdf"
                else f"Only {self.allowed_content_type} files are allowed.",
                field="file",
            )

    def validate_size(self, size: int) -> None:
        if size > self.max_size:
            raise ValidationError(
                ValidationReason.TOO_LARGE,
                f"File too large. Maximum size is {self.max_size} bytes.",
                field="file",
            )

    @contextmanager
    def _stage(self, stream: BinaryIO) -> Iterator[BinaryIO]:
        """Copy a non-seekable stream into a temporary file.

        Copying stops as soon as the ceiling is crossed. The file is removed
        when the context exits, whatever happens inside it.
        """
        with tempfile.TemporaryFile(dir=self.staging_dir) as staged:
            copied = 0
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    break
                copied += len(chunk)
                self.validate_size(copied)
                staged.write(chunk)
            staged.seek(0)
            yield staged

    async def _forward(
        self, stream: BinaryIO, filename: str | None, storage_hint: str
    ) -> UploadArtifact:
        artifact = await self.backend.upload(
            stream, resource_type=storage_hint, filename=filename
        )
        logger.info(f"Stored document {artifact.public_id}")
        return artifact

    async def upload(
        self,
        stream: BinaryIO,
        declared_content_type: str | None,
        size: int | None = None,
        filename: str | None = None,
        storage_hint: str | None = None,
    ) -> UploadArtifact:
        """Validate a document and forward it to the backend.

        Args:
            stream: The document bytes
            declared_content_type: Content type declared by the client
            size: Size declared by the transport, if known
            filename: Original filename, used for the stored key's extension
            storage_hint: Resource type hint (defaults to the pipeline's)

        Returns:
            The stored document's reference and URL

        Raises:
            ValidationError: UNSUPPORTED_TYPE or TOO_LARGE
            BackendError: If the backend rejects the document
        """
        storage_hint = storage_hint or self.resource_type

        self.validate_content_type(declared_content_type)
        if size is not None:
            self.validate_size(size)

        if _is_seekable(stream):
            self.validate_size(_measure(stream))
            return await self._forward(stream, filename, storage_hint)

        with self._stage(stream) as staged:
            return await self._forward(staged, filename, storage_hint)

    async def upload_file(self, file: UploadFile | None) -> UploadArtifact:
        """Run a multipart upload through the pipeline.

        The spooled file behind ``file`` is closed, and so deleted, once the
        backend call has finished, on success and on failure alike.

        Raises:
            ValidationError: NO_FILE, UNSUPPORTED_TYPE or TOO_LARGE
            BackendError: If the backend rejects the document
        """
        if file is None:
            raise ValidationError(
                ValidationReason.NO_FILE, "No file uploaded.", field="file"
            )

        try:
            return await self.upload(
                file.file,
                file.content_type,
                size=file.size,
                filename=file.filename,
            )
        finally:
            await file.close()

    async def delete(self, public_id: str | None) -> dict:
        """Delete a stored document.

        No content checks apply: a document is identified by reference only.
        The backend's result is returned untouched.

        Raises:
            ValidationError: MISSING_REFERENCE if ``public_id`` is empty
            BackendError: If the backend fails
        """
        if not public_id or not public_id.strip():
            raise ValidationError(
                ValidationReason.MISSING_REFERENCE,
                "Missing public_id.",
                field="public_id",
            )

        result = await self.backend.destroy(public_id, resource_type=self.resource_type)
        logger.info(f"Delete {public_id}: {result}")
        return result
