"""Bounded multipart reading for document uploads.

Starlette's form parser spools every file to disk before the handler sees
it. :class:`UploadFormParser` applies the upload pipeline's checks while the
body streams in instead: the file part's content type is checked as soon as
its headers arrive, its size as each chunk arrives, and the body as a whole
may not exceed the ceiling plus :data:`MULTIPART_OVERHEAD`. Reading stops at
the first violation.
"""

from typing import AsyncIterator

from python_multipart.multipart import parse_options_header
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import Request

from docgate.storage.uploads import UploadPipeline

MULTIPART_OVERHEAD = 64 * 1024
FILE_FIELD = "file"


class UploadFormParser(MultiPartParser):
    """Multipart parser that enforces the pipeline's policy while reading."""

    def __init__(
        self,
        headers: Headers,
        stream: AsyncIterator[bytes],
        pipeline: UploadPipeline,
        field: str = FILE_FIELD,
    ):
        self.pipeline = pipeline
        self.field = field
        self.body_read = 0
        self.file_read = 0
        super().__init__(headers, self._bounded(stream))

    async def _bounded(self, stream: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
        async for chunk in stream:
            self.body_read += len(chunk)
            self.pipeline.validate_size(self.body_read - MULTIPART_OVERHEAD)
            yield chunk

    def _in_file_part(self) -> bool:
        part = self._current_part
        return part.file is not None and part.field_name == self.field

    def on_headers_finished(self) -> None:
        super().on_headers_finished()
        # An empty filename is a form with no file chosen
        if self._in_file_part() and self._current_part.file.filename:
            self.pipeline.validate_content_type(self._current_part.file.content_type)

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._in_file_part():
            self.file_read += end - start
            self.pipeline.validate_size(self.file_read)
        super().on_part_data(data, start, end)


async def read_upload(request: Request, pipeline: UploadPipeline) -> UploadFile | None:
    """Read the uploaded document from a request, enforcing the upload policy.

    Returns None when the request carries no file (including bodies that are
    not ``multipart/form-data``). Fields other than the document are
    discarded.

    Raises:
        ValidationError: UNSUPPORTED_TYPE or TOO_LARGE, as soon as known
    """
    content_type, _ = parse_options_header(request.headers.get("Content-Type", ""))
    if content_type != b"multipart/form-data":
        return None

    parser = UploadFormParser(request.headers, request.stream(), pipeline)
    try:
        form: FormData = await parser.parse()
    except MultiPartException:
        # An unparseable body carries no usable file
        return None

    file = form.get(FILE_FIELD)
    for _, value in form.multi_items():
        if isinstance(value, UploadFile) and value is not file:
            await value.close()

    if not isinstance(file, UploadFile) or (not file.filename and not file.size):
        if isinstance(file, UploadFile):
            await file.close()
        return None
    return file
