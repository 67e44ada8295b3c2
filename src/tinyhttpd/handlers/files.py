"""
=============================================================================
FILE HANDLER
=============================================================================

GET and POST on /files/<name>, backed by a directory on disk.

    GET  /files/notes.txt   → 200 application/octet-stream, file bytes
                            → 404 if the file is missing or unreadable
    POST /files/notes.txt   → 201, request body written (overwrite)
                            → 500 if the write fails
    *    /files/            → 400, a file name is required

=============================================================================
PATH BOUNDARY POLICY
=============================================================================

The <name> segment comes straight from the request line, so a name like
"../../etc/passwd" would reach outside the served directory if it were
joined blindly. The check lives in resolve_within(), apart from the
protocol code, and FileHandler applies it unless constructed with
confine=False:

    ┌─────────────────────────────────────────────────────────────────┐
    │   name                  confine=True        confine=False       │
    ├─────────────────────────────────────────────────────────────────┤
    │   notes.txt             <dir>/notes.txt     <dir>/notes.txt     │
    │   sub/notes.txt         <dir>/sub/notes.txt <dir>/sub/notes.txt │
    │   ../secret             403 Forbidden       <dir>/../secret     │
    │   /etc/passwd           403 Forbidden       /etc/passwd         │
    └─────────────────────────────────────────────────────────────────┘

resolve() follows symlinks too, so a link inside the directory that points
outside of it is refused as well.

Writes are plain overwrites. Two clients POSTing the same name at once get
whatever interleaving the operating system gives them.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Union

from ..http.errors import BadRequestError, ForbiddenError, NotFoundError
from ..http.request import HTTPRequest
from ..http.response import OCTET_STREAM, HTTPResponse, created, internal_error, ok


logger = logging.getLogger(__name__)

FILES_PREFIX = "/files/"


def resolve_within(root: Path, name: str) -> Path:
    """
    Join `name` onto `root`, refusing results outside `root`.

    Args:
        root: Directory that must contain the result.
        name: Untrusted relative name from the request path.

    Returns:
        The resolved absolute path.

    Raises:
        ForbiddenError: The name escapes the directory.
    """
    base = root.resolve()
    target = (base / name).resolve()
    try:
        target.relative_to(base)
    except ValueError:
        logger.warning(f"Path traversal attempt: {name!r}")
        raise ForbiddenError("Access denied")
    if target == base:
        raise ForbiddenError("Access denied")
    return target


class FileHandler:
    """
    Serves and stores files in one directory.

    The directory is not required to exist at construction time: a missing
    directory makes every GET a 404 and every POST a 500, which matches what
    the filesystem reports.

    Usage:
        files = FileHandler("/tmp/data")
        router.add_route("/files", files.get, method="GET")
        router.add_route("/files", files.post, method="POST")
    """

    def __init__(self, directory: Union[str, Path], confine: bool = True):
        """
        Args:
            directory: Root directory for stored files.
            confine: Apply resolve_within() to every name.
        """
        self.directory = Path(directory)
        self.confine = confine

    def _file_name(self, request: HTTPRequest) -> str:
        path = request.path
        name = path[len(FILES_PREFIX):] if path.startswith(FILES_PREFIX) else ""
        if not name:
            raise BadRequestError("File name is required")
        return name

    def resolve(self, name: str) -> Path:
        """Filesystem path for `name` under the configured policy."""
        if self.confine:
            return resolve_within(self.directory, name)
        return self.directory / name

    def get(self, request: HTTPRequest) -> HTTPResponse:
        """
        Return the file's bytes.

        Raises:
            BadRequestError: Empty file name.
            ForbiddenError: Name escapes the directory.
            NotFoundError: File absent, a directory, or unreadable.
        """
        path = self.resolve(self._file_name(request))
        try:
            content = path.read_bytes()
        except OSError as e:
            logger.debug(f"Cannot read {path}: {e}")
            raise NotFoundError("File not found")
        return ok(content, content_type=OCTET_STREAM)

    def post(self, request: HTTPRequest) -> HTTPResponse:
        """
        Write the request body to the file, replacing any previous content.

        The body is whatever the parser handed over; see the body note in
        tinyhttpd.http.request.
        """
        path = self.resolve(self._file_name(request))
        try:
            path.write_bytes(request.body)
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            return internal_error("Failed to create file")
        return created("File created")
