"""Pull one member out of a gzip-compressed tar stream without tarfile.

GEO ships MINiML series exports as ``<GSE>_family.xml.tgz``. The container is
walked as a sequence of 512-byte headers, each followed by its payload padded
up to the next 512-byte boundary:

    offset   0..100  member name (NUL padded)
    offset 124..136  payload size, octal ASCII
    offset 156       type flag ('0' or NUL for a regular file)
    offset 257..263  'ustar' magic
    offset 345..500  name prefix (ustar only)

A header with an empty name field marks the end of the archive.
"""

import gzip
import logging
import zlib
from typing import Iterator, NamedTuple, Optional, Tuple

from curation_metadata.exceptions import ArchiveMemberNotFound, MalformedInput

logger = logging.getLogger(__name__)

BLOCK_SIZE = 512
_REGULAR_FILE_FLAGS = (b"0", b"\x00")


class TarMember(NamedTuple):
    name: str
    offset: int  # first payload byte
    size: int
    typeflag: bytes

    @property
    def is_file(self) -> bool:
        return self.typeflag in _REGULAR_FILE_FLAGS


def _text_field(header: bytes, start: int, end: int) -> str:
    return header[start:end].replace(b"\x00", b"").decode("utf-8", errors="replace").strip()


def _parse_size(header: bytes) -> int:
    raw = _text_field(header, 124, 136)
    try:
        return int(raw, 8) if raw else 0
    except ValueError:
        logger.debug("Unparseable tar size field %r; treating as 0", raw)
        return 0


def padded_size(size: int) -> int:
    """Round a payload size up to the next block boundary."""
    return -(-size // BLOCK_SIZE) * BLOCK_SIZE


def next_member(data: bytes, cursor: int) -> Optional[Tuple[TarMember, int]]:
    """Read the header at ``cursor``.

    Returns the member and the cursor of the following header, or None at the
    end-of-archive marker or when fewer than one full header remains.
    """
    header = data[cursor:cursor + BLOCK_SIZE]
    if len(header) < BLOCK_SIZE:
        return None
    name = _text_field(header, 0, 100)
    if not name:
        return None

    if header[257:262] == b"ustar":
        prefix = _text_field(header, 345, 500)
        if prefix:
            name = f"{prefix}/{name}"

    size = _parse_size(header)
    payload_start = cursor + BLOCK_SIZE
    member = TarMember(name=name, offset=payload_start, size=size, typeflag=header[156:157])
    return member, payload_start + padded_size(size)


def iter_members(data: bytes) -> Iterator[TarMember]:
    """Lazily yield every member header of an uncompressed tar stream."""
    cursor = 0
    while True:
        step = next_member(data, cursor)
        if step is None:
            return
        member, cursor = step
        yield member


def extract_member(data: bytes, suffix: str = ".xml") -> bytes:
    """Return the payload of the first regular file whose name ends with ``suffix``."""
    for member in iter_members(data):
        if member.is_file and member.name.endswith(suffix):
            logger.debug("Found archive member %s (%d bytes)", member.name, member.size)
            return data[member.offset:member.offset + member.size]
    raise ArchiveMemberNotFound(f"No member ending in {suffix!r} found in archive")


def gunzip(compressed: bytes) -> bytes:
    try:
        return gzip.decompress(compressed)
    except (OSError, EOFError, zlib.error) as exc:
        raise MalformedInput(f"Archive is not a valid gzip stream: {exc}") from exc


def extract_member_text(compressed: bytes, suffix: str = ".xml") -> str:
    """Gunzip a .tgz body and decode the first member ending in ``suffix``."""
    payload = extract_member(gunzip(compressed), suffix)
    return payload.decode("utf-8", errors="replace")
