"""Fetching, verifying and extracting plugin archives."""

from __future__ import annotations

import abc
import hashlib
import io
import logging
import os
import shutil
import tarfile
import zipfile
from dataclasses import dataclass
from typing import BinaryIO, Callable, Mapping, Optional

import requests

log = logging.getLogger(__name__)

_SNIFF_LENGTH = 512
_CHUNK_SIZE = 64 * 1024
_OPEN_FLAGS_BINARY = getattr(os, "O_BINARY", 0)


class DownloadError(Exception):
    """Raised when an archive cannot be fetched, verified or extracted."""


class Verifier(abc.ABC):
    """Receives the downloaded bytes and checks them afterwards."""

    @abc.abstractmethod
    def write(self, data: bytes) -> int:
        """Feed a chunk of downloaded data."""

    @abc.abstractmethod
    def verify(self) -> None:
        """Raise DownloadError if the data written so far is not acceptable."""


class Sha256Verifier(Verifier):
    """Checks the written data against an expected hex SHA-256 digest."""

    def __init__(self, hashed: str):
        try:
            self._wanted = bytes.fromhex(hashed)
        except ValueError:
            self._wanted = b""
        self._hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        return len(data)

    def verify(self) -> None:
        log.debug("Compare sha256 (%s) signed version", self._wanted.hex())
        got = self._hash.digest()
        if got != self._wanted:
            raise DownloadError(
                f"checksum does not match, want: {self._wanted.hex()}, got {got.hex()}"
            )


class Fetcher(abc.ABC):
    """Obtains a readable binary stream for a URI."""

    @abc.abstractmethod
    def get(self, uri: str) -> BinaryIO:
        """Return a binary stream with the content at ``uri``."""


class HTTPFetcher(Fetcher):
    """Fetches files over http:// or https://."""

    def get(self, uri: str) -> BinaryIO:
        log.debug("Fetching %r", uri)
        try:
            response = requests.get(uri)
        except requests.RequestException as err:
            raise DownloadError(f"failed to download {uri!r}: {err}") from err
        return io.BytesIO(response.content)


@dataclass(frozen=True)
class FileFetcher(Fetcher):
    """Reads a local file, ignoring the requested URI."""

    path: str

    def get(self, uri: str) -> BinaryIO:
        log.debug("Reading %r", self.path)
        try:
            return open(self.path, "rb")
        except OSError as err:
            raise DownloadError(
                f"failed to open archive file {self.path!r} for reading: {err}"
            ) from err


def download(url: str, verifier: Verifier, fetcher: Fetcher) -> bytes:
    """Read the file at ``url`` into memory, feeding the verifier, and verify it."""
    try:
        body = fetcher.get(url)
    except (DownloadError, OSError) as err:
        raise DownloadError(f"failed to obtain plugin archive: {err}") from err

    chunks = []
    with body:
        try:
            for chunk in iter(lambda: body.read(_CHUNK_SIZE), b""):
                verifier.write(chunk)
                chunks.append(chunk)
        except OSError as err:
            raise DownloadError(f"could not read archive: {err}") from err
    data = b"".join(chunks)
    log.debug("Read %d bytes from archive into memory", len(data))
    verifier.verify()
    return data


def suspicious_path(path: str) -> None:
    """Raise DownloadError for archive entries that could escape the target dir."""
    if ".." in path:
        raise DownloadError(f"refusing to unpack archive with suspicious entry {path!r}")
    if path.startswith("/") or path.startswith("\\"):
        raise DownloadError(f"refusing to unpack archive with absolute entry {path!r}")


def _target(target_dir: str, name: str) -> str:
    return os.path.normpath(os.path.join(target_dir, name.replace("/", os.sep)))


def extract_zip(target_dir: str, data: bytes) -> None:
    """Extract a zip archive into ``target_dir``."""
    log.debug("Extracting zip archive to %r", target_dir)
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as err:
        raise DownloadError(f"not a valid zip archive: {err}") from err

    with archive:
        for info in archive.infolist():
            suspicious_path(info.filename)
            path = _target(target_dir, info.filename)
            mode = (info.external_attr >> 16) & 0o777
            if info.is_dir():
                try:
                    os.makedirs(path, mode or 0o755, exist_ok=True)
                except OSError as err:
                    raise DownloadError(f"can't create directory tree: {err}") from err
                continue

            try:
                fd = os.open(
                    path,
                    os.O_CREAT | os.O_WRONLY | os.O_TRUNC | _OPEN_FLAGS_BINARY,
                    mode or 0o644,
                )
            except OSError as err:
                raise DownloadError(
                    f"can't create file in zip destination dir: {err}"
                ) from err
            try:
                with os.fdopen(fd, "wb") as dst, archive.open(info) as src:
                    shutil.copyfileobj(src, dst)
            except (OSError, zipfile.BadZipFile) as err:
                raise DownloadError(
                    f"can't copy content to zip destination file: {err}"
                ) from err


def extract_tar_gz(target_dir: str, data: bytes) -> None:
    """Extract a gzipped tar archive into ``target_dir``."""
    log.debug("tar: extracting to %r", target_dir)
    try:
        archive = tarfile.open(fileobj=io.BytesIO(data), mode="r:gz")
    except (tarfile.TarError, OSError, EOFError) as err:
        raise DownloadError(f"failed to create gzip reader: {err}") from err

    with archive:
        while True:
            try:
                member = archive.next()
            except (tarfile.TarError, OSError, EOFError) as err:
                raise DownloadError(f"tar extraction error: {err}") from err
            if member is None:
                break
            log.debug("tar: processing %r (type=%r, mode=%o)", member.name, member.type, member.mode)
            if member.name == "pax_global_header":
                continue

            suspicious_path(member.name)
            path = _target(target_dir, member.name)
            if member.isdir():
                try:
                    os.makedirs(path, member.mode, exist_ok=True)
                except OSError as err:
                    raise DownloadError(
                        f"failed to create directory from tar: {err}"
                    ) from err
            elif member.isreg():
                try:
                    os.makedirs(os.path.dirname(path), 0o755, exist_ok=True)
                except OSError as err:
                    raise DownloadError(
                        f"failed to create directory for tar: {err}"
                    ) from err
                try:
                    fd = os.open(path, os.O_CREAT | os.O_WRONLY | _OPEN_FLAGS_BINARY, member.mode)
                except OSError as err:
                    raise DownloadError(f"failed to create file {path!r}: {err}") from err
                try:
                    with os.fdopen(fd, "wb") as dst:
                        src = archive.extractfile(member)
                        if src is not None:
                            shutil.copyfileobj(src, dst)
                except (OSError, tarfile.TarError, EOFError) as err:
                    raise DownloadError(
                        f"failed to copy {member.name!r} from tar into file: {err}"
                    ) from err
            else:
                raise DownloadError(
                    f"unable to handle file type {member.type!r} for {member.name!r} in tar"
                )
            log.debug("tar: processed %r", member.name)
    log.debug("tar extraction to %s complete", target_dir)


_WHITESPACE = b"\t\n\x0c\r "

_HTML_TAGS = (
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1", b"<DIV",
    b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B", b"<BODY", b"<BR", b"<P",
    b"<!--",
)

_PREFIXES = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
    (b"ID3", "audio/mpeg"),
    (b"OggS\x00", "application/ogg"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00asm", "application/wasm"),
)

_RIFF_KINDS = {b"WEBP": "image/webp", b"WAVE": "audio/wave", b"AVI ": "video/avi"}


def _is_binary_byte(b: int) -> bool:
    return b <= 0x08 or b == 0x0B or 0x0E <= b <= 0x1A or 0x1C <= b <= 0x1F


def _sniff(data: bytes) -> str:
    stripped = data.lstrip(_WHITESPACE)
    for tag in _HTML_TAGS:
        size = len(tag)
        if (
            len(stripped) > size
            and stripped[:size].upper() == tag
            and stripped[size] in (0x20, 0x3E)
        ):
            return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    for prefix, content_type in _PREFIXES:
        if data.startswith(prefix):
            return content_type
    if data.startswith(b"RIFF") and data[8:12] in _RIFF_KINDS:
        return _RIFF_KINDS[data[8:12]]
    if any(_is_binary_byte(b) for b in data):
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


def detect_mime_type(data: bytes) -> str:
    """Sniff the MIME type of ``data`` from its first 512 bytes, without parameters."""
    return _sniff(data[:_SNIFF_LENGTH]).split(";")[0]


Extractor = Callable[[str, bytes], None]

DEFAULT_EXTRACTORS: Mapping[str, Extractor] = {
    "application/zip": extract_zip,
    "application/x-gzip": extract_tar_gz,
}


def extract_archive(
    dst: str, data: bytes, extractors: Optional[Mapping[str, Extractor]] = None
) -> None:
    """Detect the archive type of ``data`` and extract it into ``dst``."""
    if extractors is None:
        extractors = DEFAULT_EXTRACTORS
    mime_type = detect_mime_type(data)
    log.debug("detected %r file type", mime_type)
    extractor = extractors.get(mime_type)
    if extractor is None:
        raise DownloadError(
            f"mime type {mime_type!r} for archive file is not a supported archive format"
        )
    try:
        extractor(dst, data)
    except (DownloadError, OSError) as err:
        raise DownloadError(f"failed to extract file: {err}") from err


@dataclass(frozen=True)
class Downloader:
    """Fetches, verifies and extracts an archive."""

    verifier: Verifier
    fetcher: Fetcher

    def get(self, uri: str, dst: str) -> None:
        """Download ``uri``, verify it and extract it into ``dst``."""
        data = download(uri, self.verifier, self.fetcher)
        extract_archive(dst, data)