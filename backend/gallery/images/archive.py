"""Streaming ZIP archive of gallery images.

The archive is written into a sink that only collects bytes; after every
chunk of input the collected output is handed to the caller.  ``zipfile``
detects that the sink cannot seek and writes data descriptors instead of
patching local headers, so nothing has to be buffered beyond one chunk and
no temporary file is involved.
"""
import logging
import zipfile
from pathlib import Path
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class _ChunkSink:
    """Write-only, non-seekable file object that buffers until drained."""

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def iter_zip(
    paths: Iterable[Path],
    compression_level: int = 9,
    chunk_size: int = CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield a deflated ZIP of *paths*, each stored under its base name.

    Errors while reading a source file are logged and re-raised, which
    aborts whatever response is consuming the iterator.
    """
    sink = _ChunkSink()
    count = 0
    try:
        with zipfile.ZipFile(
            sink,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        ) as zf:
            for path in paths:
                path = Path(path)
                with path.open("rb") as src, zf.open(path.name, mode="w") as dest:
                    while True:
                        chunk = src.read(chunk_size)
                        if not chunk:
                            break
                        dest.write(chunk)
                        data = sink.drain()
                        if data:
                            yield data
                count += 1
                data = sink.drain()
                if data:
                    yield data
    except Exception:
        logger.exception("Archive build failed after %d files", count)
        raise

    # Central directory is written when the ZipFile closes.
    tail = sink.drain()
    if tail:
        yield tail
    logger.info("Archive complete: %d files", count)
