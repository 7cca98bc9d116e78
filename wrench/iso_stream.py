"""Patch tracking for a game disc image, backed by a patched cache copy."""

from __future__ import annotations

import json
import os
import shutil
import stat
import struct
import zipfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from wrench.md5 import MD5
from wrench.streams import FileStream, Stream, StreamFormatError, StreamIOError

PATCH_LIST_ENTRY = "patch_list.json"
MD5_BLOCK_SIZE = 1024 * 4

ArchiveLike = Union[zipfile.ZipFile, str, os.PathLike, None]


@dataclass
class Patch:
    """Bytes written over the disc image at a given offset."""

    offset: int
    buffer: bytes
    save_to_project: bool = True


def _read_patches_from(archive: zipfile.ZipFile) -> list[Patch]:
    try:
        patch_list = json.loads(archive.read(PATCH_LIST_ENTRY))
    except KeyError:
        raise StreamFormatError(
            "Wrench project does not contain patch_list.json file!"
        ) from None

    result = []
    for patch_json in patch_list.get("patches", []):
        name = patch_json["data"]
        try:
            buffer = archive.read(name)
        except KeyError:
            raise StreamFormatError(
                "Wrench project does not contain a referenced patch file!"
            ) from None
        result.append(Patch(offset=int(patch_json["offset"]), buffer=buffer))
    return result


def read_patches(archive: ArchiveLike) -> list[Patch]:
    """Load the patches stored in a project archive; no archive means no patches."""
    if archive is None:
        return []
    if isinstance(archive, zipfile.ZipFile):
        return _read_patches_from(archive)
    with zipfile.ZipFile(archive) as opened:
        return _read_patches_from(opened)


def md5_from_stream(st: Stream) -> str:
    """Return the hexadecimal MD5 of a stream's whole contents."""
    ctx = MD5()
    remaining = st.size()
    st.seek(0)
    while remaining > 0:
        chunk = min(MD5_BLOCK_SIZE, remaining)
        ctx.update(st.read_n(chunk))
        remaining -= chunk
    return ctx.hexdigest()


class IsoStream(Stream):
    """A disc image whose writes are recorded as patches.

    Reads and writes go to a cached copy of the image; the cache is rebuilt
    or updated on construction so that it holds exactly the current patches.
    """

    def __init__(
        self,
        game_id: str,
        iso_path: str | os.PathLike,
        log: Callable[[str], Any] | None = None,
        archive: ArchiveLike = None,
        cache_dir: str | os.PathLike = "cache",
    ) -> None:
        super().__init__(None)
        self._log = log if log is not None else (lambda message: None)
        self._cache_dir = str(cache_dir)
        self._cache_iso_path = os.path.join(self._cache_dir, f"{game_id}_patched.iso")
        self._cache_meta_path = os.path.join(self._cache_dir, f"{game_id}_metadata.json")
        self.iso = FileStream(str(iso_path))
        try:
            self._patches = read_patches(archive)
            self._init_cache(str(iso_path))
            self._cache = FileStream(self._cache_iso_path, "r+b")
        except BaseException:
            self.iso.close()
            raise

    def __enter__(self) -> IsoStream:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def patches(self) -> list[Patch]:
        """The patches applied so far, oldest first."""
        return list(self._patches)

    def size(self) -> int:
        return self._cache.size()

    def seek(self, offset: int) -> None:
        self._cache.seek(offset)

    def tell(self) -> int:
        return self._cache.tell()

    def read_n(self, size: int) -> bytes:
        return self._cache.read_n(size)

    def write_n(self, data: bytes, save_to_project: bool = True) -> None:
        """Write to the image, recording the write as a patch."""
        data = bytes(data)
        self._patches.append(Patch(self.tell(), data, save_to_project))
        self._cache.write_n(data)
        self._update_cache_metadata()

    def resource_path(self) -> str:
        return "iso"

    def cached_iso_path(self) -> str:
        """Return the path of the patched cache copy of the image."""
        return self._cache_iso_path

    def hash_patches(self) -> str:
        """Return a hash of the offsets, sizes and contents of all patches."""
        ctx = MD5()
        for p in self._patches:
            ctx.update(struct.pack("<I", p.offset & 0xFFFFFFFF))
            ctx.update(struct.pack("<I", len(p.buffer) & 0xFFFFFFFF))
            ctx.update(p.buffer)
        return ctx.hexdigest()

    def save_patches(
        self,
        project_path: str | os.PathLike,
        extra_entries: Mapping[str, bytes | str] | None = None,
    ) -> None:
        """Write the project archive: extra entries, patch files and the patch list."""
        patch_list = []
        with zipfile.ZipFile(project_path, "w", zipfile.ZIP_DEFLATED) as root:
            for name, content in (extra_entries or {}).items():
                root.writestr(name, content)
            for i, p in enumerate(self._patches):
                if not p.save_to_project:
                    continue
                name = f"patches/{i}.bin"
                root.writestr(name, p.buffer)
                patch_list.append({"data": name, "offset": p.offset})
            patch_list_file = {"patches": patch_list, "wad_patches": {}}
            root.writestr(
                PATCH_LIST_ENTRY, json.dumps(patch_list_file, indent=4, sort_keys=True)
            )

    def close(self) -> None:
        """Close the original image and the cache."""
        self._cache.close()
        self.iso.close()

    def _init_cache(self, iso_path: str) -> None:
        os.makedirs(self._cache_dir, exist_ok=True)

        cache_meta = self._get_cache_metadata()
        if cache_meta is not None:
            if cache_meta["hash"] == self.hash_patches():
                return  # The cache is valid.
            self._log("[ISO] Updating cache... ")
            with FileStream(self._cache_iso_path, "r+b") as cache_iso:
                self._clear_cache_iso(cache_iso, cache_meta)
                self._write_normal_patches(cache_iso)
        else:
            self._log("[ISO] Rebuilding cache... ")
            if not os.path.isfile(iso_path):
                raise StreamIOError("Invalid ISO file specified!")
            Path(self._cache_iso_path).unlink(missing_ok=True)
            Path(self._cache_meta_path).unlink(missing_ok=True)
            shutil.copyfile(iso_path, self._cache_iso_path)
            # A read-only source image must not leave a read-only cache.
            os.chmod(self._cache_iso_path, stat.S_IRUSR | stat.S_IWUSR)
            with FileStream(self._cache_iso_path, "r+b") as cache_iso:
                self._write_normal_patches(cache_iso)

        self._update_cache_metadata()
        self._log("DONE!\n")

    def _get_cache_metadata(self) -> dict | None:
        if not (os.path.exists(self._cache_iso_path) and os.path.exists(self._cache_meta_path)):
            return None
        try:
            with open(self._cache_meta_path, encoding="utf-8") as meta_file:
                meta = json.load(meta_file)
        except (OSError, ValueError):
            return None
        if not isinstance(meta, dict):
            return None
        if not isinstance(meta.get("hash"), str) or not isinstance(meta.get("patches"), list):
            return None
        return meta

    def _clear_cache_iso(self, cache_iso: FileStream, cache_meta: dict) -> None:
        """Copy the original bytes back over every previously patched range."""
        for entry in cache_meta["patches"]:
            offset = int(entry["offset"])
            size = int(entry["size"])
            self.iso.seek(offset)
            cache_iso.seek(offset)
            Stream.copy_n(cache_iso, self.iso, size)

    def _update_cache_metadata(self) -> None:
        meta = {
            "hash": self.hash_patches(),
            "patches": [{"offset": p.offset, "size": len(p.buffer)} for p in self._patches],
        }
        with open(self._cache_meta_path, "w", encoding="utf-8") as meta_file:
            meta_file.write(json.dumps(meta, indent=4, sort_keys=True))

    def _write_normal_patches(self, cache_iso: FileStream) -> None:
        for p in self._patches:
            cache_iso.seek(p.offset)
            cache_iso.write_n(p.buffer)