# wrench

Building blocks for a level editor for PS2-era game discs. The package
covers the parts of the editor that do not need a window or a GPU.

## Modules

- **`wrench.streams`**: seekable binary streams arranged in a parent/child
  tree. `ArrayStream` is a growable in-memory buffer, `FileStream` wraps a
  file on disk (and works as a context manager), `ProxyStream` exposes a
  window of a parent stream starting at a given offset, and `TraceStream`
  passes everything through while recording in `read_mask` which bytes were
  read. Every stream offers `read`/`write`/`peek` with `struct` format
  strings (little-endian unless the format says otherwise), `read_string`,
  `read_multiple`, `align`, `pad`, `Stream.copy_n`, `contains`, `detach`
  and `print_diff`, which prints newly written bytes coloured against an
  expected stream and raises `StreamFormatError` on a mismatch.
  `Sector32` converts between 2048-byte disc sectors and byte counts.
  Failures are raised as `StreamIOError` and `StreamFormatError`, both
  subclasses of `StreamError`, which keeps the stack trace in `stack_trace`.
- **`wrench.md5`**: an incremental `MD5` context (`update`, `pad`, `digest`,
  `hexdigest`, `copy`) and the block function `md5_transform`.
- **`wrench.stacktrace`**: `generate_stacktrace()` returns the current call
  stack as text, innermost frame first.
- **`wrench.iso_stream`**: `IsoStream` keeps a patched copy of a disc image
  in a cache directory (`cache` by default). Every write is recorded as a
  `Patch`; on construction the cache is rebuilt or updated so that it holds
  exactly the current patches, with a metadata file holding their hash.
  `save_patches` writes a zip project archive holding any extra entries,
  one file per patch and `patch_list.json`; `read_patches` loads the
  patches back from such an archive (a `ZipFile`, a path, or `None`).
  `md5_from_stream` hashes a whole stream.
- **`wrench.projection`**: 4x4 numpy matrix maths for the 3D view, acting on
  column vectors: `perspective`, `translate`, `rotate`, `world_to_clip`,
  `local_to_clip`, `local_to_screen` and `create_ray`, plus the colour
  helpers `colour_coded_submodel_index` and `encode_pick_colour`.
- **`wrench.camera`**: a fly-through `Camera` with `toggle_control`,
  `rotate` (from a mouse movement), `move` (from held W/A/S/D, space and
  left shift key codes over a time step in microseconds), `world_to_clip`
  and `reset`; the `ViewMode` enum; and the angle helper `constrain`.

## Installing

```
pip install .
```

numpy is the only runtime dependency.

## Examples

Hash data incrementally:

```python
from wrench.md5 import MD5

h = MD5()
h.update(b"hello ")
h.update(b"world")
print(h.hexdigest())
```

Work with an in-memory stream:

```python
from wrench.streams import ArrayStream, ProxyStream, Sector32

buf = ArrayStream()
buf.write_n(b"\x00" * 16 + b"payload\x00")
buf.seek(16)
print(buf.read_string())          # "payload"

window = ProxyStream(buf, 16, 7)
print(window.resource_path())     # "arraystream+0x10"

print(Sector32.size_from_bytes(3000).bytes())   # 4096
```

Patch a disc image and save the patches:

```python
from wrench.iso_stream import IsoStream, read_patches

with IsoStream("game", "game.iso", log=print, cache_dir="cache") as iso:
    iso.write("<I", 0xDEADBEEF, offset=0x1000)
    iso.save_patches("mod.wrench", {"game_md5": "0123"})

print(read_patches("mod.wrench"))
```

Fly the camera and project a point:

```python
from wrench.camera import Camera, KEY_W
from wrench import projection

camera = Camera()
camera.toggle_control()
camera.rotate((100, 0))
camera.move({KEY_W}, 16000)
matrix = camera.world_to_clip((1280, 720))
print(projection.local_to_screen(matrix, projection.translate((10, 0, 0)),
                                 (0, 0), (1280, 720)))
```

## What the package does not do

It has no editor window, no OpenGL rendering, no tool palette and no
command-line program. There is no undo/redo history of edits, and no
reading of level, texture or model data from the disc; only raw patches
are tracked.

## Running the tests

```
pip install ".[test]"
pytest
```