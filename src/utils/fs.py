"""Replay artifact I/O: atomic writes, YAML and heat-map images.

Provides:
    - ensure_dir(): mkdir -p returning a Path
    - atomic_write_bytes() / atomic_write_text(): sibling tmp → fsync → rename
    - atomic_save_image(): numpy array → PNG via PIL, same tmp/rename dance
    - atomic_yaml_dump() / load_yaml(): PyYAML safe_dump/safe_load

A viewer polling a replay output directory only ever sees the previous
complete summary.yaml/heatmap.png or the new one. The tmp file is a sibling
of the target so the final rename never crosses filesystems.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

import numpy as np
import yaml
from PIL import Image

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Create directory (and parents) if missing; return it as a Path."""
    directory = Path(p)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@contextmanager
def _staged(path: Path, tmp_path: Path) -> Iterator[Path]:
    """Yield ``tmp_path`` for writing, then move it over ``path``.

    On any failure the tmp file is removed and a RuntimeError naming the
    target is raised.
    """
    ensure_dir(path.parent)
    try:
        yield tmp_path
        # POSIX rename replaces an existing target
        tmp_path.replace(path)
    except Exception as e:
        tmp_path.unlink(missing_ok=True)
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_bytes(path: PathLike, data: bytes, tmp_suffix: str = ".tmp") -> None:
    """Write ``data`` to ``path`` atomically.

    Parameters
    ----------
    path : str or Path
        Destination file
    data : bytes
        Full file contents
    tmp_suffix : str
        Appended to the file name for the staging file, default ".tmp"

    Raises
    ------
    RuntimeError
        If writing or renaming fails (the staging file is cleaned up)
    """
    path = Path(path)
    with _staged(path, path.with_name(path.name + tmp_suffix)) as tmp:
        with open(tmp, 'wb') as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())


def atomic_write_text(path: PathLike, text: str, encoding: str = 'utf-8') -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_save_image(
    img: np.ndarray,
    path: PathLike,
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save an image array atomically.

    Parameters
    ----------
    img : np.ndarray
        (H, W), (H, W, 1) or (H, W, 3). uint8 is written as-is; floating
        point input is read as [0, 1] and rounded to 8 bits.
    path : str or Path
        Destination; the extension picks the format
    pil_kwargs : dict, optional
        Forwarded to PIL.Image.save
    """
    path = Path(path)

    if np.issubdtype(img.dtype, np.floating):
        img = np.round(np.clip(img, 0.0, 1.0) * 255.0)
    pixels = np.clip(img, 0, 255).astype(np.uint8, copy=False)
    if pixels.ndim == 3 and pixels.shape[-1] == 1:
        pixels = pixels[..., 0]

    # Staging name keeps the real extension last so PIL can infer the format
    with _staged(path, path.with_name(f"{path.stem}.tmp{path.suffix}")) as tmp:
        Image.fromarray(pixels).save(tmp, **(pil_kwargs or {}))


def _to_builtin(obj: Any) -> Any:
    """numpy scalars/arrays → Python builtins so safe_dump accepts them."""
    if isinstance(obj, dict):
        return {str(k): _to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_builtin(v) for v in obj]
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, np.generic):
        return obj.item()
    return obj


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Write ``obj`` as block-style YAML, keeping key order."""
    text = yaml.safe_dump(
        _to_builtin(obj),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )
    atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file with safe_load.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    yaml.YAMLError
        If the document cannot be parsed (message names the file)
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")

    text = path.read_text(encoding='utf-8')
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
