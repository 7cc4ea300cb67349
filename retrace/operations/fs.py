# retrace/operations/fs.py
"""
Filesystem primitives used by the strategies.

Text is read and written as UTF-8 with newline translation disabled so
restored content is byte-identical to what was captured.
"""
import os
import shutil
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def exists(path: PathLike) -> bool:
    return Path(path).exists()


def is_file(path: PathLike) -> bool:
    return Path(path).is_file()


def is_dir(path: PathLike) -> bool:
    return Path(path).is_dir()


def is_empty_dir(path: PathLike) -> bool:
    return not any(Path(path).iterdir())


def read_text(path: PathLike) -> str:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def write_text(path: PathLike, content: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def remove_file(path: PathLike) -> None:
    Path(path).unlink()


def remove_tree(path: PathLike) -> None:
    shutil.rmtree(path)


def make_dir(path: PathLike) -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def rename(source: PathLike, destination: PathLike) -> None:
    Path(destination).parent.mkdir(parents=True, exist_ok=True)
    os.rename(source, destination)
