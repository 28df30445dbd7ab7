import os
import struct

import pytest

from atlas_extractor.cli import reset_logging
from atlas_extractor.core.paths import Paths


def atlas_header(width, height, alpha=False):
    return struct.pack('<IIB', width, height, 1 if alpha else 0)


def rgb_run(count, r, g, b):
    """Opaque run, colour bytes reversed on the wire."""
    return bytes([count, b, g, r])


def rgba_run(count, r, g, b, a):
    """Alpha run, wire order A B G R."""
    return bytes([count, a, b, g, r])


def clear_run(count):
    return bytes([count, 0])


def make_atlas(width, height, runs, alpha=False):
    return atlas_header(width, height, alpha) + b''.join(runs)


def write_file(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as f:
        f.write(data)


# 2x2 opaque image: red, red, green, blue
SMALL_RGB = make_atlas(2, 2, [
    rgb_run(2, 255, 0, 0),
    rgb_run(1, 0, 255, 0),
    rgb_run(1, 0, 0, 255),
])

# 3x1 alpha image: transparent, translucent white, transparent
SMALL_RGBA = make_atlas(3, 1, [
    clear_run(1),
    rgba_run(1, 255, 255, 255, 128),
    clear_run(1),
], alpha=True)


@pytest.fixture(autouse=True)
def user_data_dir(tmp_path):
    """Keep config, history and logs out of the real user folder."""
    path = tmp_path / 'userdata'
    Paths.set_user_data_dir(str(path))
    yield path
    Paths.set_user_data_dir(None)


@pytest.fixture(autouse=True)
def cli_logging():
    """Drop handlers a CLI run attached to the root logger."""
    yield
    reset_logging()


@pytest.fixture
def source_tree(tmp_path):
    """A small input tree with nested folders and a non-.data file."""
    root = tmp_path / 'input'
    write_file(str(root / 'a.data'), SMALL_RGB)
    write_file(str(root / 'ui' / 'b.data'), SMALL_RGBA)
    write_file(str(root / 'fx' / 'x' / 'y' / 'c.data'), SMALL_RGB)
    write_file(str(root / 'notes.txt'), b'not an atlas')
    return root
