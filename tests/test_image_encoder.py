import io

import pytest
from PIL import Image

from atlas_extractor.core.image_encoder import ImageEncodeError, ImageEncoder
from atlas_extractor.parsers.atlas_parser import decode_atlas

from conftest import SMALL_RGBA

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


def test_encode_produces_png():
    atlas = decode_atlas(SMALL_RGBA)
    data = ImageEncoder().encode_atlas(atlas)
    assert data.startswith(PNG_SIGNATURE)

    image = Image.open(io.BytesIO(data))
    assert image.mode == 'RGBA'
    assert image.size == (3, 1)
    assert image.getpixel((1, 0)) == (255, 255, 255, 128)
    assert image.getpixel((0, 0))[3] == 0


def test_zero_area_rejected():
    with pytest.raises(ImageEncodeError):
        ImageEncoder().encode(0, 3, b'')


def test_wrong_buffer_length_rejected():
    with pytest.raises(ImageEncodeError):
        ImageEncoder().encode(2, 2, bytes(15))


def test_save_writes_file(tmp_path):
    atlas = decode_atlas(SMALL_RGBA)
    path = tmp_path / 'out.png'
    written = ImageEncoder(compress_level=9).save(atlas, str(path))
    assert written == path.stat().st_size
    assert path.read_bytes().startswith(PNG_SIGNATURE)
