import os

import pytest
from PIL import Image

from atlas_extractor.core.config import Config
from atlas_extractor.core.database import STATUS_FAILED, Database
from atlas_extractor.core.hasher import FileHasher
from atlas_extractor.parsers.batch_converter import (
    STATUS_CONVERTED,
    STATUS_SKIPPED,
    STATUS_UNCHANGED,
    BatchConverter,
)

from conftest import SMALL_RGB, atlas_header, write_file

BROKEN = atlas_header(2, 2) + bytes([0, 1, 2, 3])


@pytest.fixture
def output_root(tmp_path):
    return tmp_path / 'result'


def test_converts_and_mirrors_tree(source_tree, output_root):
    result = BatchConverter(str(source_tree), str(output_root)).convert_all()

    assert result.success
    assert not result.aborted
    assert result.total == 3
    assert result.converted == 3
    assert (output_root / 'a.png').is_file()
    assert (output_root / 'ui' / 'b.png').is_file()
    assert (output_root / 'fx' / 'x' / 'y' / 'c.png').is_file()
    assert not (output_root / 'notes.png').exists()

    with Image.open(output_root / 'a.png') as image:
        assert image.getpixel((1, 1)) == (0, 0, 255, 255)


def test_progress_and_status_messages(source_tree, output_root):
    progress = []
    messages = []
    BatchConverter(str(source_tree), str(output_root)).convert_all(
        progress_callback=lambda cur, total, rel: progress.append((cur, total, rel)),
        status_callback=messages.append,
    )

    assert [p[0] for p in progress] == [1, 2, 3]
    assert all(p[1] == 3 for p in progress)
    assert progress[0][2] == 'a.data'
    assert messages[0] == "Scanning files..."
    assert messages[1] == "Creating directories..."
    assert messages[2] == "Extracting file: a.data (1/3)"
    assert messages[-1].startswith("Done in ")
    assert messages[-1].endswith("s.")


def test_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        BatchConverter(str(tmp_path / 'missing'), str(tmp_path / 'out')).convert_all()


def test_empty_source(tmp_path):
    (tmp_path / 'in').mkdir()
    result = BatchConverter(str(tmp_path / 'in'), str(tmp_path / 'out')).convert_all()
    assert result.success
    assert result.total == 0


def test_first_error_aborts(source_tree, output_root):
    write_file(str(source_tree / 'a.data'), BROKEN)
    messages = []
    result = BatchConverter(str(source_tree), str(output_root)).convert_all(
        status_callback=messages.append
    )

    assert not result.success
    assert result.aborted
    assert result.failed == ['a.data']
    assert result.processed == 1
    assert result.errors == ["a.data: count should not be zero (run at offset 9)"]
    assert messages[-1] == "Aborted: a.data: count should not be zero (run at offset 9)"
    assert not (output_root / 'ui' / 'b.png').exists()


def test_skip_policy_continues(source_tree, output_root):
    write_file(str(source_tree / 'a.data'), BROKEN)
    result = BatchConverter(str(source_tree), str(output_root),
                            error_policy='skip').convert_all()

    assert not result.success
    assert not result.aborted
    assert result.failed == ['a.data']
    assert result.converted == 2
    assert (output_root / 'ui' / 'b.png').is_file()


def test_size_mismatch_reported(source_tree, output_root):
    write_file(str(source_tree / 'a.data'), atlas_header(2, 2) + bytes([3, 1, 1, 1]))
    result = BatchConverter(str(source_tree), str(output_root)).convert_all()
    assert result.errors == ["a.data: size does not match: 2x2 = 4 != 3"]


def test_zero_area_image_fails_to_encode(source_tree, output_root):
    write_file(str(source_tree / 'a.data'), atlas_header(0, 0))
    result = BatchConverter(str(source_tree), str(output_root),
                            error_policy='skip').convert_all()
    assert result.failed == ['a.data']
    assert 'zero-area' in result.errors[0]


def test_invalid_policy(tmp_path):
    with pytest.raises(ValueError):
        BatchConverter(str(tmp_path), str(tmp_path), error_policy='retry')


def test_parallel_conversion(tmp_path):
    source = tmp_path / 'in'
    for i in range(20):
        write_file(str(source / f'd{i % 3}' / f'{i:02}.data'), SMALL_RGB)

    progress = []
    result = BatchConverter(str(source), str(tmp_path / 'out'), workers=4).convert_all(
        progress_callback=lambda cur, total, rel: progress.append(cur)
    )

    assert result.success
    assert result.converted == 20
    assert progress == list(range(1, 21))
    assert (tmp_path / 'out' / 'd1' / '04.png').is_file()


def test_parallel_abort_stops_early(tmp_path):
    source = tmp_path / 'in'
    write_file(str(source / '00.data'), BROKEN)
    for i in range(1, 40):
        write_file(str(source / f'{i:02}.data'), SMALL_RGB)

    result = BatchConverter(str(source), str(tmp_path / 'out'), workers=2).convert_all()

    assert result.aborted
    assert result.failed == ['00.data']


def test_parallel_abort_accounts_for_every_written_file(tmp_path):
    source = tmp_path / 'in'
    out = tmp_path / 'out'
    for i in range(39):
        write_file(str(source / f'{i:02}.data'), BROKEN if i == 20 else SMALL_RGB)

    db = Database(':memory:')
    result = BatchConverter(str(source), str(out), workers=4, database=db).convert_all()

    written = len(list(out.glob('*.png')))
    assert result.aborted
    assert result.failed == ['20.data']
    assert written == result.converted
    assert result.processed == result.converted + 1
    assert result.processed < result.total
    assert db.get_stats() == {'total': result.processed,
                              'converted': result.converted, 'failed': 1}
    db.close()


def test_no_overwrite_skips_existing(source_tree, output_root):
    write_file(str(output_root / 'a.png'), b'keep me')
    result = BatchConverter(str(source_tree), str(output_root),
                            overwrite=False).convert_all()

    assert result.skipped == 1
    assert result.converted == 2
    assert (output_root / 'a.png').read_bytes() == b'keep me'
    statuses = {r.relative_path: r.status for r in result.results}
    assert statuses['a.data'] == STATUS_SKIPPED


def test_history_and_incremental(source_tree, output_root):
    db = Database(':memory:')
    first = BatchConverter(str(source_tree), str(output_root), database=db).convert_all()
    assert first.converted == 3

    stats = db.get_stats()
    assert stats['converted'] == 3
    record = db.get_record(os.path.join(str(source_tree), 'ui', 'b.data'))
    assert record.width == 3
    assert record.has_alpha

    write_file(str(source_tree / 'ui' / 'b.data'), SMALL_RGB)

    second = BatchConverter(str(source_tree), str(output_root), database=db,
                            incremental=True).convert_all()
    statuses = {r.relative_path: r.status for r in second.results}
    assert statuses['a.data'] == STATUS_UNCHANGED
    assert statuses[os.path.join('ui', 'b.data')] == STATUS_CONVERTED
    assert second.unchanged == 2
    assert second.converted == 1

    unchanged = next(r for r in second.results if r.relative_path == 'a.data')
    assert unchanged.source_hash == FileHasher().hash_bytes(SMALL_RGB)
    db.close()


def test_incremental_reconverts_missing_output(source_tree, output_root):
    db = Database(':memory:')
    BatchConverter(str(source_tree), str(output_root), database=db).convert_all()
    os.remove(str(output_root / 'a.png'))

    result = BatchConverter(str(source_tree), str(output_root), database=db,
                            incremental=True).convert_all()
    assert result.converted == 1
    assert (output_root / 'a.png').is_file()
    db.close()


def test_failures_recorded(source_tree, output_root):
    write_file(str(source_tree / 'a.data'), BROKEN)
    db = Database(':memory:')
    BatchConverter(str(source_tree), str(output_root), database=db,
                   error_policy='skip').convert_all()

    failed = db.get_all_records(status=STATUS_FAILED)
    assert len(failed) == 1
    assert 'count should not be zero' in failed[0].error
    db.close()


def test_incremental_needs_database(tmp_path):
    with pytest.raises(ValueError):
        BatchConverter(str(tmp_path), str(tmp_path), incremental=True)


def test_from_config(tmp_path, source_tree):
    config = Config(str(tmp_path / 'config.json'))
    config.output_path = str(tmp_path / 'configured')
    config.worker_threads = 3
    config.error_policy = 'skip'
    config.max_image_pixels = 2

    converter = BatchConverter.from_config(config, str(source_tree))
    assert converter.output_root == str(tmp_path / 'configured')
    assert converter.workers == 3
    assert not converter.incremental

    result = converter.convert_all()
    assert len(result.failed) == 3
    assert all('image too large' in e for e in result.errors)
