import json

import pytest
from PIL import Image

from atlas_extractor.cli import main
from atlas_extractor.parsers.atlas_parser import decode_atlas

from conftest import SMALL_RGBA, atlas_header, write_file


@pytest.fixture
def run(tmp_path):
    config_path = str(tmp_path / 'config.json')

    def _run(*args):
        return main(['--no-color', '--config', config_path] + list(args))

    _run.config_path = config_path
    return _run


def test_convert(run, source_tree, tmp_path, capsys):
    out = tmp_path / 'out'
    assert run('convert', str(source_tree), '-o', str(out)) == 0

    output = capsys.readouterr().out
    assert 'Converted: 3' in output
    assert 'Done in' in output
    assert (out / 'ui' / 'b.png').is_file()


def test_convert_failure_exit_code(run, source_tree, tmp_path, capsys):
    write_file(str(source_tree / 'a.data'), atlas_header(1, 1))
    assert run('convert', str(source_tree), '-o', str(tmp_path / 'out')) == 1
    assert 'size does not match' in capsys.readouterr().out


def test_convert_missing_source(run, tmp_path, capsys):
    assert run('convert', str(tmp_path / 'missing')) == 1
    assert 'path does not exist' in capsys.readouterr().out


def test_convert_records_history(run, source_tree, tmp_path, capsys):
    run('convert', str(source_tree), '-o', str(tmp_path / 'out'))
    capsys.readouterr()

    assert run('history', 'stats') == 0
    assert 'Converted:  3' in capsys.readouterr().out

    assert run('convert', str(source_tree), '-o', str(tmp_path / 'out'),
               '--incremental') == 0
    assert 'Unchanged: 3' in capsys.readouterr().out

    assert run('history', 'clear') == 0
    assert 'Removed 3' in capsys.readouterr().out


def test_info(run, tmp_path, capsys):
    path = tmp_path / 'a.data'
    path.write_bytes(SMALL_RGBA)
    assert run('info', str(path)) == 0

    output = capsys.readouterr().out
    assert '3x1 = 3 pixels' in output
    assert 'RGBA' in output
    assert '2 transparent' in output


def test_info_invalid(run, tmp_path, capsys):
    path = tmp_path / 'bad.data'
    path.write_bytes(atlas_header(1, 1) + bytes([1, 2]))
    assert run('info', str(path)) == 1
    assert 'truncated' in capsys.readouterr().out


def test_pack(run, tmp_path):
    png = tmp_path / 'in.png'
    Image.new('RGBA', (2, 2), (1, 2, 3, 255)).save(png)
    target = tmp_path / 'out.data'

    assert run('pack', str(png), str(target)) == 0
    atlas = decode_atlas(target.read_bytes())
    assert not atlas.has_alpha
    assert atlas.get_pixel(1, 1) == (1, 2, 3, 255)

    assert run('pack', str(png), str(target), '--alpha') == 0
    assert decode_atlas(target.read_bytes()).has_alpha


def test_config_set_and_show(run, capsys):
    assert run('config', 'set', 'worker_threads', '6') == 0
    with open(run.config_path) as f:
        assert json.load(f)['worker_threads'] == 6

    assert run('config', 'set', 'no_such_key', '1') == 1
    capsys.readouterr()

    assert run('config', 'show') == 0
    assert "worker_threads" in capsys.readouterr().out

    assert run('config', 'reset') == 0
    with open(run.config_path) as f:
        assert json.load(f)['worker_threads'] == 1


def test_no_command_prints_help(run, capsys):
    assert run() == 0
    assert 'usage' in capsys.readouterr().out.lower()


def test_convert_with_hand_edited_config(run, source_tree, tmp_path, capsys):
    with open(run.config_path, 'w') as f:
        json.dump({'error_policy': 'retry', 'worker_threads': '4'}, f)

    assert run('convert', str(source_tree), '-o', str(tmp_path / 'out')) == 0
    output = capsys.readouterr().out
    assert 'Workers: 4' in output
    assert 'Converted: 3' in output


def test_convert_rejects_negative_max_pixels(run, source_tree, tmp_path, capsys):
    assert run('convert', str(source_tree), '-o', str(tmp_path / 'out'),
               '--max-pixels', '-1') == 1
    assert 'Invalid option: max_image_pixels must be >= 0' in capsys.readouterr().out
    assert not (tmp_path / 'out').exists()


def test_info_reports_oversized_atlas(run, tmp_path, capsys):
    run('config', 'set', 'max_image_pixels', '2')
    capsys.readouterr()

    path = tmp_path / 'a.data'
    path.write_bytes(SMALL_RGBA)
    assert run('info', str(path)) == 0
    assert 'convert will refuse it' in capsys.readouterr().out
