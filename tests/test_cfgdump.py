import marshal

import pytest

import cfgdump


def test_raw(tmp_path, capsys, host_version):
    path = tmp_path / 'mod.bin'
    path.write_bytes(marshal.dumps(compile('x = 1\n', '<test>', 'exec')))
    assert cfgdump.main(['--raw', '--version', '{}.{}'.format(*host_version.key), str(path)]) == 0
    out = capsys.readouterr().out
    assert 'CODE <module> (<test>:1)' in out
    assert 'CFG: ' in out
    assert 'STORE_NAME 0 (x)' in out


def test_raw_needs_version(tmp_path):
    with pytest.raises(SystemExit):
        cfgdump.main(['--raw', str(tmp_path / 'x')])


def test_bad_file(tmp_path, caplog):
    path = tmp_path / 'bad.pyc'
    path.write_bytes(b'\x00' * 20)
    assert cfgdump.main([str(path), str(tmp_path / 'missing.pyc')]) == 1
    assert "pyc version unknown" in caplog.text
    assert "missing.pyc" in caplog.text


def test_failed_object(tmp_path, capsys):
    # a 3.12 code object doing RETURN_VALUE on an empty stack
    code = (
        b'c' + b'\x00\x00\x00\x00' * 5
        + b's\x02\x00\x00\x00S\x00'
        + b')\x00' * 3
        + b's\x00\x00\x00\x00'
        + b'z\x01f' * 3
        + b'\x01\x00\x00\x00'
        + b's\x00\x00\x00\x00' * 2
    )
    path = tmp_path / 'mod.bin'
    path.write_bytes(code)
    assert cfgdump.main(['--raw', '--version', '3.12', str(path)]) == 1
    out = capsys.readouterr().out
    assert 'FAILED f: RETURN_VALUE pops 1 values with 0 on the stack (at offset 0)' in out
