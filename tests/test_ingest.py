import io
import json
import logging
import zipfile

import pytest

from wg_backup_converter import (
    detect_format,
    generate_backup_document,
    load_file,
    load_file_async,
    parse_any,
    parse_archive,
    parse_text_protocol,
)

TEXT = "[Interface]\nPrivateKey = AAA\nAddress = 10.0.0.2/32\n\n[Peer]\nPublicKey = BBB\nEndpoint = 1.2.3.4:51820\n"
OTHER = "[Interface]\nPrivateKey = CCC\n[Peer]\nEndpoint = 5.6.7.8:443\n"


def backup_text() -> str:
    return generate_backup_document(parse_text_protocol(TEXT + OTHER))


def make_zip(members: dict) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buf.getvalue()


def test_detect_format():
    assert detect_format('  {"version": 1}') == "backup"
    assert detect_format("[1, 2]") == "backup"
    assert detect_format("privatekey = x") == "text"
    assert detect_format("# profile\n[INTERFACE]\n") == "text"
    assert detect_format("hello") is None


def test_parse_any_routes_backup():
    configs = parse_any(backup_text())
    assert [c.interface.private_key for c in configs] == ["AAA", "CCC"]


def test_parse_any_falls_back_to_text_for_bracketed_input():
    # starts with "[" so it is sniffed as JSON first
    configs = parse_any(TEXT)
    assert len(configs) == 1
    assert configs[0].peer.public_key == "BBB"


def test_parse_any_nothing_found():
    assert parse_any("just words") == []
    assert parse_any('{"servers": []}') == []


def test_parse_archive_reads_every_member():
    blob = make_zip({
        "one.conf": TEXT,
        "nested/two.conf": OTHER,
        "nested/": "",
        "readme.txt": "nothing to see",
    })
    configs = parse_archive(blob)
    assert [c.interface.private_key for c in configs] == ["AAA", "CCC"]


def test_parse_archive_with_undecodable_bytes():
    blob = make_zip({"one.conf": TEXT.encode() + b"\xff\xfe\n"})
    assert len(parse_archive(blob)) == 1


def test_parse_archive_rejects_garbage():
    assert parse_archive(b"definitely not a zip") == []


def test_load_file_routes_by_content_and_suffix(tmp_path):
    conf = tmp_path / "a.conf"
    conf.write_text(TEXT + "\n" + OTHER)
    backup = tmp_path / "backup.backup"
    backup.write_text(backup_text())
    archive = tmp_path / "bundle.ZIP"
    archive.write_bytes(make_zip({"x.conf": TEXT}))

    assert len(load_file(str(conf))) == 2
    assert [c.interface.private_key for c in load_file(str(backup))] == ["AAA", "CCC"]
    assert [c.interface.private_key for c in load_file(str(archive))] == ["AAA"]


def test_load_file_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_file(str(tmp_path / "missing.conf"))


@pytest.mark.asyncio
async def test_load_file_async(tmp_path):
    path = tmp_path / "backup.json"
    path.write_text(json.dumps(json.loads(backup_text())))
    configs = await load_file_async(str(path))
    assert len(configs) == 2


def test_text_paste_does_not_warn(caplog):
    caplog.set_level(logging.DEBUG, logger="wg_backup_converter")
    assert len(parse_any(TEXT)) == 1
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_broken_json_paste_warns(caplog):
    caplog.set_level(logging.DEBUG, logger="wg_backup_converter")
    assert parse_any('{"servers": [') == []
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_parse_archive_skips_member_that_fails_to_read():
    broken = "[Interface]\nPrivateKey = BROKENKEY\n[Peer]\nEndpoint = e:1\n"
    blob = make_zip({"good.conf": TEXT, "bad.conf": broken})
    # flip stored bytes so the member fails its CRC check
    blob = blob.replace(b"BROKENKEY", b"BROKENKEZ")
    configs = parse_archive(blob)
    assert [c.interface.private_key for c in configs] == ["AAA"]
