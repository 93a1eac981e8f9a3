import io
import json
import zipfile

import pytest

from wg_backup_converter import (
    ConverterSettings,
    export_backup_document,
    export_bulk_text,
    generate_text_protocol,
    package_archive,
    package_archive_async,
    package_single,
    parse_backup_document,
    parse_text_protocol,
    render_qr,
)
from wg_backup_converter.archive import file_stem
from wg_backup_converter.models import InterfaceSection, PeerSection, TunnelConfig

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def make_config(name: str, private_key: str = "K", endpoint: str = "1.2.3.4:51820") -> TunnelConfig:
    return TunnelConfig(
        id=f"id-{private_key}",
        name=name,
        interface=InterfaceSection(private_key=private_key, address="10.0.0.2/32"),
        peer=PeerSection(public_key=f"pub-{private_key}", endpoint=endpoint),
    )


def read_members(blob: bytes) -> dict:
    with zipfile.ZipFile(io.BytesIO(blob)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


def test_file_stem_sanitizes_and_falls_back():
    assert file_stem(make_config("My VPN!")) == "My_VPN_"
    assert file_stem(make_config("офис-1")) == "_____1"
    assert file_stem(make_config("", endpoint="vpn.example.com:443")) == "vpn_example_com"
    assert file_stem(make_config("", endpoint="")) == "config"
    # archive naming cuts the endpoint at its first colon
    assert file_stem(make_config("", endpoint="[2001:db8::1]:443")) == "_2001"


def test_archive_has_one_conf_per_profile():
    configs = [make_config("alpha", "K1"), make_config("beta", "K2")]
    packaged = package_archive(configs)
    assert packaged.filename == "wireguard_configs.zip"
    assert packaged.media_type == "application/zip"
    members = read_members(packaged.content)
    assert sorted(members) == ["alpha.conf", "beta.conf"]
    assert members["alpha.conf"].decode() == generate_text_protocol(configs[0])
    parsed = parse_text_protocol(members["beta.conf"].decode())
    assert parsed[0].interface.private_key == "K2"


def test_colliding_stems_keep_last_profile_only():
    configs = [make_config("My VPN!", "K1"), make_config("My VPN!", "K2")]
    members = read_members(package_archive(configs).content)
    assert list(members) == ["My_VPN_.conf"]
    assert "PrivateKey = K2" in members["My_VPN_.conf"].decode()


def test_archive_of_nothing_is_valid_zip():
    assert read_members(package_archive([]).content) == {}


def test_archive_with_qr_images():
    settings = ConverterSettings(emit_qr=True, archive_name="out.zip")
    packaged = package_archive([make_config("alpha")], settings)
    assert packaged.filename == "out.zip"
    members = read_members(packaged.content)
    assert sorted(members) == ["alpha.conf", "alpha.png"]
    assert members["alpha.png"].startswith(PNG_SIGNATURE)


def test_render_qr_png():
    assert render_qr(make_config("alpha")).startswith(PNG_SIGNATURE)


@pytest.mark.asyncio
async def test_package_archive_async_matches_sync():
    configs = [make_config("alpha", "K1"), make_config("beta", "K2")]
    packaged = await package_archive_async(configs)
    assert packaged.filename == "wireguard_configs.zip"
    assert read_members(packaged.content) == read_members(package_archive(configs).content)


def test_package_single():
    cfg = make_config("Home Router")
    packaged = package_single(cfg)
    assert packaged.filename == "Home_Router.conf"
    assert packaged.text() == generate_text_protocol(cfg)


def test_export_bulk_text():
    configs = [make_config("a", "K1"), make_config("b", "K2")]
    packaged = export_bulk_text(configs)
    assert packaged.filename == "wireguard_bulk.conf"
    assert len(parse_text_protocol(packaged.text())) == 2


def test_export_backup_document():
    configs = [make_config("a", "K1"), make_config("b", "K2")]
    packaged = export_backup_document(configs)
    assert packaged.filename == "amnezia_backup.json"
    assert packaged.media_type == "application/json"
    assert len(json.loads(packaged.text())["servers"]) == 2
    assert [c.interface.private_key for c in parse_backup_document(packaged.text())] == ["K1", "K2"]
