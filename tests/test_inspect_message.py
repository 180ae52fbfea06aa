import json

from codec import encode
from scripts.inspect_message import main
from shared.geometry import CenterRotatedBox, CoordinateType
from shared.schemas import OverlayObject


def test_decodes_hex_request_id(capsys):
    assert main(["--type", "LensOverlayRequestId", "--hex", "08 2a 10 01"]) == 0

    out = capsys.readouterr().out
    decoded = json.loads(out)
    assert decoded["uuid"] == 42
    assert decoded["sequence_id"] == 1


def test_reads_message_from_file(tmp_path, capsys):
    path = tmp_path / "object.bin"
    path.write_bytes(encode(OverlayObject(id="obj-1", is_fulfilled=True)))

    assert main(["--type", "OverlayObject", str(path)]) == 0
    assert json.loads(capsys.readouterr().out)["id"] == "obj-1"


def test_strict_mode_fails_on_diagnostics(tmp_path, capsys):
    path = tmp_path / "box.bin"
    path.write_bytes(encode(CenterRotatedBox(width=1.5, coordinate_type=CoordinateType.NORMALIZED)))

    assert main(["--type", "CenterRotatedBox", str(path)]) == 0
    assert main(["--type", "CenterRotatedBox", "--strict", str(path)]) == 1
    assert "coordinate_range" in capsys.readouterr().out
    assert main(["--type", "CenterRotatedBox", "--strict", "--no-validate", str(path)]) == 0


def test_malformed_input_exits_with_two(capsys):
    assert main(["--type", "OverlayObject", "--hex", "0a05ab"]) == 2
    assert "Decode failed" in capsys.readouterr().err


def test_unreadable_input_exits_with_two(tmp_path, capsys):
    assert main(["--type", "OverlayObject", str(tmp_path / "missing.bin")]) == 2
    assert main(["--type", "OverlayObject", "--hex", "zz"]) == 2
