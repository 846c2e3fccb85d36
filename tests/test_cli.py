import json
import sys

import cv2
import pytest
import requests
from typer.testing import CliRunner

from visionkit import __version__, utils
from visionkit.cli import app, main
from visionkit.config import get_settings
from visionkit.runtime import session as session_module
from visionkit.runtime.session import CPU_PROVIDER

runner = CliRunner()


def parse(result):
    # stdout carries exactly one JSON object; it is always the last line
    return json.loads(result.stdout.strip().splitlines()[-1])


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def cpu_only(monkeypatch):
    monkeypatch.setattr(session_module.ort, "get_available_providers", lambda: [CPU_PROVIDER])


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_convert():
    result = runner.invoke(app, ["convert", "10,20,50,80", "0,0,4,4", "--dst", "cxcywh"])

    assert result.exit_code == 0
    payload = parse(result)
    assert payload["ok"] is True
    assert payload["tool"] == "convert"
    assert payload["result"] == {
        "src": "xyxy",
        "dst": "cxcywh",
        "boxes": [[30.0, 50.0, 40.0, 60.0], [2.0, 2.0, 4.0, 4.0]],
    }


def test_convert_from_xywh():
    result = runner.invoke(app, ["convert", "10,20,40,60", "--src", "xywh", "--dst", "xyxy"])

    assert parse(result)["result"]["boxes"] == [[10.0, 20.0, 50.0, 80.0]]


@pytest.mark.parametrize("box", ["50,20,10,80", "1,2,3", "a,b,c,d"])
def test_convert_invalid_box(box):
    result = runner.invoke(app, ["convert", box])

    assert result.exit_code == 1
    payload = parse(result)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "invalid_box"
    assert "result" not in payload


def test_iou():
    result = runner.invoke(app, ["iou", "0,0,10,10", "5,5,15,15"])

    assert result.exit_code == 0
    assert parse(result)["result"]["iou"] == pytest.approx(25 / 175)


def test_to_global():
    result = runner.invoke(app, ["to-global", "10.4,20,30,40.6", "--offset", "100,200", "--pixels"])

    assert result.exit_code == 0
    assert parse(result)["result"] == {"offset": [100.0, 200.0], "boxes": [[110, 220, 130, 241]]}


def test_to_global_bad_offset():
    result = runner.invoke(app, ["to-global", "0,0,1,1", "--offset", "100"])

    assert result.exit_code == 1
    assert parse(result)["error"]["code"] == "invalid_box"


def test_tiles():
    result = runner.invoke(app, ["tiles", "1000", "600", "--tile-size", "512", "--overlap", "64"])

    assert result.exit_code == 0
    payload = parse(result)["result"]
    assert payload["count"] == 6
    assert payload["tiles"][0] == {"x1": 0, "y1": 0, "x2": 512, "y2": 512}


def test_tiles_bad_overlap():
    result = runner.invoke(app, ["tiles", "100", "100", "--tile-size", "32", "--overlap", "32"])

    assert result.exit_code == 1
    assert parse(result)["error"]["code"] == "invalid_argument"


def test_providers(cpu_only):
    result = runner.invoke(app, ["providers", "--prefer", "CUDAExecutionProvider"])

    assert result.exit_code == 0
    assert parse(result)["result"] == {
        "available": [CPU_PROVIDER],
        "selected": [CPU_PROVIDER],
    }


def test_detect_without_model(tmp_path):
    result = runner.invoke(app, ["detect", str(tmp_path / "page.png")])

    assert result.exit_code == 1
    assert parse(result)["error"]["code"] == "model_load_error"


def test_detect_unreadable_image(tmp_path):
    result = runner.invoke(
        app, ["detect", str(tmp_path / "missing.png"), "--model", str(tmp_path / "det.onnx")]
    )

    assert result.exit_code == 1
    payload = parse(result)
    assert payload["error"]["code"] == "image_read_error"
    assert payload["error"]["details"]["path"].endswith("missing.png")


def test_detect_missing_model_file(tmp_path, dark_page, cpu_only):
    image_path = tmp_path / "page.png"
    cv2.imwrite(str(image_path), dark_page)

    result = runner.invoke(app, ["detect", str(image_path), "--model", str(tmp_path / "det.onnx")])

    assert result.exit_code == 1
    assert parse(result)["error"]["code"] == "model_load_error"


def test_detect(tmp_path, dark_page, toy_model_path, cpu_only):
    image_path = tmp_path / "page.png"
    cv2.imwrite(str(image_path), dark_page)

    result = runner.invoke(app, ["detect", str(image_path), "--model", str(toy_model_path)])

    assert result.exit_code == 0
    payload = parse(result)["result"]
    assert payload["image"]["width"] == 128
    assert payload["image"]["height"] == 64
    assert payload["count"] == 1
    detection = payload["detections"][0]
    assert set(detection) == {"box", "polygon", "score"}
    assert detection["box"]["x1"] <= 30
    assert detection["box"]["x2"] >= 89


def test_bad_log_level_setting_prints_error_envelope():
    result = runner.invoke(app, ["iou", "0,0,10,10", "5,5,15,15"], env={"VISIONKIT_LOG_LEVEL": "LOUD"})

    assert result.exit_code == 1
    payload = parse(result)
    assert payload["ok"] is False
    assert payload["tool"] == "iou"
    assert payload["error"]["code"] == "invalid_argument"
    assert "'LOUD'" in payload["error"]["message"]


def test_malformed_setting_prints_error_envelope():
    result = runner.invoke(app, ["tiles", "100", "100"], env={"VISIONKIT_INTRA_OP_THREADS": "many"})

    assert result.exit_code == 1
    payload = parse(result)
    assert payload["tool"] == "tiles"
    assert payload["error"]["code"] == "invalid_argument"
    assert "intra_op_threads" in payload["error"]["message"]


def test_detect_download_failure_is_model_load_error(tmp_path, monkeypatch):
    def fake_get(url, stream, timeout):
        raise requests.ConnectionError("Connection refused")

    monkeypatch.setattr(utils.requests, "get", fake_get)
    result = runner.invoke(
        app,
        ["detect", str(tmp_path / "page.png"), "--model-url", "https://example.com/det.onnx"],
        env={"VISIONKIT_MODELS_DIR": str(tmp_path / "models")},
    )

    assert result.exit_code == 1
    payload = parse(result)
    assert payload["error"]["code"] == "model_load_error"
    assert payload["error"]["details"] == {"url": "https://example.com/det.onnx"}


def run_main(monkeypatch, capsys, *args):
    monkeypatch.setattr(sys, "argv", ["visionkit", *args])
    with pytest.raises(SystemExit) as exc_info:
        main()
    captured = capsys.readouterr()
    return exc_info.value.code, captured


@pytest.mark.parametrize(
    "args, tool",
    [
        (["convert", "1,2,3,4", "--dst", "yxyx"], "convert"),
        (["tiles", "wide", "100"], "tiles"),
        (["iou", "0,0,1,1"], "iou"),
        (["detect", "page.png", "--box-thresh", "2"], "detect"),
        (["rotate", "0,0,1,1"], "visionkit"),
    ],
)
def test_main_reports_usage_errors_as_json(monkeypatch, capsys, args, tool):
    code, captured = run_main(monkeypatch, capsys, *args)

    assert code == 1
    lines = captured.out.strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["ok"] is False
    assert payload["tool"] == tool
    assert payload["error"]["code"] == "invalid_argument"
    assert "Usage" in captured.err


def test_main_exit_codes_follow_the_envelope(monkeypatch, capsys):
    code, captured = run_main(monkeypatch, capsys, "iou", "0,0,10,10", "5,5,15,15")

    assert code == 0
    assert json.loads(captured.out)["ok"] is True

    code, captured = run_main(monkeypatch, capsys, "convert", "50,20,10,80")

    assert code == 1
    assert json.loads(captured.out)["error"]["code"] == "invalid_box"
