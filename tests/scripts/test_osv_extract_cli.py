"""Tests for the osv-extract command line."""

import json
import subprocess

import pytest

from osv_extract.media_data import MediaProbe, MetaMode
from osv_extract.processing.decode_imu import IMUDataNotFoundError
from osv_extract.scripts import osv_extract as cli


@pytest.fixture
def fake_probe(monkeypatch):
    probe = MediaProbe.model_validate(
        {
            "streams": [
                {"index": 0, "codec_type": "video", "codec_name": "hevc"},
                {"index": 1, "codec_type": "data", "codec_tag_string": "djmd"},
            ],
            "format": {"tags": {"encoder": "DJI"}},
        }
    )
    monkeypatch.setattr(cli, "probe_streams", lambda path, show_format=False: probe)


class TestParser:
    def test_extract_defaults(self):
        args = cli.build_parser().parse_args(["extract", "in.osv"])
        assert args.meta == MetaMode.DECODE
        assert args.mov is True
        assert not (args.separate or args.csv or args.force or args.verbose)
        assert args.output is None

    def test_extract_short_flags_and_alias(self):
        args = cli.build_parser().parse_args(
            ["e", "-s", "-c", "-f", "-v", "-m", "both", "--no-mov", "-o", "out", "d"]
        )
        assert args.func is cli.cmd_extract
        assert args.meta == MetaMode.BOTH
        assert args.mov is False
        assert args.separate and args.csv and args.force and args.verbose
        assert str(args.output) == "out"

    def test_invalid_meta_mode(self):
        with pytest.raises(SystemExit) as exc:
            cli.build_parser().parse_args(["extract", "-m", "json", "in.osv"])
        assert exc.value.code == 2

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestMain:
    def test_inspect_prints_json(self, fake_probe, capsys):
        assert cli.main(["i", "in.osv"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["container"] == {"encoder": "DJI"}
        assert summary["data"] == [
            {"index": 1, "codec": None, "type": "data", "tag": "djmd"}
        ]

    def test_extract_passes_options(self, monkeypatch, tmp_path):
        seen = {}

        def process_input(path, options):
            seen["path"] = path
            seen["options"] = options
            return 1

        monkeypatch.setattr(cli, "process_input", process_input)
        assert cli.main(["extract", "-c", "-o", str(tmp_path), "in.osv"]) == 0
        assert seen["options"].csv is True
        assert seen["options"].output_dir == tmp_path

    @pytest.mark.parametrize(
        "error",
        [
            IMUDataNotFoundError("IMU data not found"),
            FileExistsError("File already exists"),
            FileNotFoundError("No OSV files found"),
            ValueError("No video streams found"),
            subprocess.CalledProcessError(1, ["ffprobe"], b"", b"Invalid data"),
        ],
    )
    def test_failures_exit_with_status_1(self, monkeypatch, error):
        def process_input(path, options):
            raise error

        monkeypatch.setattr(cli, "process_input", process_input)
        assert cli.main(["extract", "in.osv"]) == 1
