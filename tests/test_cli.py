#!/usr/bin/env python3
"""
Tests for the piccal command-line interface.

Run with: python -m pytest tests/test_cli.py -v
"""

import os
import sys

import pytest
from typer.testing import CliRunner

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from picture_calibration import calibration_codec
from picture_calibration.cli import app

runner = CliRunner()

# 0.25 m pixels in Web Mercator, slightly rotated
WORLD_VALUES = [0.25, 0.01, 0.02, -0.25, -25650.0, 4813100.0]


@pytest.fixture
def image(tmp_path):
    return tmp_path / "map.jpg"


@pytest.fixture
def world_file(image):
    path = image.with_suffix(".jgw")
    path.write_text("\n".join(repr(v) for v in WORLD_VALUES) + "\n")
    return path


def size_args(*extra):
    return ["--width", "400", "--height", "300", "--projection", "EPSG:3857", *extra]


class TestWorldToCal:

    def test_writes_calibration_next_to_image(self, image, world_file):
        result = runner.invoke(app, ["world-to-cal", str(image), *size_args()])

        assert result.exit_code == 0, result.output
        target = image.parent / "map.jpg.cal"
        assert target.exists()
        assert not world_file.with_suffix(".cal").exists()
        with open(target, "rb") as f:
            props = calibration_codec.read_calibration(f)
        assert float(props["INITIAL_SCALE"]) == 1.0
        assert set(calibration_codec.MATRIX_KEYS) <= set(props)

    def test_falls_back_to_wld(self, image):
        image.with_suffix(".wld").write_text("\n".join(repr(v) for v in WORLD_VALUES) + "\n")

        result = runner.invoke(app, ["world-to-cal", str(image), *size_args()])

        assert result.exit_code == 0, result.output
        assert (image.parent / "map.jpg.cal").exists()

    def test_configured_extensions(self, image, tmp_path):
        image.with_suffix(".tab").write_text("\n".join(repr(v) for v in WORLD_VALUES) + "\n")
        config = tmp_path / "config.yaml"
        config.write_text(
            "calibration:\n"
            "  calibration_extension: .calib\n"
            "  world_file_extensions: ['.wld', '.tab']\n"
        )

        result = runner.invoke(app, ["world-to-cal", str(image),
                                     *size_args("--config", str(config))])

        assert result.exit_code == 0, result.output
        assert (image.parent / "map.jpg.calib").exists()

    def test_explicit_world_file_and_output(self, image, tmp_path):
        source = tmp_path / "elsewhere.txt"
        source.write_text("\n".join(repr(v) for v in WORLD_VALUES) + "\n")
        output = tmp_path / "out" / "custom.cal"
        output.parent.mkdir()

        result = runner.invoke(app, ["world-to-cal", str(image),
                                     *size_args("--world-file", str(source),
                                                "--output", str(output))])

        assert result.exit_code == 0, result.output
        assert output.exists()

    def test_bad_world_file(self, image):
        image.with_suffix(".wld").write_text("1\n2\n")

        result = runner.invoke(app, ["world-to-cal", str(image), *size_args()])

        assert result.exit_code == 1
        assert "Unable to read line 3" in result.output

    def test_missing_world_file(self, image):
        result = runner.invoke(app, ["world-to-cal", str(image), *size_args()])

        assert result.exit_code == 1
        assert "No world file found" in result.output
        assert "map.jgw" in result.output


class TestCalToWorld:

    def test_round_trip(self, image, world_file, tmp_path):
        runner.invoke(app, ["world-to-cal", str(image), *size_args()])
        output = tmp_path / "round_trip.wld"

        result = runner.invoke(app, ["cal-to-world", str(image),
                                     *size_args("--output", str(output))])

        assert result.exit_code == 0, result.output
        with open(output, "rb") as f:
            values = calibration_codec.read_world_file(f)
        assert values == pytest.approx(WORLD_VALUES, rel=1e-9, abs=1e-6)

    def test_default_output_is_conventional_world_file(self, image):
        (image.parent / "map.jpg.cal").write_text("INITIAL_SCALE=10.0\n")

        result = runner.invoke(app, ["cal-to-world", str(image), *size_args()])

        assert result.exit_code == 0, result.output
        assert image.with_suffix(".jgw").exists()

    def test_explicit_calibration(self, image, tmp_path):
        cal_file = tmp_path / "other.cal"
        cal_file.write_text("INITIAL_SCALE=10.0\n")
        output = tmp_path / "out.wld"

        result = runner.invoke(app, ["cal-to-world", str(image),
                                     *size_args("--calibration", str(cal_file),
                                                "--output", str(output))])

        assert result.exit_code == 0, result.output
        assert output.exists()

    def test_bad_calibration(self, image):
        (image.parent / "map.jpg.cal").write_text("M00=not-a-number\n")

        result = runner.invoke(app, ["cal-to-world", str(image), *size_args()])

        assert result.exit_code == 1
        assert "M00" in result.output


class TestInfo:

    def test_prints_summary(self, image, world_file):
        runner.invoke(app, ["world-to-cal", str(image), *size_args()])

        result = runner.invoke(app, ["info", str(image), *size_args()])

        assert result.exit_code == 0, result.output
        assert "Projection:     EPSG:3857" in result.output
        assert "Image size:     400x300 px" in result.output
        assert "sx = 0.25" in result.output
        assert "Bounding box:   E" in result.output

    def test_wgs84_has_no_bounding_box(self, image):
        (image.parent / "map.jpg.cal").write_text("POSITION_X=8.0\nPOSITION_Y=47.0\nINITIAL_SCALE=10.0\n")

        result = runner.invoke(app, ["info", str(image), "--width", "10", "--height", "10",
                                     "--projection", "epsg:4326"])

        assert result.exit_code == 0, result.output
        assert "Projection:     EPSG:4326" in result.output
        assert "not supported" in result.output

    def test_config_file(self, image, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("calibration:\n  projection_code: EPSG:4326\n")
        cal_file = tmp_path / "custom.cal"
        cal_file.write_text("INITIAL_SCALE=10.0\n")

        result = runner.invoke(app, ["info", str(image), "--width", "10", "--height", "10",
                                     "--calibration", str(cal_file), "--config", str(config)])

        assert result.exit_code == 0, result.output
        assert "Projection:     EPSG:4326" in result.output

    def test_missing_calibration(self, image):
        result = runner.invoke(app, ["info", str(image), *size_args()])

        assert result.exit_code == 1
        assert "map.jpg.cal" in result.output

    def test_bad_config_file(self, image, tmp_path):
        (image.parent / "map.jpg.cal").write_text("")

        result = runner.invoke(app, ["info", str(image), "--width", "10", "--height", "10",
                                     "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output
