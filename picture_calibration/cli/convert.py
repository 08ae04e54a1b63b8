"""Calibration file conversion CLI commands."""

from pathlib import Path
from typing import Optional

import typer

from picture_calibration import calibration_codec
from picture_calibration.calibration_codec import CalibrationFormatError
from picture_calibration.cli.main import app
from picture_calibration.config import CalibrationConfig, get_default_config
from picture_calibration.geometry import EastNorth
from picture_calibration.picture_layer import PictureLayer
from picture_calibration.projection import get_projection


def _load_config(config_path: Optional[Path]) -> CalibrationConfig:
    if config_path is None:
        return get_default_config()
    try:
        return CalibrationConfig.from_yaml(str(config_path))
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _new_layer(width: int, height: int, projection_code: Optional[str],
               config: CalibrationConfig) -> PictureLayer:
    projection = get_projection(projection_code or config.projection_code)
    return PictureLayer(projection, width, height,
                        image_position=EastNorth(0.0, 0.0), config=config)


def _read_calibration(layer: PictureLayer, cal_file: Path) -> None:
    try:
        with open(cal_file, "rb") as f:
            props = calibration_codec.read_calibration(f)
        layer.load_calibration(props)
    except (OSError, CalibrationFormatError) as e:
        typer.echo(f"Error: cannot load {cal_file}: {e}", err=True)
        raise typer.Exit(1)


def _find_world_file(image: Path, config: CalibrationConfig) -> Path:
    candidates = calibration_codec.world_file_candidates(image, config.world_file_extensions)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    names = ", ".join(c.name for c in candidates)
    typer.echo(f"Error: No world file found for {image} (tried {names})", err=True)
    raise typer.Exit(1)


@app.command("world-to-cal")
def world_to_cal_command(
    image: Path = typer.Argument(..., help="Georeferenced image; its sidecar files are located by name"),
    width: int = typer.Option(..., help="Image width in pixels"),
    height: int = typer.Option(..., help="Image height in pixels"),
    projection: Optional[str] = typer.Option(
        None, help="CRS of the world file coordinates (default: from config)"),
    world_file: Optional[Path] = typer.Option(
        None, help="World file to read (default: first of .jgw, .jpgw, .wld, ... next to the image)"),
    output: Optional[Path] = typer.Option(
        None, help="Output calibration file (default: image name plus .cal)"),
    config: Optional[Path] = typer.Option(None, help="Path to calibration config YAML"),
) -> None:
    """
    Convert the world file of an image into a calibration property file.

    Example:
        piccal world-to-cal map.jpg --width 4000 --height 3000 --projection EPSG:25830
    """
    cfg = _load_config(config)
    layer = _new_layer(width, height, projection, cfg)
    source = world_file or _find_world_file(image, cfg)

    try:
        with open(source, "rb") as f:
            values = calibration_codec.read_world_file(f)
        layer.apply_world_file(values)
    except (OSError, CalibrationFormatError) as e:
        typer.echo(f"Error: cannot load {source}: {e}", err=True)
        raise typer.Exit(1)

    target = output or calibration_codec.calibration_file_for(image, cfg.calibration_extension)
    with open(target, "wb") as f:
        calibration_codec.write_calibration(f, layer.transformer, layer.initial_image_scale)
    typer.echo(f"Wrote {target}")


@app.command("cal-to-world")
def cal_to_world_command(
    image: Path = typer.Argument(..., help="Calibrated image; its sidecar files are located by name"),
    width: int = typer.Option(..., help="Image width in pixels"),
    height: int = typer.Option(..., help="Image height in pixels"),
    projection: Optional[str] = typer.Option(
        None, help="CRS the calibration was made in (default: from config)"),
    calibration: Optional[Path] = typer.Option(
        None, help="Calibration file to read (default: image name plus .cal)"),
    output: Optional[Path] = typer.Option(
        None, help="Output world file (default: the image's conventional world file, e.g. .jgw)"),
    config: Optional[Path] = typer.Option(None, help="Path to calibration config YAML"),
) -> None:
    """
    Convert the calibration property file of an image into a world file.

    Rotation is kept only through the skew terms; the world file cannot
    represent the calibration's anchor and initial scale separately.
    """
    cfg = _load_config(config)
    layer = _new_layer(width, height, projection, cfg)
    _read_calibration(layer, calibration or
                      calibration_codec.calibration_file_for(image, cfg.calibration_extension))

    target = output or calibration_codec.world_file_candidates(image, cfg.world_file_extensions)[0]
    with open(target, "wb") as f:
        calibration_codec.write_world_file(f, layer.world_file_values())
    typer.echo(f"Wrote {target}")


@app.command("info")
def info_command(
    image: Path = typer.Argument(..., help="Calibrated image; its sidecar files are located by name"),
    width: int = typer.Option(..., help="Image width in pixels"),
    height: int = typer.Option(..., help="Image height in pixels"),
    projection: Optional[str] = typer.Option(
        None, help="CRS the calibration was made in (default: from config)"),
    calibration: Optional[Path] = typer.Option(
        None, help="Calibration file to read (default: image name plus .cal)"),
    config: Optional[Path] = typer.Option(None, help="Path to calibration config YAML"),
) -> None:
    """Print the calibration, its world file equivalent and bounding box."""
    cfg = _load_config(config)
    layer = _new_layer(width, height, projection, cfg)
    _read_calibration(layer, calibration or
                      calibration_codec.calibration_file_for(image, cfg.calibration_extension))

    m00, m10, m01, m11, m02, m12 = layer.transform.flat_matrix()
    position = layer.image_position

    typer.echo(f"Projection:     {layer.projection.code()}")
    typer.echo(f"Image size:     {width}x{height} px")
    typer.echo(f"Anchor:         E={position.east:.3f} N={position.north:.3f}")
    typer.echo(f"Initial scale:  {layer.initial_image_scale:.6g} m/100px")
    typer.echo("Transform:")
    typer.echo(f"  [{m00: .9g} {m01: .9g} {m02: .9g}]")
    typer.echo(f"  [{m10: .9g} {m11: .9g} {m12: .9g}]")

    typer.echo("World file:")
    for label, value in zip(("sx", "ry", "rx", "sy", "dx", "dy"), layer.world_file_values()):
        typer.echo(f"  {label} = {value:.12g}")

    box = layer.bounding_box()
    if box is None:
        typer.echo("Bounding box:   not supported for this projection")
    else:
        typer.echo(f"Bounding box:   E {box.min.east:.3f}..{box.max.east:.3f}, "
                   f"N {box.min.north:.3f}..{box.max.north:.3f}")
