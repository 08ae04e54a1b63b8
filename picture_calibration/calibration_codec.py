#!/usr/bin/env python3
"""
Serialization of picture calibrations.

Two external formats are supported:

1. Calibration property blob (``.cal`` sidecar)
   UTF-8 text in the Java ``.properties`` layout: ``key=value``, ``key: value``
   or ``key value`` lines, ``#`` and ``!`` comments, backslash escapes and
   continuation lines. Numbers are plain finite decimals with ``.`` as
   separator, independent of the host locale. Current keys:

       M00, M01, M10, M11, M02, M12   affine entries (see note below)
       POSITION_X, POSITION_Y         image anchor east/north
       INITIAL_SCALE                  meters per 100 pixels at placement

   Note on M01/M10: the six values are written in the flat matrix order
   (m00, m10, m01, m11, m02, m12) under the keys M00, M01, M10, M11, M02,
   M12. So M01 holds m10 and M10 holds m01. Existing files depend on this
   ordering; do not "fix" it.

   Legacy files carry ANGLE (degrees), SCALEX, SCALEY, SHEARX, SHEARY
   instead of the matrix. They are recognized by the presence of SCALEX and
   loaded as Rotate(angle) · Scale(sx, sy) · Shear(shx, shy).

2. World file (``.wld``, ``.jgw``, ``.tfw``, ...)
   Six numbers, one per line: sx, ry, rx, sy, dx, dy. (sx, sy) is the pixel
   size in projected units (sy negative since rows grow downward), (rx, ry)
   the skew terms and (dx, dy) the projected coordinate of the centre of the
   upper-left pixel.

   The engine has nine parameters (six affine entries, anchor, initial
   scale) for the world file's six. Saving eliminates the redundant three;
   loading always sets the initial image scale to 1 so the view mapping
   collapses to the scale encoded in the world file.

All loaders parse and validate every value before touching engine state.
"""

import logging
import math
import re
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence

from picture_calibration.affine_transform import AffineTransform
from picture_calibration.geometry import EastNorth
from picture_calibration.picture_transform import PictureTransform
from picture_calibration.projection import Projection
from picture_calibration.view_mapping import meters_per_easting, meters_per_northing

logger = logging.getLogger(__name__)

# Current property keys
MATRIX_M00 = "M00"
MATRIX_M01 = "M01"
MATRIX_M10 = "M10"
MATRIX_M11 = "M11"
MATRIX_M02 = "M02"
MATRIX_M12 = "M12"
POSITION_X = "POSITION_X"
POSITION_Y = "POSITION_Y"
INITIAL_SCALE = "INITIAL_SCALE"

# Legacy property keys
ANGLE = "ANGLE"
SCALEX = "SCALEX"
SCALEY = "SCALEY"
SHEARX = "SHEARX"
SHEARY = "SHEARY"

# Keys in flat matrix order (m00, m10, m01, m11, m02, m12)
MATRIX_KEYS = (MATRIX_M00, MATRIX_M01, MATRIX_M10, MATRIX_M11, MATRIX_M02, MATRIX_M12)
MATRIX_DEFAULTS = ("1", "0", "0", "1", "0", "0")

WORLD_FILE_LINES = 6

# Plain decimal with optional exponent; no nan, inf or digit separators
DECIMAL_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
CALIBRATION_COMMENT = "PicLayer calibration"


class CalibrationFormatError(ValueError):
    """Raised when a calibration or world file cannot be parsed."""


@dataclass(frozen=True)
class LoadedCalibration:
    """Calibration values parsed from a property blob.

    Attributes:
        transform: Affine to concatenate onto a reset calibration.
        image_position: Anchor of the image centre.
        initial_image_scale: Meters per 100 pixels at placement.
        legacy: True when read from the ANGLE/SCALEX/... format.
    """

    transform: AffineTransform
    image_position: EastNorth
    initial_image_scale: float
    legacy: bool = False


@dataclass(frozen=True)
class WorldFileCalibration:
    """Engine state implied by a world file for a given image size."""

    transform: AffineTransform
    image_position: EastNorth
    initial_image_scale: float = 1.0


# ============================================================================
# Locale-independent numbers
# ============================================================================

def format_number(value: float) -> str:
    """Shortest decimal representation that parses back to the same double."""
    return repr(float(value))


def parse_number(text: str, what: str = "value") -> float:
    """
    Parse a decimal number with ``.`` as separator.

    Raises:
        CalibrationFormatError: If the text is not a plain finite decimal
    """
    if not isinstance(text, str) or not DECIMAL_PATTERN.fullmatch(text.strip()):
        raise CalibrationFormatError(f"Invalid number for {what}: {text!r}")

    value = float(text.strip())
    if not math.isfinite(value):
        raise CalibrationFormatError(f"Number out of range for {what}: {text!r}")
    return value


# ============================================================================
# Property blob
# ============================================================================

LINE_BREAK = re.compile(r"\r\n|\r|\n")
_WHITESPACE = " \t\f"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_UNESCAPES = {v: k for k, v in _ESCAPES.items()}


def _logical_lines(text: str):
    """Join continuation lines (odd number of trailing backslashes) and drop comments."""
    pending = None
    for raw_line in LINE_BREAK.split(text):
        line = raw_line.lstrip(_WHITESPACE)
        if pending is None and (not line or line[0] in "#!"):
            continue

        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending = (pending or "") + line[:-1]
            continue

        yield (pending or "") + line
        pending = None

    if pending is not None:
        yield pending


def _unescape(text: str) -> str:
    if "\\" not in text:
        return text

    out = []
    i = 0
    while i < len(text):
        c = text[i]
        if c != "\\":
            out.append(c)
            i += 1
            continue
        if i + 1 == len(text):
            break

        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2:i + 6]
            if len(digits) != 4 or not all(d in "0123456789abcdefABCDEF" for d in digits):
                raise CalibrationFormatError(f"Malformed \\uxxxx escape in {text!r}")
            out.append(chr(int(digits, 16)))
            i += 6
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def _split_key_value(line: str):
    i = 0
    while i < len(line):
        c = line[i]
        if c == "\\":
            i += 2
            continue
        if c in "=:" or c in _WHITESPACE:
            break
        i += 1
    key = line[:i]

    j = i
    while j < len(line) and line[j] in _WHITESPACE:
        j += 1
    if j < len(line) and line[j] in "=:":
        j += 1
        while j < len(line) and line[j] in _WHITESPACE:
            j += 1
    return _unescape(key), _unescape(line[j:])


def _escape(text: str, is_key: bool) -> str:
    out = []
    for i, c in enumerate(text):
        if c == "\\":
            out.append("\\\\")
        elif c in _UNESCAPES:
            out.append("\\" + _UNESCAPES[c])
        elif c == " " and (is_key or i == 0):
            out.append("\\ ")
        elif c in "=:#!" and (is_key or i == 0):
            out.append("\\" + c)
        else:
            out.append(c)
    return "".join(out)


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse text in the Java ``.properties`` layout.

    - Blank lines and lines starting with ``#`` or ``!`` are skipped.
    - The key ends at the first unescaped ``=``, ``:`` or whitespace; one
      ``=`` or ``:`` surrounded by optional whitespace may follow.
    - A line ending in an odd number of backslashes continues on the next
      line, whose leading whitespace is dropped.
    - ``\\t``, ``\\n``, ``\\r``, ``\\f``, ``\\uXXXX`` and ``\\<char>`` escapes
      are decoded in keys and values.

    A line without a separator defines a key with an empty value.

    Raises:
        CalibrationFormatError: On a malformed ``\\u`` escape
    """
    props: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_key_value(line)
        props[key] = value
    return props


def format_properties(props: Mapping[str, str], comment: Optional[str] = None) -> str:
    lines = []
    if comment:
        lines.append(f"#{comment}")
    lines.extend(f"{_escape(key, True)}={_escape(value, False)}" for key, value in props.items())
    return "\n".join(lines) + "\n"


def save_calibration(transformer: PictureTransform, initial_image_scale: float) -> Dict[str, str]:
    """
    Serialize the calibration to property values and clear the modified flag.

    Returns:
        Mapping of property key to decimal string
    """
    props: Dict[str, str] = {}
    for key, value in zip(MATRIX_KEYS, transformer.transform.flat_matrix()):
        props[key] = format_number(value)

    position = transformer.image_position
    props[POSITION_X] = format_number(position.east)
    props[POSITION_Y] = format_number(position.north)
    props[INITIAL_SCALE] = format_number(initial_image_scale)

    transformer.reset_modified()
    return props


def parse_calibration(props: Mapping[str, str]) -> LoadedCalibration:
    """
    Parse property values without touching any engine state.

    Raises:
        CalibrationFormatError: If any value is not a number
    """
    def number(key: str, default: str) -> float:
        return parse_number(props.get(key, default), key)

    position = EastNorth(number(POSITION_X, "0"), number(POSITION_Y, "0"))
    initial_scale = number(INITIAL_SCALE, "1")

    if SCALEX in props:
        angle = number(ANGLE, "0")
        scale_x = number(SCALEX, "1")
        scale_y = number(SCALEY, "1")
        shear_x = number(SHEARX, "0")
        shear_y = number(SHEARY, "0")

        transform = AffineTransform.rotation(angle / 180 * math.pi)
        transform.scale(scale_x, scale_y)
        transform.shear(shear_x, shear_y)
        return LoadedCalibration(transform, position, initial_scale, legacy=True)

    flat = [number(key, default) for key, default in zip(MATRIX_KEYS, MATRIX_DEFAULTS)]
    return LoadedCalibration(AffineTransform.from_flat_matrix(flat), position, initial_scale)


def apply_calibration(transformer: PictureTransform, loaded: LoadedCalibration) -> float:
    """
    Reset the engine and apply a parsed calibration.

    Returns:
        The initial image scale the owner should adopt
    """
    transformer.set_image_position(loaded.image_position)
    transformer.reset_calibration()
    transformer.transform.concatenate(loaded.transform)
    transformer.reset_modified()
    return loaded.initial_image_scale


def load_calibration(transformer: PictureTransform, props: Mapping[str, str]) -> float:
    """
    Load property values into the engine.

    Returns:
        The initial image scale stored in the properties

    Raises:
        CalibrationFormatError: If any value is invalid (engine unchanged)
    """
    loaded = parse_calibration(props)
    if loaded.legacy:
        logger.info("Loading legacy calibration format")
    return apply_calibration(transformer, loaded)


def write_calibration(stream: BinaryIO, transformer: PictureTransform,
                      initial_image_scale: float):
    props = save_calibration(transformer, initial_image_scale)
    stream.write(format_properties(props, CALIBRATION_COMMENT).encode("utf-8"))


def read_calibration(stream: BinaryIO) -> Dict[str, str]:
    """Read a whole property blob from a binary stream."""
    data = stream.read()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CalibrationFormatError(f"Calibration is not valid UTF-8: {e}") from e
    return parse_properties(text)


# ============================================================================
# World file
# ============================================================================

def parse_world_file(text: str) -> List[float]:
    """
    Parse the six world file numbers. Extra trailing lines are ignored.

    Raises:
        CalibrationFormatError: If fewer than six lines or a line is not a number
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    values = []
    for i in range(WORLD_FILE_LINES):
        if i >= len(lines):
            raise CalibrationFormatError(f"Unable to read line {i + 1}")
        values.append(parse_number(lines[i], f"line {i + 1}"))
    return values


def format_world_file(values: Sequence[float]) -> str:
    if len(values) != WORLD_FILE_LINES:
        raise ValueError(f"World file needs {WORLD_FILE_LINES} values, got {len(values)}")
    return "\n".join(format_number(v) for v in values) + "\n"


def read_world_file(stream: BinaryIO) -> List[float]:
    data = stream.read()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CalibrationFormatError(f"World file is not valid UTF-8: {e}") from e
    return parse_world_file(text)


def write_world_file(stream: BinaryIO, values: Sequence[float]):
    stream.write(format_world_file(values).encode("utf-8"))


def world_file_to_calibration(values: Sequence[float], image_width: int, image_height: int,
                              projection: Projection) -> WorldFileCalibration:
    """
    Compute the engine state that reproduces a world file.

    Args:
        values: [sx, ry, rx, sy, dx, dy]
        image_width: Image width in pixels
        image_height: Image height in pixels
        projection: Projection of the world file coordinates

    Returns:
        WorldFileCalibration with initial_image_scale = 1
    """
    if len(values) != WORLD_FILE_LINES:
        raise CalibrationFormatError(
            f"World file needs {WORLD_FILE_LINES} values, got {len(values)}")

    sx, ry, rx, sy, dx, dy = (float(v) for v in values)
    if not all(math.isfinite(v) for v in (sx, ry, rx, sy, dx, dy)):
        raise CalibrationFormatError(f"World file values must be finite, got {list(values)}")
    if sx == 0.0 or sy == 0.0:
        raise CalibrationFormatError(f"World file pixel size must be non-zero, got sx={sx}, sy={sy}")

    half_w = image_width / 2
    half_h = image_height / 2
    anchor = EastNorth(
        dx + half_w * sx + half_h * rx,
        dy + half_w * ry + half_h * sy,
    )

    scale_x = 100 * sx * meters_per_easting(projection, anchor)
    scale_y = -100 * sy * meters_per_northing(projection, anchor)
    shear_x = rx / sx
    shear_y = ry / sy

    transform = AffineTransform.scaling(scale_x, scale_y)
    transform.shear(shear_x, shear_y)
    logger.debug("World file anchor=%s scale=(%.6g, %.6g) shear=(%.6g, %.6g)",
                 anchor, scale_x, scale_y, shear_x, shear_y)
    return WorldFileCalibration(transform=transform, image_position=anchor)


def apply_world_file(transformer: PictureTransform, values: Sequence[float],
                     image_width: int, image_height: int, projection: Projection) -> float:
    """
    Load world file values into the engine.

    Returns:
        The new initial image scale (always 1)
    """
    calibration = world_file_to_calibration(values, image_width, image_height, projection)
    transformer.set_image_position(calibration.image_position)
    transformer.reset_calibration()
    transformer.transform.concatenate(calibration.transform)
    return calibration.initial_image_scale


def world_file_values(transformer: PictureTransform, initial_image_scale: float,
                      image_width: int, image_height: int,
                      projection: Projection) -> List[float]:
    """
    Compute world file values for the current calibration.

    Returns:
        [sx, ry, rx, sy, dx, dy]
    """
    a00, a10, a01, a11, a02, a12 = transformer.transform.flat_matrix()
    anchor = transformer.image_position

    qx = initial_image_scale / 100 / meters_per_easting(projection, anchor)
    qy = -initial_image_scale / 100 / meters_per_northing(projection, anchor)

    sx = qx * a00
    sy = qy * a11
    rx = qx * a01
    ry = qy * a10
    dx = anchor.east + qx * a02 - sx * image_width / 2 - rx * image_height / 2
    dy = anchor.north + qy * a12 - ry * image_width / 2 - sy * image_height / 2
    return [sx, ry, rx, sy, dx, dy]


# ============================================================================
# Sidecar file names
# ============================================================================

def world_file_candidates(image_path, extra_extensions: Sequence[str] = (".wld",)) -> List[Path]:
    """
    Conventional world file names for an image, most specific first.

    ``map.jpg`` gives ``map.jgw``, ``map.jpgw`` and ``map.wld``.
    """
    path = Path(image_path)
    ext = path.suffix.lstrip(".").lower()
    candidates = []
    if len(ext) >= 2:
        candidates.append(path.with_suffix(f".{ext[0]}{ext[-1]}w"))
    if ext:
        candidates.append(path.with_suffix(f".{ext}w"))
    for extension in extra_extensions:
        candidate = path.with_suffix(extension)
        if candidate not in candidates:
            candidates.append(candidate)
    return candidates


def calibration_file_for(image_path, extension: str = ".cal") -> Path:
    """Calibration sidecar of an image: the image name plus ``extension``."""
    path = Path(image_path)
    return path.with_name(path.name + extension)
