"""
Command-line interface for visionkit.

Every command prints a single JSON object on stdout. Logs go to stderr.
"""

import sys
from pathlib import Path
from typing import List, Optional

import click
import cv2
import numpy as np
import onnxruntime as ort
import typer

from visionkit import __version__
from visionkit.config import get_settings
from visionkit.contract import ToolError, ToolResponse, emit, run_tool
from visionkit.detection.detector import TextDetector
from visionkit.errors import ImageReadError, InvalidBoxError, ModelLoadError
from visionkit.geometry.boxes import BoxFormat, box_iou, convert_boxes, to_pixel_boxes, validate_boxes
from visionkit.geometry.mapping import iter_tiles, local_to_global
from visionkit.logs import configure_logging
from visionkit.runtime.session import select_providers
from visionkit.utils import maybe_download

app = typer.Typer(
    name="visionkit",
    help="Computer vision tooling with JSON output",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit if --version flag is provided."""
    if value:
        typer.echo(f"visionkit version {__version__}")
        raise typer.Exit()


def parse_numbers(text: str, count: int, what: str) -> list[float]:
    try:
        values = [float(part.strip()) for part in text.split(",")]
    except ValueError:
        raise InvalidBoxError(f"Could not parse {what} {text!r}: expected numbers separated by commas")
    if len(values) != count:
        raise InvalidBoxError(f"{what.capitalize()} {text!r} must have exactly {count} values, got {len(values)}")
    return values


def parse_boxes(texts: List[str]) -> np.ndarray:
    return np.asarray([parse_numbers(text, 4, "box") for text in texts], dtype=np.float64)


def finish(tool: str, fn) -> None:
    response, exit_code = run_tool(tool, fn)
    emit(response)
    if exit_code:
        raise typer.Exit(exit_code)


@app.callback()
def setup(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    response, exit_code = run_tool(
        ctx.invoked_subcommand or "visionkit",
        lambda: configure_logging("DEBUG" if verbose else get_settings().log_level),
    )
    if exit_code:
        emit(response)
        raise typer.Exit(exit_code)


@app.command()
def convert(
    boxes: List[str] = typer.Argument(..., help="Boxes as 'a,b,c,d'"),
    src: BoxFormat = typer.Option(BoxFormat.XYXY, "--src", "-s", help="Input box format"),
    dst: BoxFormat = typer.Option(BoxFormat.XYWH, "--dst", "-d", help="Output box format"),
) -> None:
    """
    Convert boxes between xyxy, xywh and cxcywh.

    \b
    Example:
        visionkit convert 10,20,50,80 --src xyxy --dst cxcywh
    """

    def run():
        parsed = parse_boxes(boxes)
        validate_boxes(convert_boxes(parsed, src, BoxFormat.XYXY))
        converted = convert_boxes(parsed, src, dst)
        return {"src": src.value, "dst": dst.value, "boxes": converted.tolist()}

    finish("convert", run)


@app.command()
def iou(
    box_a: str = typer.Argument(..., help="First xyxy box as 'x1,y1,x2,y2'"),
    box_b: str = typer.Argument(..., help="Second xyxy box as 'x1,y1,x2,y2'"),
) -> None:
    """Intersection over union of two xyxy boxes."""

    def run():
        a, b = parse_boxes([box_a, box_b])
        return {"iou": box_iou(a, b)}

    finish("iou", run)


@app.command("to-global")
def to_global(
    boxes: List[str] = typer.Argument(..., help="Local xyxy boxes as 'x1,y1,x2,y2'"),
    offset: str = typer.Option(..., "--offset", "-o", help="Region origin as 'x,y'"),
    pixels: bool = typer.Option(False, "--pixels", help="Snap output to integer pixels"),
) -> None:
    """
    Map boxes found inside a crop back to full-image coordinates.

    \b
    Example:
        visionkit to-global 10,20,30,40 --offset 100,200
    """

    def run():
        dx, dy = parse_numbers(offset, 2, "offset")
        mapped = local_to_global(parse_boxes(boxes), offset=(dx, dy))
        if pixels:
            mapped = to_pixel_boxes(mapped)
        return {"offset": [dx, dy], "boxes": mapped.tolist()}

    finish("to-global", run)


@app.command()
def tiles(
    width: int = typer.Argument(..., help="Image width in pixels"),
    height: int = typer.Argument(..., help="Image height in pixels"),
    tile_size: int = typer.Option(640, "--tile-size", "-t", help="Square tile edge in pixels"),
    overlap: int = typer.Option(64, "--overlap", help="Overlap between neighbouring tiles"),
) -> None:
    """List overlapping tile regions covering an image."""

    def run():
        regions = [tile.to_dict() for tile in iter_tiles(width, height, tile_size, overlap)]
        return {"count": len(regions), "tiles": regions}

    finish("tiles", run)


@app.command()
def providers(
    prefer: Optional[List[str]] = typer.Option(
        None, "--prefer", "-p", help="Preferred execution provider (repeatable)"
    ),
) -> None:
    """Show which onnxruntime execution providers would be used."""

    def run():
        preferred = prefer or get_settings().provider_list()
        return {
            "available": ort.get_available_providers(),
            "selected": select_providers(preferred),
        }

    finish("providers", run)


@app.command()
def detect(
    image: Path = typer.Argument(..., help="Image file to scan for text"),
    model: Optional[Path] = typer.Option(None, "--model", "-m", help="DB text detection ONNX model"),
    model_url: Optional[str] = typer.Option(
        None, "--model-url", help="Download the model from this URL if --model is not given"
    ),
    box_thresh: Optional[float] = typer.Option(None, "--box-thresh", min=0.0, max=1.0),
    unclip_ratio: Optional[float] = typer.Option(None, "--unclip-ratio", min=0.0),
    prefer: Optional[List[str]] = typer.Option(
        None, "--prefer", "-p", help="Preferred execution provider (repeatable)"
    ),
) -> None:
    """
    Detect text regions and print their polygons and boxes.

    \b
    Example:
        visionkit detect page.png --model det.onnx
    """

    def run():
        settings = get_settings()
        model_path = model
        if model_path is None:
            if model_url is None:
                raise ModelLoadError("No model given, pass --model or --model-url")
            model_path = maybe_download(model_url, settings.models_dir)

        bgr = cv2.imread(str(image), cv2.IMREAD_COLOR)
        if bgr is None:
            raise ImageReadError(f"Could not read image {image}", details={"path": str(image)})
        rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)

        config = settings.get_detector_config()
        if box_thresh is not None:
            config["box_thresh"] = box_thresh
        if unclip_ratio is not None:
            config["unclip_ratio"] = unclip_ratio

        detector = TextDetector.from_model_path(
            model_path,
            providers=prefer or settings.provider_list(),
            intra_op_threads=settings.intra_op_threads,
            inter_op_threads=settings.inter_op_threads,
            graph_optimization=settings.graph_optimization,
            with_crops=False,
            **config,
        )
        detections = detector.predict(rgb)
        height, width = rgb.shape[:2]
        return {
            "image": {"path": str(image), "width": width, "height": height},
            "count": len(detections),
            "detections": [detection.to_dict() for detection in detections],
        }

    finish("detect", run)


def usage_error(tool: str, message: str) -> ToolResponse:
    return ToolResponse(
        ok=False,
        tool=tool,
        error=ToolError(code="invalid_argument", message=message),
    )


def main() -> None:
    """
    Console script entry point.

    Click reports usage errors as text with exit code 2. Here they are printed
    to stderr as usual and answered with an ``invalid_argument`` envelope and
    exit code 1, like any other rejected input.
    """
    try:
        exit_code = app(prog_name="visionkit", standalone_mode=False)
    except click.exceptions.UsageError as e:
        e.show()
        tool = e.ctx.info_name if e.ctx is not None else "visionkit"
        emit(usage_error(tool, e.format_message()))
        sys.exit(1)
    except click.exceptions.Abort:
        emit(usage_error("visionkit", "Aborted"))
        sys.exit(1)
    sys.exit(exit_code or 0)


if __name__ == "__main__":
    main()
