import logging
from pathlib import Path
from urllib.parse import urlparse

import requests
from tqdm import tqdm

from visionkit.errors import ModelLoadError

logger = logging.getLogger(__name__)


def _download_file(url: str, output_file: Path, timeout: float = 30.0) -> Path:
    response = requests.get(url, stream=True, timeout=timeout)
    response.raise_for_status()
    total_size = int(response.headers.get("content-length", 0))

    partial_file = output_file.with_suffix(output_file.suffix + ".part")
    with (
        open(partial_file, "wb") as file,
        tqdm(
            desc=output_file.name,
            total=total_size,
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
        ) as bar,
    ):
        for data in response.iter_content(chunk_size=1024):
            size = file.write(data)
            bar.update(size)
    partial_file.replace(output_file)
    return output_file


def maybe_download(url: str, output_dir: Path, file_name: str | None = None) -> Path:
    """
    Fetch ``url`` into ``output_dir`` unless the file is already there.
    """
    file_name = file_name or Path(urlparse(url).path).name
    if not file_name:
        raise ValueError(f"Cannot infer a file name from {url}")

    output_file = Path(output_dir) / file_name
    if output_file.exists():
        return output_file

    output_file.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading %s to %s", url, output_file)
    try:
        return _download_file(url, output_file)
    except requests.RequestException as e:
        output_file.with_suffix(output_file.suffix + ".part").unlink(missing_ok=True)
        raise ModelLoadError(f"Could not download {url}: {e}", details={"url": url}) from e
