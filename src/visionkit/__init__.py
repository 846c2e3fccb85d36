from pathlib import Path

__version__ = "0.1.0"

MODELS_DIR = Path.home() / ".cache" / "visionkit"
