"""Zip packaging of a Lambda directory."""

import io
import zipfile
from pathlib import Path

CONFIG_BASENAME = "config"
EXCLUDED_DIRS = {"__pycache__", ".git", "events"}


def build_package(lambda_path: Path) -> bytes:
    """Zip the content of ``lambda_path`` in memory, without its config file."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(lambda_path.rglob("*")):
            relative = path.relative_to(lambda_path)
            if not path.is_file() or EXCLUDED_DIRS & set(relative.parts[:-1]):
                continue
            if len(relative.parts) == 1 and path.stem == CONFIG_BASENAME:
                continue
            archive.write(path, relative.as_posix())
    return buffer.getvalue()
