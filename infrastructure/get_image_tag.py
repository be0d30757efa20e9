#!/usr/bin/env python3
"""
Content-based tag for the shared Lambda image.

Run it when pushing an image and save the output to
``infrastructure/image_tag.txt``; the Pulumi program reads that file, or
calls this itself when it is missing, so the image and the functions
that run it agree on the tag.
"""

import hashlib
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent

SOURCE_FILES = ["Dockerfile", "pyproject.toml", "main.py", "authorizer.py"]
SOURCE_PACKAGES = ["handlers", "models", "services", "utils"]


def source_paths():
    """Files whose content ends up in the image, in a stable order."""
    paths = [ROOT / name for name in SOURCE_FILES]
    for package in SOURCE_PACKAGES:
        paths.extend(sorted((ROOT / package).rglob("*.py")))
    return [path for path in paths if path.is_file()]


def get_content_hash(with_timestamp: bool = True) -> str:
    """``20260101-120000-1a2b3c4d``; the hash part only changes with the sources."""
    digest = hashlib.sha256()
    for path in source_paths():
        digest.update(str(path.relative_to(ROOT)).encode())
        digest.update(path.read_bytes())

    tag = digest.hexdigest()[:8]
    if not with_timestamp:
        return tag
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S')}-{tag}"


if __name__ == "__main__":
    print(get_content_hash())
