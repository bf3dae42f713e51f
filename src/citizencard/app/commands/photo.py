"""Photo commands."""

from __future__ import annotations

import logging
from pathlib import Path

from citizencard.core.citizen import photo

lg = logging.getLogger(__name__)

_raw_commands: set[str] = {"photo_prepare", "photo_upload", "photo_download", "photo_info"}


def cmd_photo_prepare(runner, *, path: str, out: str = "") -> bool:
    """Compress an image file to fit the card (path=FILE [out=FILE])."""
    data = photo.compress_to_budget(photo.load_source(path), runner.budget)
    runner.info.photo = data
    lg.info("prepared %s", photo.describe(data))
    if out:
        Path(out).write_bytes(data)
        lg.info("saved to %s", out)
    return True


def cmd_photo_upload(runner, *, path: str = "") -> bool:
    """Store the prepared photo (or a ready JPEG file) on the card."""
    data = Path(path).read_bytes() if path else runner.info.photo
    if not data:
        lg.error("no photo prepared; run photo_prepare first")
        return False
    chunks = runner.session.upload_photo(data).result()
    lg.info("uploaded %d bytes in %d chunks", len(data), chunks)
    return True


def cmd_photo_download(runner, *, out: str = "") -> bool:
    """Read the photo stored on the card [out=FILE]."""
    data = runner.session.download_photo().result()
    if data is None:
        lg.warning("no photo stored on card")
        return False
    runner.info.photo = data
    lg.info("downloaded %s", photo.describe(data))
    if out:
        Path(out).write_bytes(data)
        lg.info("saved to %s", out)
    return True


def cmd_photo_info(runner, *, path: str = "") -> bool:
    """Describe the current photo or an image file."""
    data = Path(path).read_bytes() if path else runner.info.photo
    if not data:
        lg.error("no photo")
        return False
    lg.info("%s", photo.describe(data))
    return True
