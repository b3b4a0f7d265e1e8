"""Signal handling and leftover file cleanup for export runs."""

from __future__ import annotations

import logging
import signal
from pathlib import Path

from .cancel import CancellationToken
from .pipeline.writer import ARTIFACT_EXTENSION, TEMP_SUFFIX


def cleanup_partial_artifacts(output_dir: Path) -> int:
    """
    Remove temporary artifact files left behind by an interrupted run.

    Finished artifacts are never touched.

    Returns:
        Number of files removed
    """
    output_dir = Path(output_dir)
    if not output_dir.is_dir():
        return 0

    removed = 0
    for item in output_dir.glob(f"*.{ARTIFACT_EXTENSION}{TEMP_SUFFIX}"):
        try:
            item.unlink()
            removed += 1
            logging.debug(f"Removed partial artifact: {item}")
        except OSError as e:
            logging.warning(f"Could not remove partial artifact {item}: {e}")

    if removed:
        logging.info(f"Cleaned up {removed} partial artifacts in {output_dir}")
    return removed


def register_cancel_handlers(token: CancellationToken) -> None:
    """Cancel the run on SIGINT/SIGTERM; a second SIGINT falls back to KeyboardInterrupt."""
    def signal_handler(signum: int, frame) -> None:
        if token.cancelled and signum == signal.SIGINT:
            raise KeyboardInterrupt
        logging.warning(f"Received signal {signum}, cancelling export...")
        token.cancel()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
