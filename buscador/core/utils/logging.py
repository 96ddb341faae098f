import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str, log_file: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """Logger with a stderr handler and an optional file handler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    streams = [h for h in logger.handlers if getattr(h, "_buscador_stream", False)]
    # sys.stderr may have been swapped (and the old one closed) since the
    # handler was created; drop stale handlers without flushing them.
    stale = [h for h in streams if h.stream is not sys.stderr]
    for h in stale:
        logger.removeHandler(h)
    if len(stale) == len(streams):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        stream._buscador_stream = True  # type: ignore[attr-defined]
        logger.addHandler(stream)

    if log_file:
        target = str(Path(log_file).resolve())
        existing = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        # One file handler per logger; a new target replaces the old one.
        for h in existing:
            if h.baseFilename != target:
                logger.removeHandler(h)
                h.close()
        if not any(h.baseFilename == target for h in logger.handlers if isinstance(h, logging.FileHandler)):
            try:
                Path(target).parent.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(target, encoding="utf-8")
                fh.setFormatter(formatter)
                logger.addHandler(fh)
            except OSError as e:
                logger.warning("File logging disabled (%s): %s", target, e)

    return logger


def setup_global_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler(sys.stderr)]
    file_error = None
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            file_error = e
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    if file_error is not None:
        logging.getLogger(__name__).warning("File logging disabled (%s): %s", log_file, file_error)
