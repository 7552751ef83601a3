import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure le logger racine (stdout) une seule fois.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    if not any(getattr(h, "_mathclicks", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._mathclicks = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    # httpx est très bavard en INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
