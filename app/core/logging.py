import logging
import sys

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=_FORMAT, stream=sys.stdout)
    root.setLevel(level.upper())
    # httpx logs every request at INFO; keep it for debugging only
    logging.getLogger("httpx").setLevel(logging.WARNING)
