import logging
import sys

logger = logging.getLogger("gcemeta")


def configure_logging(log_level: int) -> None:
    logger.setLevel(log_level)
    formatter = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d|%(levelname)s|%(name)s:%(module)s:%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)
    logger.handlers = []
    logger.addHandler(handler)
    logger.propagate = False

    # Cleanup logging
    logging.getLogger("urllib3").setLevel(log_level)
    logging.getLogger("urllib3").handlers = []
    logging.getLogger("urllib3").addHandler(handler)
    logging.getLogger("urllib3").propagate = False
