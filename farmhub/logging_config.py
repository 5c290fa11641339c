# farmhub/logging_config.py
import logging


def setup_logging(level: str = "INFO") -> None:
    """
    Attach a console handler to the root logger, once.
    Repeated calls (tests, app factories) are no-ops.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
