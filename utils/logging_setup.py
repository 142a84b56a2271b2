import logging


def setup_logging(level_name: str = "INFO") -> None:
    """Configure console logging once; later calls only adjust the level."""
    level = getattr(logging, str(level_name or "INFO").upper(), logging.INFO)

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    console = logging.StreamHandler()
    console.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[console])

    # SQL echo is only useful when debugging queries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
