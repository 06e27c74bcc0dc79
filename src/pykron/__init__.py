"""pykron - crontab-like schedules and async loops that wait for them."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("pykron")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from pykron.cron import (
    KronScheduler,
    build_schedule,
    do_forever,
    do_once,
    do_while,
)

__all__ = ["KronScheduler", "build_schedule", "do_once", "do_while", "do_forever"]
