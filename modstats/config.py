"""
Paths, logging setup, settings.cfg load/save.

settings.cfg is a plain ``key = value`` file with ``//`` comment lines:

    // To disable ModStatistics, uncomment the line below.
    // disabled = true
    id = 3f2a...
"""

import sys
import uuid
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import COMPONENT_NAME, LOG_MAX_BYTES


# ─── Paths ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class PluginPaths:
    """Everything the plugin writes lives in GameData/ModStatistics/."""

    folder: Path

    @classmethod
    def for_root(cls, root_path):
        return cls(Path(root_path) / "GameData" / COMPONENT_NAME)

    @property
    def config_file(self) -> Path:
        return self.folder / "settings.cfg"

    @property
    def log_file(self) -> Path:
        return self.folder / "modstats.log"


# ─── Logging ─────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

log = logging.getLogger("modstats")
log.setLevel(logging.INFO)


def setup_logging(log_file):
    """Attach file + stdout handlers to the package logger.

    Only the ``modstats`` logger is touched, never the host's root logger.
    Handlers from a previous call are replaced.
    """
    log_file = Path(log_file)
    try:
        if log_file.exists() and log_file.stat().st_size > LOG_MAX_BYTES:
            log_file.write_text("")
    except OSError:
        pass

    for handler in [h for h in log.handlers if getattr(h, "_modstats", False)]:
        log.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setFormatter(formatter)
    file_handler._modstats = True
    log.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    console_handler._modstats = True
    log.addHandler(console_handler)


# ─── Settings ────────────────────────────────────────────────────

@dataclass
class Configuration:
    # None means missing or unparsable; the caller generates a fresh one.
    id: Optional[uuid.UUID] = None
    disabled: bool = False
    # None = the player has not decided yet.
    update: Optional[bool] = None


def _parse_bool(value):
    if value is None:
        return None
    token = value.strip().lower()
    if token == "true":
        return True
    if token == "false":
        return False
    return None


def parse_config(text):
    """Parse settings.cfg text into a Configuration."""
    values = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("//") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip()

    config = Configuration(
        disabled=bool(_parse_bool(values.get("disabled"))),
        update=_parse_bool(values.get("update")),
    )
    try:
        config.id = uuid.UUID(hex=values["id"])
    except (KeyError, ValueError):
        log.warning("Could not parse ID")
    return config


def load_config(path):
    """Load settings.cfg. Returns a Configuration, or None if there is no file.

    A file that is not valid UTF-8 loads as defaults with no id, so the
    caller regenerates the id and rewrites the file.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        log.warning("Could not read %s: %s", path.name, e)
        return Configuration()
    return parse_config(text)


def format_config(config):
    lines = [
        "// To disable ModStatistics, uncomment the line below.",
        "disabled = true" if config.disabled else "// disabled = true",
    ]
    if config.update is None:
        lines.append("// update = true")
    else:
        lines.append("update = %s" % ("true" if config.update else "false"))
    lines.append("id = %s" % config.id.hex)
    return "\n".join(lines) + "\n"


def save_config(path, config):
    """Write settings.cfg."""
    Path(path).write_text(format_config(config), encoding="utf-8")
    log.info("Configuration saved to %s", path)
