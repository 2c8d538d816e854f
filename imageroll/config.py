"""Reads and writes the ImageRoll settings file (INI format)."""

import configparser
import logging
from pathlib import Path
from typing import Optional

from imageroll.logging_setup import get_app_data_dir

log = logging.getLogger(__name__)

CONFIG_FILE_NAME = "imageroll.ini"

DEFAULT_CONFIG = {
    "core": {
        "cache_size_mb": "512",  # Decoded buffers kept for images that are off-screen
    },
    "preview": {
        "initial_size": "Fit screen",  # A preview label: "Fit screen", "100%", "50%", ...
    },
    "save": {
        "jpeg_quality": "100",
        "png_compress_level": "9",
    },
}


class AppConfig:
    """Settings backed by an INI file, filled in with defaults for anything missing."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or get_app_data_dir() / CONFIG_FILE_NAME
        self.config = configparser.ConfigParser()
        self.load()

    def load(self):
        self.config.read_dict(DEFAULT_CONFIG)
        if self.config_path.exists():
            log.info(f"Reading settings from {self.config_path}")
            try:
                # Values from the file override the defaults read above
                self.config.read(self.config_path)
            except configparser.Error as e:
                log.error(f"Ignoring malformed settings file {self.config_path}: {e}")
        else:
            log.info(f"No settings file yet, writing defaults to {self.config_path}")
        # Persist so that keys added in newer versions show up in the file
        self.save()

    def save(self):
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w") as f:
                self.config.write(f)
        except OSError as e:
            log.error(f"Could not write settings to {self.config_path}: {e}")
            return
        log.debug(f"Settings written to {self.config_path}")

    def get(self, section, key, fallback=None):
        return self.config.get(section, key, fallback=fallback)

    def getint(self, section, key, fallback=None):
        try:
            return self.config.getint(section, key, fallback=fallback)
        except ValueError:
            log.warning(f"[{section}] {key} is not an integer, using {fallback}")
            return fallback

    def set(self, section, key, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, str(value))


config = AppConfig()
