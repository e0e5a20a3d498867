"""
Settings for the repair engine, the batch operation and the HTTP service.

Values come from `MERMAID_MENDER_*` environment variables, falling back to
the defaults below.
"""

import os
from typing import Literal, Optional
from pydantic import BaseModel

from .validation import GrammarParser, HttpRendererParser, MermaidCliParser, ValidityChecker

ENV_PREFIX = "MERMAID_MENDER_"


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(ENV_PREFIX + name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class MenderSettings(BaseModel):
    """Runtime configuration."""
    parser: Literal["none", "mmdc", "http"] = "none"
    mmdc_path: str = "mmdc"
    renderer_url: str = "https://kroki.io"
    request_timeout: float = 30.0
    deep_repair: bool = True
    fix_latex_delimiters: bool = True
    move_error_files: bool = False
    error_folder: str = "mermaid-errors"
    write_error_report: bool = False
    host: str = "127.0.0.1"
    port: int = 8766

    @classmethod
    def from_env(cls) -> "MenderSettings":
        """Build settings from the environment."""
        defaults = cls()
        return cls(
            parser=os.environ.get(ENV_PREFIX + "PARSER", defaults.parser),
            mmdc_path=os.environ.get(ENV_PREFIX + "MMDC_PATH", defaults.mmdc_path),
            renderer_url=os.environ.get(ENV_PREFIX + "RENDERER_URL", defaults.renderer_url),
            request_timeout=float(os.environ.get(ENV_PREFIX + "TIMEOUT", defaults.request_timeout)),
            deep_repair=_env_bool("DEEP_REPAIR", defaults.deep_repair),
            fix_latex_delimiters=_env_bool("FIX_LATEX", defaults.fix_latex_delimiters),
            move_error_files=_env_bool("MOVE_ERROR_FILES", defaults.move_error_files),
            error_folder=os.environ.get(ENV_PREFIX + "ERROR_FOLDER", defaults.error_folder),
            write_error_report=_env_bool("ERROR_REPORT", defaults.write_error_report),
            host=os.environ.get(ENV_PREFIX + "HOST", defaults.host),
            port=int(os.environ.get(ENV_PREFIX + "PORT", defaults.port)),
        )


def build_parser(settings: MenderSettings) -> Optional[GrammarParser]:
    """Grammar parser selected by the settings, or None when disabled."""
    if settings.parser == "mmdc":
        return MermaidCliParser(settings.mmdc_path, timeout=settings.request_timeout)
    if settings.parser == "http":
        return HttpRendererParser(settings.renderer_url, timeout=settings.request_timeout)
    return None


def build_checker(settings: MenderSettings) -> Optional[ValidityChecker]:
    parser = build_parser(settings)
    return ValidityChecker(parser) if parser is not None else None
