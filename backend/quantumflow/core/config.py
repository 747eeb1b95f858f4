"""
QuantumFlow — Backend Configuration
Loads .env automatically, then reads all settings from environment variables.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from quantumflow.pdf.layout import PAPER_SIZES

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass(frozen=True)
class LayoutConfig:
    """Fixed page geometry shared by every page of every run."""
    paper: str
    margin: float
    default_quality: float


@dataclass(frozen=True)
class LimitsConfig:
    """Admission limits applied per session."""
    max_images: int
    max_file_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    host: str
    port: int
    debug: bool
    layout: LayoutConfig
    limits: LimitsConfig
    output_prefix: str


def _load_config() -> AppConfig:
    return AppConfig(
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8000")),
        debug=os.getenv("APP_DEBUG", "false").lower() == "true",
        layout=LayoutConfig(
            paper=os.getenv("QF_PAPER_FORMAT", "A4").upper(),
            margin=float(os.getenv("QF_PAGE_MARGIN", "10")),
            default_quality=float(os.getenv("QF_DEFAULT_QUALITY", "0.8")),
        ),
        limits=LimitsConfig(
            max_images=int(os.getenv("QF_MAX_IMAGES", "20")),
            max_file_bytes=int(float(os.getenv("QF_MAX_FILE_MB", "10")) * 1024 * 1024),
        ),
        output_prefix=os.getenv("QF_OUTPUT_PREFIX", "QuantumFlow"),
    )


def _config_problems(cfg: AppConfig) -> list[str]:
    problems: list[str] = []
    paper = PAPER_SIZES.get(cfg.layout.paper)
    if paper is None:
        problems.append(
            f"QF_PAPER_FORMAT={cfg.layout.paper} (known: {', '.join(sorted(PAPER_SIZES))})"
        )
    elif cfg.layout.margin < 0 or 2 * cfg.layout.margin >= min(paper):
        problems.append(f"QF_PAGE_MARGIN={cfg.layout.margin:g} leaves no printable area")
    if not 0.0 <= cfg.layout.default_quality <= 1.0:
        problems.append(f"QF_DEFAULT_QUALITY={cfg.layout.default_quality:g} is outside [0, 1]")
    if cfg.limits.max_images < 1:
        problems.append(f"QF_MAX_IMAGES={cfg.limits.max_images} must be at least 1")
    if cfg.limits.max_file_bytes < 1:
        problems.append("QF_MAX_FILE_MB must be positive")
    return problems


def _validate_config(cfg: AppConfig) -> None:
    """Fail fast on a page/margin/limit combination the pipeline cannot honour."""
    problems = _config_problems(cfg)
    if problems:
        print(
            f"\n  ERROR: Invalid configuration:\n    " + "\n    ".join(problems) + "\n"
            f"  Fix the values in .env or the environment and restart.\n",
            file=sys.stderr,
        )
        sys.exit(1)


settings = _load_config()
_validate_config(settings)
