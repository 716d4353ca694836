"""
Feature cog loader.

Discovers every ``*_cog.py`` module under ``src/features/`` and loads it as
a discord.py extension. A cog that fails to import or set up is logged and
skipped; the remaining cogs still load.
"""

from __future__ import annotations

import asyncio
import importlib
import pkgutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.logging.logger import get_logger

if TYPE_CHECKING:
    from discord.ext import commands

    from src.core.config.config_manager import ConfigManager

logger = get_logger(__name__)


@dataclass
class LoadResult:
    name: str
    success: bool
    duration_ms: float
    error: Optional[Exception] = None
    error_type: Optional[str] = None


class FeatureLoader:
    BASE_PATH: Path = Path(__file__).parent.parent / "features"
    BASE_PACKAGE: str = "src.features"
    COG_SUFFIX: str = "_cog"

    def __init__(self, bot: commands.Bot, config_manager: ConfigManager) -> None:
        self.bot = bot
        self.load_results: List[LoadResult] = []
        self.load_timeout_seconds = float(config_manager.get("bot.feature_load_timeout_seconds", 30.0))

    async def load_all_features(self) -> Dict[str, Any]:
        start_time = time.perf_counter()
        cog_names = self._discover_cogs()
        if not cog_names:
            logger.warning("No cog files discovered", extra={"base_path": str(self.BASE_PATH)})
            return self._build_stats(start_time)

        logger.info("Discovered feature cogs", extra={"count": len(cog_names), "cogs": cog_names})
        self.load_results = [await self._load_cog(name) for name in cog_names]

        stats = self._build_stats(start_time)
        logger.info(
            "Feature cogs loaded",
            extra={key: stats[key] for key in ("discovered", "loaded", "failed", "total_time_ms")},
        )
        return stats

    def _discover_cogs(self) -> List[str]:
        return sorted(
            name
            for _, name, ispkg in pkgutil.walk_packages([str(self.BASE_PATH)], prefix=f"{self.BASE_PACKAGE}.")
            if not ispkg and name.endswith(self.COG_SUFFIX)
        )

    @staticmethod
    def _validate_cog(extension_name: str) -> Optional[Exception]:
        try:
            module = importlib.import_module(extension_name)
        except ImportError as exc:
            return ImportError(f"Cannot import module: {exc}")
        if not callable(getattr(module, "setup", None)):
            return ValueError("Missing required setup() function")
        return None

    async def _load_cog(self, extension_name: str) -> LoadResult:
        start_time = time.perf_counter()

        validation_error = self._validate_cog(extension_name)
        if validation_error is not None:
            logger.error(
                "Cog validation failed",
                extra={"cog_name": extension_name, "error": str(validation_error)},
            )
            return LoadResult(extension_name, False, 0.0, validation_error, type(validation_error).__name__)

        try:
            await asyncio.wait_for(self.bot.load_extension(extension_name), timeout=self.load_timeout_seconds)
        except asyncio.TimeoutError:
            error = TimeoutError(f"Cog loading exceeded {self.load_timeout_seconds}s timeout")
            logger.error("Cog load timeout", extra={"cog_name": extension_name})
            return LoadResult(extension_name, False, self._elapsed(start_time), error, "TimeoutError")
        except Exception as exc:
            logger.error(
                "Failed to load cog",
                extra={"cog_name": extension_name, "error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )
            return LoadResult(extension_name, False, self._elapsed(start_time), exc, type(exc).__name__)

        duration_ms = self._elapsed(start_time)
        logger.info("Cog loaded", extra={"cog_name": extension_name, "duration_ms": round(duration_ms, 2)})
        return LoadResult(extension_name, True, duration_ms)

    @staticmethod
    def _elapsed(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    def _build_stats(self, start_time: float) -> Dict[str, Any]:
        failed = [result for result in self.load_results if not result.success]
        return {
            "total_time_ms": round(self._elapsed(start_time), 2),
            "discovered": len(self.load_results),
            "loaded": len(self.load_results) - len(failed),
            "failed": len(failed),
            "failures": {result.name: result.error_type for result in failed},
            "results": self.load_results,
        }
