"""Reading YAML configuration documents."""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from app_redis.exceptions.config import ConfigParseError


logger = logging.getLogger(__name__)


class YAMLLoader:
    """Reads a YAML document whose top level is a mapping."""

    def load(self, path: Union[str, Path]) -> Dict[str, Any]:
        """Read and parse a file.

        Returns:
            Top-level mapping; an empty file gives ``{}``

        Raises:
            ConfigParseError: The file cannot be read, is not YAML, or its
                top level is not a mapping
        """
        path = Path(path)
        logger.debug("Reading configuration file", extra={"path": str(path)})

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot read {path}: {e}", extra={"path": str(path)})
            raise ConfigParseError(
                message=f"Cannot read configuration file: {e.strerror or e}",
                config_file=str(path),
                original_error=e,
            ) from e

        return self.loads(text, source=str(path))

    def loads(self, text: str, source: str = "<string>") -> Dict[str, Any]:
        """Parse YAML text. ``source`` names it in errors."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            logger.error(
                f"Invalid YAML in {source}: {e}",
                extra={"path": source},
                exc_info=True,
            )
            raise ConfigParseError(
                message=f"Invalid YAML: {getattr(e, 'problem', None) or e}",
                config_file=source,
                line_number=mark.line + 1 if mark is not None else None,
                column_number=mark.column + 1 if mark is not None else None,
                original_error=e,
            ) from e

        if data is None:
            return {}

        if not isinstance(data, dict):
            raise ConfigParseError(
                message=f"Expected a mapping at the top level, got {type(data).__name__}",
                config_file=source,
            )

        logger.debug(
            "Configuration parsed",
            extra={"path": source, "sections": sorted(str(key) for key in data)},
        )
        return data
