# hareline/configs/config.py
import yaml
from pathlib import Path
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from hareline.schemas.source import GroupRecord, SourceDescriptor


class Config:
    """
    Configuration paths and catalogue loading for the pipeline.
    """

    # This points to hareline/configs/
    CONFIG_DIR = Path(__file__).parent.resolve()
    # This points to the project root
    PROJECT_ROOT = CONFIG_DIR.parent.parent

    SOURCES_CONFIG_PATH = CONFIG_DIR / "sources.yaml"

    @classmethod
    @lru_cache
    def load_raw_catalogue(cls, path: Optional[Path] = None) -> Dict[str, Any]:
        """Loads the YAML source/group catalogue."""
        config_path = Path(path) if path else cls.SOURCES_CONFIG_PATH
        if not config_path.exists():
            raise FileNotFoundError(f"Missing catalogue at {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def load_catalogue(
        cls, path: Optional[Path] = None
    ) -> Tuple[List[SourceDescriptor], List[GroupRecord]]:
        """
        Load sources and groups from a catalogue file.

        Args:
            path: Catalogue path; defaults to the bundled sources.yaml

        Returns:
            (sources, groups) parsed into their schema models
        """
        raw = cls.load_raw_catalogue(Path(path) if path else None)
        sources = [SourceDescriptor.model_validate(s) for s in raw.get("sources") or []]
        groups = [GroupRecord.model_validate(g) for g in raw.get("groups") or []]
        return sources, groups

    @classmethod
    def load_tag_patterns(cls, path: Optional[Path] = None) -> List[Tuple[str, str]]:
        """
        Catalogue-wide ``tagPatterns`` used by the resolver's last step.

        Each entry is a ``[pattern, shortName]`` pair, tried in order.
        """
        raw = cls.load_raw_catalogue(Path(path) if path else None)
        pairs: List[Tuple[str, str]] = []
        for entry in raw.get("tagPatterns") or []:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                raise ValueError(f"tagPatterns entries must be [pattern, shortName] pairs, got {entry!r}")
            pairs.append((str(entry[0]), str(entry[1])))
        return pairs
