"""
Model registry: resolve the default PP-OCR weights from the HuggingFace hub.

huggingface_hub handles caching, resumable downloads, and integrity checks,
so a file is only fetched the first time it is asked for.

Usage:
    from onnx_ppocr.models import registry

    path = registry.get("paddle_ocr", "detector")   # download + resolve
    print(registry.status())                         # show what's cached
"""

from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from ..errors import ConfigurationError

HF_REPO = "hpllduck/PaperStructure"

# group -> file key -> (path inside the repo, what it is)
DEFAULT_MODELS: Dict[str, Dict[str, Tuple[str, str]]] = {
    "paddle_ocr": {
        "detector": ("paddle_ocr/det.onnx", "DB text detector"),
        "classifier": ("paddle_ocr/cls.onnx", "0/180 degree line classifier"),
        "recognizer": ("paddle_ocr/rec.onnx", "CTC text recognizer"),
        "dictionary": ("paddle_ocr/ppocrv5_dict.txt", "recognizer character set"),
    },
}


class ModelRegistry:
    """Maps (group, key) names onto files of one HuggingFace repo."""

    def __init__(
        self,
        repo_id: str = HF_REPO,
        models: Optional[Mapping[str, Mapping[str, Tuple[str, str]]]] = None,
    ):
        self._repo_id = repo_id
        self._models = DEFAULT_MODELS if models is None else models

    @property
    def repo_id(self) -> str:
        return self._repo_id

    def get(self, group: str, key: str) -> Path:
        """Return the local path for a model file, downloading if needed.

        Raises:
            ConfigurationError: for unknown names or failed downloads
        """
        return self._download(self._filename(group, key))

    def status(self) -> str:
        """Return a human-readable report of which files are already cached."""
        lines = [f"Models from hf://{self._repo_id}"]
        for group, files in self._models.items():
            lines.append(f"{group}:")
            for key, (filename, description) in files.items():
                cached = self._find_cached(filename)
                mark = "cached" if cached is not None else "missing"
                where = cached if cached is not None else filename
                lines.append(f"  [{mark:>7}] {key:<12} {description:<30} {where}")
        return "\n".join(lines)

    def _filename(self, group: str, key: str) -> str:
        if group not in self._models:
            raise ConfigurationError(
                f"Unknown model group '{group}'. Available: {', '.join(self._models)}"
            )
        files = self._models[group]
        if key not in files:
            raise ConfigurationError(
                f"Unknown file '{key}' in group '{group}'. Available: {', '.join(files)}"
            )
        return files[key][0]

    def _download(self, filename: str) -> Path:
        from huggingface_hub import hf_hub_download
        from huggingface_hub.errors import (
            EntryNotFoundError,
            HfHubHTTPError,
            LocalEntryNotFoundError,
        )

        try:
            local = hf_hub_download(self._repo_id, filename)
        except (EntryNotFoundError, LocalEntryNotFoundError, HfHubHTTPError, OSError) as e:
            raise ConfigurationError(
                f"Could not fetch hf://{self._repo_id}/{filename}: {e}"
            ) from e
        return Path(local)

    def _find_cached(self, filename: str) -> Optional[Path]:
        from huggingface_hub import try_to_load_from_cache

        result = try_to_load_from_cache(self._repo_id, filename)
        if isinstance(result, str):
            return Path(result)
        return None


registry = ModelRegistry()
