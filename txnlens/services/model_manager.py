"""
Model Store

Handles saving and loading of the sequence classifier's artifacts.
Weights are written with ``torch.save``; metadata, vocabulary and label map
are separate JSON files so they can be checked before weights are loaded.

Every load returns None when the artifact is missing or unreadable; failures
are logged and treated as "nothing persisted".
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import torch

logger = logging.getLogger(__name__)

WEIGHTS_FILE = "model.pt"
METADATA_FILE = "metadata.json"
VOCABULARY_FILE = "vocabulary.json"
LABEL_MAP_FILE = "label_map.json"


@dataclass
class ModelMetadata:
    version: int
    saved_at: str
    vocab_hash: str

    @staticmethod
    def create(version: int, vocab_hash: str) -> "ModelMetadata":
        return ModelMetadata(
            version=version,
            saved_at=datetime.utcnow().isoformat(),
            vocab_hash=vocab_hash,
        )


class ModelStore:
    """Manages model persistence - weights, metadata, vocabulary and label map"""

    def __init__(self, models_dir: str = "data/chatbot_model"):
        """
        Initialize ModelStore with storage directory.

        Args:
            models_dir: Directory path for storing model files
        """
        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.models_dir / name

    def _read_json(self, name: str) -> Optional[Any]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Error loading %s: %s", name, e)
            return None

    def _write_json(self, name: str, value: Any) -> bool:
        path = self._path(name)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
            return True
        except OSError as e:
            logger.error("Error saving %s: %s", name, e)
            return False

    # -- weights --------------------------------------------------------------

    def save_weights(self, state_dict: Dict[str, Any], config: Dict[str, Any]) -> bool:
        """
        Save model weights together with the architecture needed to rebuild it.

        Args:
            state_dict: ``nn.Module.state_dict()`` of the classifier
            config: Architecture parameters (vocab size, dims, label count, ...)
        """
        path = self._path(WEIGHTS_FILE)
        tmp_path = path.with_suffix(".pt.tmp")
        try:
            torch.save({"state_dict": state_dict, "config": config}, tmp_path)
            os.replace(tmp_path, path)
            return True
        except (OSError, RuntimeError) as e:
            logger.error("Error saving model weights: %s", e)
            return False

    def load_weights(self) -> Optional[Dict[str, Any]]:
        """Return ``{"state_dict", "config"}`` or None"""
        path = self._path(WEIGHTS_FILE)
        if not path.exists():
            return None
        try:
            payload = torch.load(path, map_location="cpu")
        except Exception as e:
            logger.warning("Error loading model weights: %s", e)
            return None
        if not isinstance(payload, dict) or "state_dict" not in payload or "config" not in payload:
            logger.warning("Model weights file has an unexpected layout, ignoring it")
            return None
        return payload

    # -- metadata -------------------------------------------------------------

    def save_metadata(self, metadata: ModelMetadata) -> bool:
        return self._write_json(METADATA_FILE, asdict(metadata))

    def load_metadata(self) -> Optional[ModelMetadata]:
        data = self._read_json(METADATA_FILE)
        if data is None:
            return None
        try:
            return ModelMetadata(
                version=int(data["version"]),
                saved_at=str(data["saved_at"]),
                vocab_hash=str(data["vocab_hash"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Model metadata is malformed: %s", e)
            return None

    # -- vocabulary / label map -----------------------------------------------

    def save_vocabulary(self, word_index: Dict[str, int]) -> bool:
        return self._write_json(VOCABULARY_FILE, word_index)

    def load_vocabulary(self) -> Optional[Dict[str, int]]:
        data = self._read_json(VOCABULARY_FILE)
        if data is not None and not isinstance(data, dict):
            logger.warning("Vocabulary file is not a mapping, ignoring it")
            return None
        return data

    def save_label_map(self, label_map: Dict[str, Any]) -> bool:
        return self._write_json(LABEL_MAP_FILE, label_map)

    def load_label_map(self) -> Optional[Dict[str, Any]]:
        data = self._read_json(LABEL_MAP_FILE)
        if data is not None and not isinstance(data, dict):
            logger.warning("Label map file is not a mapping, ignoring it")
            return None
        return data

    # -- housekeeping ---------------------------------------------------------

    def discard_model(self) -> None:
        """Remove persisted weights and metadata; vocabulary and label map stay"""
        for name in (WEIGHTS_FILE, METADATA_FILE):
            path = self._path(name)
            try:
                if path.exists():
                    path.unlink()
            except OSError as e:
                logger.error("Error deleting %s: %s", name, e)

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get information about the persisted model.

        Returns:
            Dictionary with metadata (or None) and which artifact files exist
        """
        metadata = self.load_metadata()
        return {
            "models_dir": str(self.models_dir),
            "metadata": asdict(metadata) if metadata else None,
            "files": {
                name: self._path(name).exists()
                for name in (WEIGHTS_FILE, METADATA_FILE, VOCABULARY_FILE, LABEL_MAP_FILE)
            },
        }
