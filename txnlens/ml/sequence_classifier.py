"""
Sequence Classifier

On-device category classifier for short transaction notes:
Embedding -> LSTM -> Dropout -> Linear, softmax over category labels.

Weight reads (predict) and writes (fit, model swap) on one instance are
serialized by a per-instance asyncio.Lock; torch work runs in a worker thread.
``weights_version`` increments after every optimizer step or model swap.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import torch
import torch.nn as nn
from torch.nn.utils.rnn import pack_padded_sequence

from txnlens.core.exceptions import TrainingCancelledError, UnknownCategoryError
from txnlens.ml.tokenizer import OOV_ID, PAD_ID, Vocabulary
from txnlens.services.model_manager import ModelMetadata, ModelStore

logger = logging.getLogger(__name__)

CategoryLoader = Callable[[], Awaitable[List[Dict[str, Any]]]]


class SequenceClassifierNet(nn.Module):
    """Token-id sequence -> category logits"""

    def __init__(self, vocab_size: int, num_labels: int,
                 embedding_dim: int = 32, hidden_units: int = 64, dropout: float = 0.15):
        super().__init__()
        self.vocab_size = vocab_size
        self.num_labels = num_labels
        self.embedding_dim = embedding_dim
        self.hidden_units = hidden_units

        self.embedding = nn.Embedding(vocab_size, embedding_dim, padding_idx=PAD_ID)
        self.lstm = nn.LSTM(embedding_dim, hidden_units, batch_first=True)
        self.dropout = nn.Dropout(dropout)
        self.classifier = nn.Linear(hidden_units, num_labels)

    def forward(self, token_ids: torch.Tensor) -> torch.Tensor:
        # Sequences are right-padded; an all-padding row still gets one step
        lengths = (token_ids != PAD_ID).sum(dim=1).clamp(min=1).cpu()
        embedded = self.embedding(token_ids)
        packed = pack_padded_sequence(embedded, lengths, batch_first=True, enforce_sorted=False)
        _, (hidden, _) = self.lstm(packed)
        return self.classifier(self.dropout(hidden[-1]))

    def config(self) -> Dict[str, int]:
        return {
            "vocab_size": self.vocab_size,
            "num_labels": self.num_labels,
            "embedding_dim": self.embedding_dim,
            "hidden_units": self.hidden_units,
        }

    def expand_labels(self, num_labels: int) -> None:
        """Widen the output layer, keeping the rows of existing labels"""
        if num_labels <= self.num_labels:
            return
        old = self.classifier
        new = nn.Linear(self.hidden_units, num_labels)
        with torch.no_grad():
            new.weight[: old.out_features] = old.weight
            new.bias[: old.out_features] = old.bias
        self.classifier = new
        self.num_labels = num_labels


@dataclass
class TrainingSample:
    text: str
    label_index: int


@dataclass
class ClassifierPrediction:
    category_id: str
    category_name: str
    confidence: float
    label_index: int
    weights_version: int


class CategoryIndexMap:
    """
    Append-only mapping between label indices and category ids.

    New categories take the next free index; an existing index never moves.
    """

    def __init__(self):
        self._ids: List[str] = []
        self._index: Dict[str, int] = {}
        self._names: Dict[str, str] = {}

    def register(self, category_id: str, name: Optional[str] = None) -> int:
        category_id = str(category_id)
        if name:
            self._names[category_id] = name
        if category_id in self._index:
            return self._index[category_id]
        self._index[category_id] = len(self._ids)
        self._ids.append(category_id)
        return self._index[category_id]

    def index_of(self, category_id: str) -> Optional[int]:
        return self._index.get(str(category_id))

    def category_for(self, index: int) -> Optional[str]:
        if 0 <= index < len(self._ids):
            return self._ids[index]
        return None

    def name_for(self, category_id: str) -> Optional[str]:
        return self._names.get(str(category_id))

    def refresh(self, categories: Iterable[Dict[str, Any]]) -> int:
        """Append categories not seen before (ordered by name); returns how many were added"""
        unseen: List[Tuple[str, str]] = []
        for c in categories:
            cid = c.get("_id", c.get("id"))
            if cid is None:
                continue
            cid = str(cid)
            name = c.get("name") or cid
            if cid in self._index:
                self._names.setdefault(cid, name)
            else:
                unseen.append((name, cid))
        for name, cid in sorted(unseen):
            self.register(cid, name)
        return len(unseen)

    def __len__(self) -> int:
        return len(self._ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "labels": [
                {"index": i, "category_id": cid, "name": self._names.get(cid)}
                for i, cid in enumerate(self._ids)
            ]
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CategoryIndexMap":
        m = CategoryIndexMap()
        for entry in sorted(data.get("labels", []), key=lambda e: int(e["index"])):
            m.register(entry["category_id"], entry.get("name"))
        return m


class SequenceClassifier:
    """Async front of the classifier network: load, predict, fit, persist"""

    def __init__(
        self,
        store: ModelStore,
        category_index: Optional[CategoryIndexMap] = None,
        category_loader: Optional[CategoryLoader] = None,
        max_sequence_length: int = 16,
        embedding_dim: int = 32,
        hidden_units: int = 64,
        learning_rate: float = 0.001,
        epochs: int = 6,
        max_batch_size: int = 32,
        seed: Optional[int] = None,
    ):
        self.store = store
        self.category_index = category_index or CategoryIndexMap()
        self.category_loader = category_loader
        self.max_sequence_length = max_sequence_length
        self.embedding_dim = embedding_dim
        self.hidden_units = hidden_units
        self.learning_rate = learning_rate
        self.epochs = epochs
        self.max_batch_size = max_batch_size
        self.seed = seed

        self.model: Optional[SequenceClassifierNet] = None
        self.vocabulary: Optional[Vocabulary] = None
        self.weights_version = 0
        self.model_version = 0
        self._optimizer: Optional[torch.optim.Optimizer] = None
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        return self.model is not None and self.vocabulary is not None

    # -------------------------------------------------------------------------
    # Loading / persistence
    # -------------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Load persisted artifacts; returns whether the classifier is ready"""
        async with self._lock:
            await asyncio.to_thread(self._load_from_store)
        logger.info("Sequence classifier initialized (ready=%s)", self.is_ready)
        return self.is_ready

    def _load_from_store(self) -> None:
        word_index = self.store.load_vocabulary()
        if word_index:
            self.vocabulary = Vocabulary.from_dict(word_index)

        label_map = self.store.load_label_map()
        if label_map:
            self.category_index = CategoryIndexMap.from_dict(label_map)

        payload = self.store.load_weights()
        if payload is None:
            return
        metadata = self.store.load_metadata()
        config = payload["config"]

        if self.vocabulary is None or metadata is None:
            logger.warning("Persisted model has no matching vocabulary/metadata, discarding it")
            self.store.discard_model()
            return
        if metadata.vocab_hash != self.vocabulary.hash():
            logger.warning("Vocabulary hash mismatch for persisted model, discarding it")
            self.store.discard_model()
            return
        if config.get("max_sequence_length") != self.max_sequence_length:
            logger.warning(
                "Persisted model uses sequence length %s (configured %s), discarding it",
                config.get("max_sequence_length"), self.max_sequence_length,
            )
            self.store.discard_model()
            return

        try:
            net = SequenceClassifierNet(
                vocab_size=int(config["vocab_size"]),
                num_labels=int(config["num_labels"]),
                embedding_dim=int(config["embedding_dim"]),
                hidden_units=int(config["hidden_units"]),
            )
            net.load_state_dict(payload["state_dict"])
        except (KeyError, RuntimeError, ValueError) as e:
            logger.warning("Persisted model could not be restored (%s), discarding it", e)
            self.store.discard_model()
            return

        self._install(net, None)
        self.model_version = metadata.version

    def _install(self, net: SequenceClassifierNet,
                 optimizer: Optional[torch.optim.Optimizer]) -> None:
        self.model = net
        self._optimizer = optimizer or torch.optim.Adam(net.parameters(), lr=self.learning_rate)
        self.weights_version += 1

    def _persist(self) -> bool:
        if self.model is None or self.vocabulary is None:
            return False
        config = dict(self.model.config(), max_sequence_length=self.max_sequence_length)
        ok = self.store.save_weights(
            {k: v.detach().clone() for k, v in self.model.state_dict().items()}, config
        )
        ok = self.store.save_metadata(
            ModelMetadata.create(self.model_version, self.vocabulary.hash())
        ) and ok
        ok = self.store.save_vocabulary(self.vocabulary.to_dict()) and ok
        ok = self.store.save_label_map(self.category_index.to_dict()) and ok
        return ok

    # -------------------------------------------------------------------------
    # Inference
    # -------------------------------------------------------------------------

    def _encode(self, texts: List[str], vocab_size: int) -> torch.Tensor:
        rows = []
        for text in texts:
            ids = self.vocabulary.encode(text, self.max_sequence_length)
            rows.append([i if i < vocab_size else OOV_ID for i in ids])
        return torch.tensor(rows, dtype=torch.long)

    def _run_forward(self, text: str) -> np.ndarray:
        self.model.eval()
        with torch.no_grad():
            x = self._encode([text], self.model.vocab_size)
            probs = torch.softmax(self.model(x), dim=1)
        return probs[0].cpu().numpy()

    async def predict(self, text: str) -> Optional[ClassifierPrediction]:
        """Most probable category for ``text``, or None when not ready"""
        if not self.is_ready:
            return None
        # let queued lightweight tasks run before the forward pass
        await asyncio.sleep(0)
        async with self._lock:
            if not self.is_ready:
                return None
            version = self.weights_version
            probs = await asyncio.to_thread(self._run_forward, text)

        # np.argmax returns the first index among equal maxima
        idx = int(np.argmax(probs))
        category_id = self.category_index.category_for(idx) or str(idx)
        return ClassifierPrediction(
            category_id=category_id,
            category_name=self.category_index.name_for(category_id) or category_id,
            confidence=float(probs[idx]),
            label_index=idx,
            weights_version=version,
        )

    # -------------------------------------------------------------------------
    # Training
    # -------------------------------------------------------------------------

    def _fit_new_model(
        self,
        samples: List[TrainingSample],
        vocabulary: Vocabulary,
        vocab_size: int,
        epochs: int,
        should_stop: Optional[Callable[[], bool]],
        on_progress: Optional[Callable[[float], None]],
    ) -> Tuple[SequenceClassifierNet, torch.optim.Optimizer, float]:
        if self.seed is not None:
            torch.manual_seed(self.seed)
        rng = np.random.default_rng(self.seed)

        num_labels = max(2, max(s.label_index for s in samples) + 1)
        net = SequenceClassifierNet(vocab_size, num_labels, self.embedding_dim, self.hidden_units)
        optimizer = torch.optim.Adam(net.parameters(), lr=self.learning_rate)
        criterion = nn.CrossEntropyLoss()

        rows = []
        for s in samples:
            ids = vocabulary.encode(s.text, self.max_sequence_length)
            rows.append([i if i < vocab_size else OOV_ID for i in ids])
        X = torch.tensor(rows, dtype=torch.long)
        y = torch.tensor([s.label_index for s in samples], dtype=torch.long)

        n = len(samples)
        batch_size = min(self.max_batch_size, n)
        batches_per_epoch = (n + batch_size - 1) // batch_size
        total_steps = epochs * batches_per_epoch
        step = 0
        epoch_loss = 0.0

        net.train()
        for epoch in range(epochs):
            epoch_loss = 0.0
            order = rng.permutation(n)
            for start in range(0, n, batch_size):
                if should_stop is not None and should_stop():
                    raise TrainingCancelledError("Training cancelled")
                batch_idx = torch.as_tensor(order[start:start + batch_size], dtype=torch.long)

                optimizer.zero_grad()
                loss = criterion(net(X[batch_idx]), y[batch_idx])
                loss.backward()
                optimizer.step()

                epoch_loss += loss.item() * len(batch_idx)
                step += 1
                if on_progress is not None:
                    on_progress(step / total_steps)
            logger.debug("Epoch %d/%d, loss %.4f", epoch + 1, epochs, epoch_loss / n)

        return net, optimizer, epoch_loss / n

    async def train_from_samples(
        self,
        samples: List[TrainingSample],
        vocab_size: Optional[int] = None,
        vocabulary: Optional[Vocabulary] = None,
        epochs: Optional[int] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> Dict[str, Any]:
        """
        Fit a fresh model on ``samples`` and swap it in.

        The new model trains outside the lock, so predictions keep being served
        by the current one. ``should_stop`` is polled between batches; when it
        returns True, TrainingCancelledError is raised and the live model is
        left untouched.
        """
        if not samples:
            raise ValueError("No training samples")
        vocab = vocabulary or self.vocabulary
        if vocab is None:
            raise ValueError("A vocabulary is required before training")
        size = vocab_size or vocab.size
        n_epochs = epochs or self.epochs

        net, optimizer, loss = await asyncio.to_thread(
            self._fit_new_model, samples, vocab, size, n_epochs, should_stop, on_progress
        )

        async with self._lock:
            self.vocabulary = vocab
            self._install(net, optimizer)
            self.model_version += 1
            if not await asyncio.to_thread(self._persist):
                logger.error("Trained model could not be fully persisted")

        logger.info(
            "Trained classifier on %d samples (%d labels, %d epochs, loss %.4f)",
            len(samples), net.num_labels, n_epochs, loss,
        )
        return {"samples": len(samples), "num_labels": net.num_labels,
                "epochs": n_epochs, "loss": loss}

    async def _refresh_categories(self) -> int:
        if self.category_loader is None:
            return 0
        try:
            categories = await self.category_loader()
        except Exception as e:
            logger.error("Category directory refresh failed: %s", e)
            return 0
        added = self.category_index.refresh(categories)
        if added:
            logger.info("Registered %d new categories in the label map", added)
        return added

    def _fit_one(self, text: str, label: int) -> float:
        if self.model is None:
            num_labels = max(2, len(self.category_index), label + 1)
            self._install(
                SequenceClassifierNet(self.vocabulary.size, num_labels,
                                      self.embedding_dim, self.hidden_units),
                None,
            )
        elif label >= self.model.num_labels:
            self.model.expand_labels(label + 1)
            # parameter set changed, optimizer state no longer matches
            self._optimizer = torch.optim.Adam(self.model.parameters(), lr=self.learning_rate)

        self.model.train()
        x = self._encode([text], self.model.vocab_size)
        y = torch.tensor([label], dtype=torch.long)
        self._optimizer.zero_grad()
        loss = nn.functional.cross_entropy(self.model(x), y)
        loss.backward()
        self._optimizer.step()
        return loss.item()

    async def learn_from_correction(self, text: str, category_id: str) -> bool:
        """
        One gradient step towards ``category_id`` for ``text``.

        Raises UnknownCategoryError when the category is neither in the label
        map nor in the category directory.
        """
        label = self.category_index.index_of(category_id)
        if label is None:
            await self._refresh_categories()
            label = self.category_index.index_of(category_id)
            if label is None:
                raise UnknownCategoryError(category_id)

        await asyncio.sleep(0)
        async with self._lock:
            if self.vocabulary is None:
                self.vocabulary = Vocabulary.build([text])
            loss = await asyncio.to_thread(self._fit_one, text, label)
            self.weights_version += 1
            self.model_version += 1
            if not await asyncio.to_thread(self._persist):
                logger.error("Model could not be persisted after learning from a correction")

        logger.debug("Learned correction %r -> %s (loss %.4f)", text, category_id, loss)
        return True
