from __future__ import annotations

import logging
from typing import Any

import orjson
from redis import Redis

from dualpane.core.redis_client import get_redis
from dualpane.core.settings import get_settings
from dualpane.schemas.compare import PairKey, PaneSide


logger = logging.getLogger(__name__)


def _dumps(data: Any) -> str:
    return orjson.dumps(data).decode("utf-8")


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    return orjson.loads(raw)


def _pair_field(key: PairKey) -> str:
    return f"{key.chunk_index}:{key.pair_index}"


def _parse_pair_field(raw: str) -> PairKey | None:
    chunk, _, pair = raw.partition(":")
    try:
        return PairKey(int(chunk), int(pair))
    except ValueError:
        return None


class OverrideStore:
    """Per-document user choices kept in the external key-value store."""

    def __init__(self, redis: Redis | None = None) -> None:
        self.settings = get_settings()
        self.redis = redis if redis is not None else get_redis()

    def get_pair_ratios(self, doc_id: str) -> dict[PairKey, float]:
        items = self.redis.hgetall(self._pair_ratios_key(doc_id))
        ratios: dict[PairKey, float] = {}
        for raw_key, raw_value in items.items():
            key = _parse_pair_field(raw_key)
            value = _loads(raw_value, None)
            if key is None or not isinstance(value, int | float):
                logger.warning("ignoring malformed ratio override %s=%s for %s", raw_key, raw_value, doc_id)
                continue
            ratios[key] = float(value)
        return ratios

    def set_pair_ratio(self, doc_id: str, key: PairKey, ratio: float) -> None:
        self.redis.hset(self._pair_ratios_key(doc_id), _pair_field(key), _dumps(ratio))
        self.redis.expire(self._pair_ratios_key(doc_id), self._ttl_seconds())

    def delete_pair_ratio(self, doc_id: str, key: PairKey) -> bool:
        return bool(self.redis.hdel(self._pair_ratios_key(doc_id), _pair_field(key)))

    def get_document_ratio(self, doc_id: str) -> float | None:
        value = _loads(self.redis.get(self._doc_ratio_key(doc_id)), None)
        return float(value) if isinstance(value, int | float) else None

    def set_document_ratio(self, doc_id: str, ratio: float) -> None:
        self.redis.set(self._doc_ratio_key(doc_id), _dumps(ratio), ex=self._ttl_seconds())

    def has_custom_document_ratio(self, doc_id: str) -> bool:
        ratio = self.get_document_ratio(doc_id)
        return ratio is not None and ratio != self.settings.default_ratio

    def was_prompted(self, doc_id: str) -> bool:
        return self.redis.get(self._prompted_key(doc_id)) == "true"

    def mark_prompted(self, doc_id: str) -> None:
        self.redis.set(self._prompted_key(doc_id), "true", ex=self._ttl_seconds())

    def reset_prompted(self, doc_id: str) -> None:
        self.redis.delete(self._prompted_key(doc_id))

    def get_text_overrides(self, doc_id: str) -> dict[tuple[PairKey, PaneSide], str]:
        items = self.redis.hgetall(self._text_key(doc_id))
        overrides: dict[tuple[PairKey, PaneSide], str] = {}
        for raw_key, raw_value in items.items():
            pair_part, _, side = raw_key.rpartition(":")
            key = _parse_pair_field(pair_part)
            if key is None or side not in {"left", "right"}:
                continue
            overrides[(key, side)] = _loads(raw_value, "")  # type: ignore[index]
        return overrides

    def set_text_override(self, doc_id: str, key: PairKey, side: PaneSide, text: str) -> None:
        self.redis.hset(self._text_key(doc_id), f"{_pair_field(key)}:{side}", _dumps(text))
        self.redis.expire(self._text_key(doc_id), self._ttl_seconds())

    def delete_text_override(self, doc_id: str, key: PairKey, side: PaneSide) -> bool:
        return bool(self.redis.hdel(self._text_key(doc_id), f"{_pair_field(key)}:{side}"))

    def clear_document(self, doc_id: str) -> None:
        self.redis.delete(
            self._pair_ratios_key(doc_id),
            self._doc_ratio_key(doc_id),
            self._prompted_key(doc_id),
            self._text_key(doc_id),
        )

    @staticmethod
    def _pair_ratios_key(doc_id: str) -> str:
        return f"dualpane:{doc_id}:pair_ratios"

    @staticmethod
    def _doc_ratio_key(doc_id: str) -> str:
        return f"dualpane:{doc_id}:ratio"

    @staticmethod
    def _prompted_key(doc_id: str) -> str:
        return f"dualpane:{doc_id}:smart_ratio_prompted"

    @staticmethod
    def _text_key(doc_id: str) -> str:
        return f"dualpane:{doc_id}:text_overrides"

    def _ttl_seconds(self) -> int:
        return self.settings.override_ttl_days * 24 * 3600
