"""
Facade helpers for loading matches and building season statistics.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from ..analytics.aggregator import AggregationResult, FoldOrder, aggregate
from ..config import RatingWeights, StatsSettings, load_rating_weights
from ..exceptions import MatchNotFoundError
from ..models import MatchRecord, MatchSummary
from ..store import MatchStore


@lru_cache(maxsize=1)
def _settings() -> StatsSettings:
    return StatsSettings.from_env()


@lru_cache(maxsize=1)
def _store() -> MatchStore:
    return MatchStore(_settings().data_dir)


@lru_cache(maxsize=1)
def _weights() -> RatingWeights:
    return load_rating_weights(Path(_settings().rating_weights_path))


def get_match_store() -> MatchStore:
    """
    Return a cached match store instance.
    """
    return _store()


def get_rating_weights() -> RatingWeights:
    """
    Return the rating weights configured for this process.
    """
    return _weights()


def fetch_match_summaries(team_id: Optional[str] = None) -> List[MatchSummary]:
    """
    Retrieve the ordered match summaries for a team, or all matches.
    """
    return _store().list_match_summaries(team_id)


def fetch_full_match(match_id: str, *, strict: bool = False) -> Optional[MatchRecord]:
    """
    Retrieve a full match record; with ``strict`` a missing match raises.
    """
    record = _store().load_full_match(match_id)
    if record is None and strict:
        raise MatchNotFoundError(f"Match '{match_id}' not found", match_id=match_id)
    return record


def prefetch_matches(
    summaries: Sequence[MatchSummary],
    load_match: Callable[[str], Optional[MatchRecord]],
    *,
    max_workers: int = 4,
) -> Dict[str, Optional[MatchRecord]]:
    """
    Load match records concurrently, keyed by id in summary order.
    """
    match_ids = [summary.id for summary in summaries]
    if not match_ids:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        records = list(executor.map(load_match, match_ids))
    return dict(zip(match_ids, records))


def build_season_stats(
    team_id: Optional[str],
    team_name: Optional[str] = None,
    *,
    weights: Optional[RatingWeights] = None,
    fold_order: FoldOrder = "chronological",
    period: Optional[int] = None,
) -> AggregationResult:
    """
    Aggregate every stored match of ``team_id`` into season player rows.
    """
    summaries = fetch_match_summaries(team_id)
    records = prefetch_matches(
        summaries,
        _store().load_full_match,
        max_workers=_settings().prefetch_workers,
    )
    return aggregate(
        summaries,
        records.get,
        weights if weights is not None else _weights(),
        team_name=team_name,
        fold_order=fold_order,
        period=period,
    )
