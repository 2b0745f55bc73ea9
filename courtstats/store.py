"""
Disk backed store of recorded matches.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .models import MatchRecord, MatchSummary

LOGGER = logging.getLogger(__name__)


class MatchStore:
    """
    Read and write match documents kept as JSON files on disk.

    Layout: ``<data_dir>/index.json`` holds the summary list and
    ``<data_dir>/matches/<id>.json`` holds each full match.
    """

    def __init__(self, data_dir: str):
        self.data_dir = Path(data_dir)
        self.matches_dir = self.data_dir / "matches"
        self.matches_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.data_dir / "index.json"

    def _path_for_match(self, match_id: str) -> Path:
        safe_id = match_id.replace("/", "_")
        return self.matches_dir / f"{safe_id}.json"

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            LOGGER.warning("Ignoring unreadable JSON document at %s: %s", path, exc)
            return None

    def _write_json(self, path: Path, value: Any) -> None:
        tmp_path = Path(f"{path}.{os.getpid()}.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(value, handle, ensure_ascii=False)
        tmp_path.replace(path)

    def list_match_summaries(self, team_id: Optional[str] = None) -> List[MatchSummary]:
        """
        Return stored match summaries in index order, optionally for one team.
        """
        raw = self._read_json(self.index_path)
        if not isinstance(raw, list):
            return []
        summaries: List[MatchSummary] = []
        for item in raw:
            summary = MatchSummary.from_dict(item) if isinstance(item, Mapping) else None
            if summary is None:
                continue
            if team_id and summary.owner_team_id != team_id:
                continue
            summaries.append(summary)
        return summaries

    def load_full_match(self, match_id: str) -> Optional[MatchRecord]:
        """
        Load a full match record, or None when it is missing or unreadable.
        """
        raw = self._read_json(self._path_for_match(match_id))
        if not isinstance(raw, Mapping):
            return None
        try:
            return MatchRecord.from_dict(raw)
        except (ValueError, TypeError) as exc:
            LOGGER.warning("Match %s is malformed: %s", match_id, exc)
            return None

    def save_match(self, document: Mapping[str, Any]) -> MatchSummary:
        """
        Store a match document and upsert its summary at the head of the index.
        """
        record = MatchRecord.from_dict(document)
        self._write_json(self._path_for_match(record.id), dict(document))

        summary = MatchSummary.from_record(record)
        raw_index = self._read_json(self.index_path)
        index = raw_index if isinstance(raw_index, list) else []
        index = [item for item in index if not (isinstance(item, Mapping) and str(item.get("id")) == record.id)]
        index.insert(0, summary.to_dict())
        self._write_json(self.index_path, index)
        return summary

    def delete_match(self, match_id: str) -> None:
        path = self._path_for_match(match_id)
        if path.exists():
            path.unlink()
        raw_index = self._read_json(self.index_path)
        if isinstance(raw_index, list):
            index = [item for item in raw_index if not (isinstance(item, Mapping) and str(item.get("id")) == match_id)]
            self._write_json(self.index_path, index)
