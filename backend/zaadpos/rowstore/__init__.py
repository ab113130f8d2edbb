# Overview: Row store backends and the factory that picks one from config.

from __future__ import annotations

from typing import Mapping

from ..config import EngineConfig
from .base import FIRST_DATA_ROW, RowStore, find_row_index_by_key


def build_row_store(cfg: Mapping, engine: EngineConfig) -> RowStore:
    backend = str(cfg.get("ROW_STORE_BACKEND") or "sql").lower()

    if backend == "sheets":
        from .sheets_store import SheetsRowStore, load_credentials

        credentials = load_credentials(cfg.get("GOOGLE_CLIENT_EMAIL", ""), cfg.get("GOOGLE_PRIVATE_KEY", ""))
        return SheetsRowStore(credentials, timeout=engine.store_timeout, read_attempts=engine.read_attempts)

    if backend == "sql":
        from .sql_store import SqlRowStore

        return SqlRowStore(read_attempts=engine.read_attempts)

    raise ValueError(f"Unknown ROW_STORE_BACKEND '{backend}'")


__all__ = ["FIRST_DATA_ROW", "RowStore", "build_row_store", "find_row_index_by_key"]
