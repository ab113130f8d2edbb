# Overview: Wires the row store and engine components together from one EngineConfig.

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from flask import current_app

from .config import EngineConfig
from .rowstore import RowStore, build_row_store
from .services.cash_service import DaySessionManager
from .services.concurrency import KeyedLocks
from .services.delivery_service import DeliveryService
from .services.loyalty_service import LoyaltyService
from .services.reconciliation_service import WithdrawalBook
from .services.sales_service import SalesLedger
from .services.sequence_service import SequenceGenerator

EXTENSION_KEY = "zaadpos"


@dataclass
class Engine:
    config: EngineConfig
    store: RowStore
    locks: KeyedLocks
    sequence: SequenceGenerator
    loyalty: LoyaltyService
    ledger: SalesLedger
    sessions: DaySessionManager
    delivery: DeliveryService
    withdrawals: WithdrawalBook

    @classmethod
    def build(cls, config: EngineConfig, store: RowStore) -> "Engine":
        locks = KeyedLocks(enabled=config.single_writer)
        sequence = SequenceGenerator(store, config)
        loyalty = LoyaltyService(store, config, locks)
        ledger = SalesLedger(store, config, sequence, loyalty, locks)
        return cls(
            config=config,
            store=store,
            locks=locks,
            sequence=sequence,
            loyalty=loyalty,
            ledger=ledger,
            sessions=DaySessionManager(store, config, locks),
            delivery=DeliveryService(store, config, ledger, locks),
            withdrawals=WithdrawalBook(store, config, locks),
        )

    @classmethod
    def from_mapping(cls, cfg: Mapping, store: Optional[RowStore] = None) -> "Engine":
        config = EngineConfig.from_mapping(cfg)
        return cls.build(config, store or build_row_store(cfg, config))


def get_engine() -> Engine:
    return current_app.extensions[EXTENSION_KEY]
