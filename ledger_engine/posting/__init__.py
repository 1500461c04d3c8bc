"""Transaction posting package."""

from ledger_engine.posting.engine import PostingEngine, parse_amount

__all__ = ["PostingEngine", "parse_amount"]
