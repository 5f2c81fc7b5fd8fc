"""
Document Path Layout

Where each kind of document lives in the shared store. Singletons live
under a fixed id so that "exactly one instance" is structural.
"""

PROFILES = "profiles"
TRANSACTIONS = "transactions"
GOALS = "goals"
CUTOFF_PERIODS = "cutoffPeriods"

SAVINGS_TARGET = "savingsTarget/current"
GAME_SESSION = "gameSessions/active"


def document_path(collection: str, doc_id: str) -> str:
    return f"{collection}/{doc_id}"
