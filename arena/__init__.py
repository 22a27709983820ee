"""Arena - online gaming tournament platform backend.

Tournament lifecycle engine and wallet ledger behind a FastAPI service.
"""

__version__ = "1.0.0"
