"""HTTP command surface for the vocabulary ledger (FastAPI)."""
