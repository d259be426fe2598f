"""Deployforge core: storage, ledger, state machines, and orchestration."""
