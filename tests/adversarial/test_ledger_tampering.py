"""Adversarial tests — ledger tampering and chain integrity.

These tests verify that the Run Ledger detects:
1. Corrupted entry hashes (tampered content)
2. Broken chain links (reordered/deleted entries)
3. Retroactive rewrites (full chain recalculation)
4. Tampering surfaced by the Run Monitor
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from deployforge.core.run_ledger import LedgerIntegrityError, RunLedger
from deployforge.models.ledger import RUN_STAGE_ID, LedgerEntry
from deployforge.monitor.projection import MonitorProjection


class TestLedgerTamperDetection:
    """Direct SQLite manipulation to simulate an attacker with DB access."""

    @pytest.fixture
    def seeded_ledger(self, tmp_path: Path) -> tuple[RunLedger, str]:
        """Seed a ledger with 5 entries for a single run."""
        ledger = RunLedger(tmp_path / "ledger.db")
        run_id = "df-adversarial-001"
        for i in range(5):
            ledger.append(LedgerEntry(
                run_id=run_id,
                stage_id=f"s{i}",
                state_transition="not_started->running",
            ))
        return ledger, run_id

    def test_corrupted_entry_hash_detected(self, seeded_ledger):
        """Modify an entry_hash directly in SQLite. verify_chain must catch it."""
        ledger, run_id = seeded_ledger
        # Tamper: overwrite the entry_hash of the 3rd entry
        db_path = ledger._db_path
        conn = sqlite3.connect(str(db_path))
        conn.execute(
            "UPDATE run_ledger SET entry_hash = 'TAMPERED' "
            "WHERE id = (SELECT id FROM run_ledger WHERE run_id = ? ORDER BY id ASC LIMIT 1 OFFSET 2)",
            (run_id,),
        )
        conn.commit()
        conn.close()

        with pytest.raises(LedgerIntegrityError, match="(Chain broken|Tampered)"):
            ledger.verify_chain(run_id)

    def test_corrupted_payload_detected(self, seeded_ledger):
        """Modify a state_transition field. Hash recomputation must detect it."""
        ledger, run_id = seeded_ledger
        db_path = ledger._db_path
        conn = sqlite3.connect(str(db_path))
        # Tamper the state_transition of entry 2
        conn.execute(
            "UPDATE run_ledger SET state_transition = 'injected->malicious' "
            "WHERE run_id = ? AND id = (SELECT id FROM run_ledger WHERE run_id = ? ORDER BY id ASC LIMIT 1 OFFSET 1)",
            (run_id, run_id),
        )
        conn.commit()
        conn.close()

        with pytest.raises(LedgerIntegrityError, match="Tampered"):
            ledger.verify_chain(run_id)

    def test_deleted_entry_breaks_chain(self, seeded_ledger):
        """Delete a middle entry. Chain linkage must fail."""
        ledger, run_id = seeded_ledger
        db_path = ledger._db_path
        conn = sqlite3.connect(str(db_path))
        # Delete the 2nd entry
        second_id = conn.execute(
            "SELECT id FROM run_ledger WHERE run_id = ? ORDER BY id ASC LIMIT 1 OFFSET 1",
            (run_id,),
        ).fetchone()[0]
        conn.execute("DELETE FROM run_ledger WHERE id = ?", (second_id,))
        conn.commit()
        conn.close()

        with pytest.raises(LedgerIntegrityError, match="Chain broken"):
            ledger.verify_chain(run_id)

    def test_broken_chain_link_detected(self, seeded_ledger):
        """Corrupt a previous_entry_hash link. Chain linkage must fail."""
        ledger, run_id = seeded_ledger
        db_path = ledger._db_path
        conn = sqlite3.connect(str(db_path))
        # Break the chain by corrupting the 3rd entry's previous_entry_hash
        conn.execute(
            "UPDATE run_ledger SET previous_entry_hash = 'WRONG_LINK' "
            "WHERE id = (SELECT id FROM run_ledger WHERE run_id = ? ORDER BY id ASC LIMIT 1 OFFSET 2)",
            (run_id,),
        )
        conn.commit()
        conn.close()

        with pytest.raises(LedgerIntegrityError, match="Chain broken"):
            ledger.verify_chain(run_id)

    def test_rewritten_digest_detected(self, seeded_ledger):
        """Swap the recorded artifact digest. The seal must not match."""
        ledger, run_id = seeded_ledger
        conn = sqlite3.connect(str(ledger._db_path))
        conn.execute(
            "UPDATE run_ledger SET artifact_digest = ? WHERE run_id = ?",
            ("sha256:" + "6" * 64, run_id),
        )
        conn.commit()
        conn.close()

        with pytest.raises(LedgerIntegrityError, match="Tampered"):
            ledger.verify_chain(run_id)

    def test_untouched_run_still_verifies(self, seeded_ledger):
        """Tampering one run does not poison an unrelated run's chain."""
        ledger, run_id = seeded_ledger
        ledger.append(LedgerEntry(
            run_id="df-bystander", stage_id="build", state_transition="not_started->running",
        ))
        conn = sqlite3.connect(str(ledger._db_path))
        conn.execute(
            "UPDATE run_ledger SET stage_id = 'forged' WHERE run_id = ?", (run_id,)
        )
        conn.commit()
        conn.close()

        assert ledger.verify_chain("df-bystander") is True
        with pytest.raises(LedgerIntegrityError):
            ledger.verify_chain(run_id)


class TestMonitorSurfacesTampering:
    def test_snapshot_reports_broken_chain(self, tmp_path: Path):
        ledger = RunLedger(tmp_path / "ledger.db")
        for transition in ("pending->running", "running->succeeded"):
            ledger.append(LedgerEntry(
                run_id="df-run", stage_id=RUN_STAGE_ID, state_transition=transition,
            ))
        conn = sqlite3.connect(str(ledger._db_path))
        conn.execute(
            "UPDATE run_ledger SET state_transition = 'running->rolled_back' "
            "WHERE state_transition = 'running->succeeded'"
        )
        conn.commit()
        conn.close()

        snapshot = MonitorProjection(ledger).snapshot("df-run")
        assert snapshot.chain_valid is False
        assert snapshot.status == "rolled_back"
