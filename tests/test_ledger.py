"""Tests for the publication ledger."""

import asyncio
from datetime import date, datetime, timezone

import pytest

from content_restorer.core.errors import DuplicatePublishError, LedgerError
from content_restorer.core.ledger import PublicationLedger, identity_of, normalize_title


class TestIdentity:
    def test_normalization_ignores_case_and_punctuation(self):
        assert normalize_title("  The Lighthouse — Letters! ") == "the lighthouse letters"
        assert identity_of("The Lighthouse Letters") == identity_of("the lighthouse, letters")

    def test_different_titles_differ(self):
        assert identity_of("Harbour") != identity_of("Harbor")

    def test_date_changes_identity(self):
        title = "Weekly digest"
        assert identity_of(title, date(2025, 1, 1)) != identity_of(title, date(2025, 1, 8))
        assert identity_of(title) != identity_of(title, date(2025, 1, 1))

    def test_identity_is_hex_digest(self):
        identity = PublicationLedger.identity_of("Any title")
        assert len(identity) == 64
        int(identity, 16)


class TestLedger:
    def test_record_and_lookup(self, ledger):
        identity = identity_of("Title")
        assert ledger.has_published(identity) is False

        entry = ledger.record(identity, "ref-1", title="Title")

        assert ledger.has_published(identity) is True
        assert entry.destination_ref == "ref-1"
        assert len(ledger) == 1

    def test_duplicate_record_raises(self, ledger):
        identity = identity_of("Title")
        ledger.record(identity, "ref-1")

        with pytest.raises(DuplicatePublishError) as exc_info:
            ledger.record(identity, "ref-2")

        assert exc_info.value.identity == identity
        assert [e.destination_ref for e in ledger.entries()] == ["ref-1"]

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "ledger.db")
        PublicationLedger(path).record(identity_of("Title"), "ref-1")

        assert PublicationLedger(path).has_published(identity_of("Title"))

    def test_entries_are_ordered(self, ledger):
        ledger.record("b", "ref-b", datetime(2025, 2, 1, tzinfo=timezone.utc))
        ledger.record("a", "ref-a", datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert [e.identity for e in ledger.entries()] == ["a", "b"]

    def test_unwritable_location_raises_ledger_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        with pytest.raises(LedgerError):
            PublicationLedger(str(blocker / "ledger.db"))

    def test_export_log(self, ledger, tmp_path):
        ledger.record(identity_of("One"), "ref-1", title="One")
        ledger.record(identity_of("Two"), "ref-2", title="Two")
        log_path = tmp_path / "out" / "published.log"

        written = ledger.export_log(str(log_path))

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert written == 2
        assert lines[0].endswith("| ref-1 | One")
        assert identity_of("Two") in lines[1]

    def test_import_legacy_history(self, ledger, tmp_path):
        history = tmp_path / "published_history.txt"
        history.write_text(
            "2025-01-31 09:15:00 - The Lighthouse Letters\n"
            "garbage line\n"
            "2025-02-01 10:00:00 - Harbour Nights\n"
            "2025-02-02 10:00:00 - the lighthouse letters\n",
            encoding="utf-8",
        )

        imported = ledger.import_history(str(history))

        assert imported == 2
        assert ledger.has_published(identity_of("Harbour Nights"))
        assert ledger.import_history(str(history)) == 0

    @pytest.mark.asyncio
    async def test_lock_serializes_same_identity(self, ledger):
        order = []

        async def critical_section(name):
            async with ledger.lock("same"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(critical_section("a"), critical_section("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_lock_is_released_after_last_user(self, ledger):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with ledger.lock("same"):
                entered.set()
                await release.wait()

        async def waiter():
            async with ledger.lock("same"):
                pass

        first = asyncio.ensure_future(holder())
        await entered.wait()
        second = asyncio.ensure_future(waiter())
        await asyncio.sleep(0)

        assert "same" in ledger._locks
        release.set()
        await asyncio.gather(first, second)

        assert ledger._locks == {}

        async with ledger.lock("other"):
            assert list(ledger._locks) == ["other"]
        assert ledger._locks == {}
