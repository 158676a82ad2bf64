"""
Integration tests for the entry session.

Async collaborator calls run through asyncio.run with the in-memory
storage; a failing storage stub stands in for a broken backend.
"""

import asyncio
import pytest
from decimal import Decimal

from balancer.audit import AuditLogger
from balancer.errors import EditingBlockedError, EntryValidationError, PersistenceError
from balancer.models.audit import AuditEventType
from balancer.models.ledger import (
    CommitReceipt,
    DocumentHeader,
    DraftPhase,
    EditingCapabilities,
    IssueCode,
    LedgerLine,
    Side,
    SplitPart,
)
from balancer.orchestrator import EntrySession, create_session
from balancer.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)


class FailingLedgerStorage(LedgerStorageInterface):
    """Storage whose writes always fail."""

    def __init__(self, message="Connection to ledger database lost"):
        self.message = message
        self.calls = 0

    async def save_batch(self, header, lines, replace=False) -> CommitReceipt:
        self.calls += 1
        raise StorageError(self.message)

    async def get_lines(self, document_id):
        return []

    async def delete_batch(self, document_id):
        return False


class SlowLedgerStorage(InMemoryLedgerStorage):
    """In-memory storage that holds each write until released."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def save_batch(self, header, lines, replace=False) -> CommitReceipt:
        self.started.set()
        await self.release.wait()
        return await super().save_batch(header, lines, replace=replace)


def _type_line(session, description, debit_ref, credit_ref, amount):
    """Type a complete balanced line and leave the amount field."""
    session.set_description(description)
    session.select_account(Side.DEBIT, debit_ref)
    session.select_account(Side.CREDIT, credit_ref)
    session.focus_amount(Side.DEBIT)
    session.change_amount(Side.DEBIT, amount)
    return asyncio.run(session.blur_amount(Side.DEBIT))


def _session(storage=None, capabilities=None):
    audit_storage = InMemoryAuditStorage()
    session = EntrySession(
        header=DocumentHeader(document_number="DOK/001/2024"),
        storage=storage if storage is not None else InMemoryLedgerStorage(),
        audit_logger=AuditLogger(audit_storage),
        capabilities=capabilities,
    )
    return session, audit_storage


class TestDraftEntry:
    """Tests for typing lines into a session."""

    def test_ready_line_can_be_added(self):
        session, _ = _session()
        outcome = _type_line(session, "Czynsz", "402", "201", "1500")
        assert outcome.phase is DraftPhase.READY

        line = asyncio.run(session.add_draft_line())
        assert line.debit_amount == line.credit_amount == Decimal("1500")
        assert session.lines == (line,)
        assert session.draft.phase is DraftPhase.EMPTY

    def test_draft_uses_document_currency(self):
        session = EntrySession(header=DocumentHeader(currency="EUR"))
        assert session.draft.currency == "EUR"

    def test_incomplete_draft_cannot_be_added(self):
        session, _ = _session()
        session.change_amount(Side.DEBIT, "10")
        with pytest.raises(EntryValidationError):
            asyncio.run(session.add_draft_line())
        # Draft survives the failure
        assert session.draft.debit_amount == Decimal("10")

    def test_split_on_blur_adds_both_lines(self):
        """Test the corrective line flow through the session."""
        session, audit_storage = _session()
        session.set_description("Zakup paliwa")
        session.select_account(Side.DEBIT, "402-01")
        session.select_account(Side.CREDIT, "201-05")
        session.focus_amount(Side.DEBIT)
        session.change_amount(Side.DEBIT, "100.00")
        asyncio.run(session.blur_amount(Side.DEBIT))
        session.focus_amount(Side.CREDIT)
        session.change_amount(Side.CREDIT, "70.00")
        outcome = asyncio.run(session.blur_amount(Side.CREDIT))

        assert outcome.split is True
        assert len(session.lines) == 2
        assert session.lines[1].credit_amount == Decimal("30.00")
        assert session.draft.description == ""

        event_types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.CORRECTIVE_LINE_GENERATED in event_types

    def test_cancel_draft_keeps_batch(self):
        session, _ = _session()
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        session.change_amount(Side.DEBIT, "5")
        session.cancel_draft()
        assert session.draft.debit_amount == Decimal("0")
        assert len(session.lines) == 1

    def test_totals_with_draft(self):
        session, _ = _session()
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        session.focus_amount(Side.DEBIT)
        session.change_amount(Side.DEBIT, "5")
        assert session.totals().debit_total == Decimal("100")
        assert session.totals(include_draft=True).debit_total == Decimal("105")

    def test_totals_by_prefix(self):
        session, _ = _session()
        _type_line(session, "Paliwo", "402-01", "201-05", "100")
        asyncio.run(session.add_draft_line())
        totals = session.totals_by_prefix()
        assert totals["402"].debit_total == Decimal("100")
        assert totals["201"].credit_total == Decimal("100")


class TestBatchEditing:
    """Tests for editing lines already in the batch."""

    def _with_line(self):
        session, audit_storage = _session()
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        return session, audit_storage

    def test_edit_line(self):
        session, audit_storage = self._with_line()
        original_id = session.lines[0].id
        edited = asyncio.run(session.edit_line(0, description="Czynsz za maj"))
        assert edited.description == "Czynsz za maj"
        assert edited.id == original_id
        assert audit_storage.events[-1].event_type == AuditEventType.LINE_EDITED

    def test_edit_amount_accepts_text(self):
        session, _ = self._with_line()
        edited = asyncio.run(session.edit_line(0, debit_amount="1 234,50"))
        assert edited.debit_amount == Decimal("1234.50")

    def test_edit_unknown_field_rejected(self):
        session, _ = self._with_line()
        with pytest.raises(EntryValidationError, match="is_corrective"):
            asyncio.run(session.edit_line(0, is_corrective=True))

    def test_edit_bad_position(self):
        session, _ = self._with_line()
        with pytest.raises(EntryValidationError, match="No line at position 5"):
            asyncio.run(session.edit_line(4, description="X"))

    def test_remove_line(self):
        session, _ = self._with_line()
        removed = asyncio.run(session.remove_line(0))
        assert removed.description == "Czynsz"
        assert session.lines == ()

    def test_split_line_in_place(self):
        session, _ = self._with_line()
        parts = [
            SplitPart(description="Czynsz biuro", account_ref="402-01", amount=Decimal("60")),
            SplitPart(description="Czynsz magazyn", account_ref="402-02", amount=Decimal("40")),
        ]
        pieces = asyncio.run(session.split_line(0, Side.DEBIT, parts))
        assert len(session.lines) == 2
        assert list(session.lines) == pieces
        assert session.check().eligible is True


class TestCommit:
    """Tests for the commit flow."""

    def test_commit_success(self):
        storage = InMemoryLedgerStorage()
        session, audit_storage = _session(storage=storage)
        _type_line(session, "Czynsz", "402", "201", "1500")
        asyncio.run(session.add_draft_line())

        receipt = asyncio.run(session.commit())

        assert receipt.line_count == 1
        assert receipt.debit_total == Decimal("1500")
        assert receipt.currency == "PLN"
        assert session.lines == ()
        assert len(storage.batches[session.header.document_id]) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.BATCH_COMMITTED

    def test_commit_rejected_by_gate(self):
        """Test that an unbalanced batch is never persisted."""
        storage = InMemoryLedgerStorage()
        session, audit_storage = _session(storage=storage)
        session.set_description("Zakup paliwa")
        session.select_account(Side.DEBIT, "402-01")
        session.select_account(Side.CREDIT, "201-05")
        session.focus_amount(Side.DEBIT)
        session.change_amount(Side.DEBIT, "100")
        session.focus_amount(Side.CREDIT)
        session.change_amount(Side.CREDIT, "70")
        asyncio.run(session.blur_amount(Side.CREDIT))

        # Corrective line still has no account
        with pytest.raises(EntryValidationError) as exc_info:
            asyncio.run(session.commit())

        decision = exc_info.value.decision
        assert decision.eligible is False
        assert IssueCode.MISSING_ACCOUNT in decision.failed_codes
        assert storage.batches == {}
        assert len(session.lines) == 2
        assert audit_storage.events[-1].event_type == AuditEventType.COMMIT_REJECTED

    def test_commit_after_fixing_corrective_line(self):
        session, _ = _session()
        session.set_description("Zakup paliwa")
        session.select_account(Side.DEBIT, "402-01")
        session.select_account(Side.CREDIT, "201-05")
        session.focus_amount(Side.DEBIT)
        session.change_amount(Side.DEBIT, "100")
        session.focus_amount(Side.CREDIT)
        session.change_amount(Side.CREDIT, "70")
        asyncio.run(session.blur_amount(Side.CREDIT))

        asyncio.run(session.edit_line(1, credit_account_ref="100"))
        receipt = asyncio.run(session.commit())
        assert receipt.line_count == 2
        assert receipt.debit_total == receipt.credit_total == Decimal("100")

    def test_empty_batch_rejected(self):
        session, _ = _session()
        with pytest.raises(EntryValidationError, match="no lines"):
            asyncio.run(session.commit())

    def test_persistence_failure_keeps_batch(self):
        """Test that a storage error surfaces verbatim and nothing is lost."""
        storage = FailingLedgerStorage()
        session, audit_storage = _session(storage=storage)
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())

        with pytest.raises(PersistenceError, match="Connection to ledger database lost") as exc_info:
            asyncio.run(session.commit())

        assert isinstance(exc_info.value.__cause__, StorageError)
        assert storage.calls == 1
        assert len(session.lines) == 1
        assert audit_storage.events[-1].event_type == AuditEventType.PERSISTENCE_FAILED

    def test_commit_without_storage(self):
        session = create_session(use_storage=False)
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        with pytest.raises(PersistenceError):
            asyncio.run(session.commit())
        assert len(session.lines) == 1

    def test_second_commit_replaces_document(self):
        storage = InMemoryLedgerStorage()
        session, _ = _session(storage=storage)
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        asyncio.run(session.commit())

        _type_line(session, "Media", "402", "201", "40")
        asyncio.run(session.add_draft_line())
        asyncio.run(session.commit())

        stored = storage.batches[session.header.document_id]
        assert [line.description for line in stored] == ["Media"]

    def test_open_existing_document(self):
        storage = InMemoryLedgerStorage()
        header = DocumentHeader()
        line = LedgerLine(
            description="Czynsz",
            debit_account_ref="402",
            credit_account_ref="201",
            debit_amount=Decimal("100"),
            credit_amount=Decimal("100"),
        )
        asyncio.run(storage.save_batch(header, [line]))

        session = asyncio.run(EntrySession.open_existing(header, storage))
        assert session.lines == (line,)

        asyncio.run(session.edit_line(0, description="Czynsz za maj"))
        asyncio.run(session.commit())
        assert storage.batches[header.document_id][0].description == "Czynsz za maj"

    def test_open_missing_document(self):
        with pytest.raises(PersistenceError):
            asyncio.run(EntrySession.open_existing(DocumentHeader(), InMemoryLedgerStorage()))

    def test_no_edits_while_commit_pending(self):
        """Test that lines cannot change while storage is still writing."""
        storage = SlowLedgerStorage()
        session, _ = _session(storage=storage)
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())

        async def commit_while_editing():
            pending = asyncio.create_task(session.commit())
            await storage.started.wait()

            with pytest.raises(EditingBlockedError, match="commit is in progress"):
                session.set_description("Media")
            with pytest.raises(EditingBlockedError):
                await session.add_draft_line()
            with pytest.raises(EditingBlockedError):
                await session.remove_line(0)
            with pytest.raises(EditingBlockedError):
                await session.discard()
            assert len(session.lines) == 1

            storage.release.set()
            return await pending

        receipt = asyncio.run(commit_while_editing())

        stored = storage.batches[session.header.document_id]
        assert receipt.line_count == 1
        assert [line.description for line in stored] == ["Czynsz"]
        assert session.lines == ()

        # Editing resumes once the commit is done
        session.set_description("Media")
        assert session.draft.description == "Media"

    def test_editing_resumes_after_failed_commit(self):
        session, _ = _session(storage=FailingLedgerStorage())
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        with pytest.raises(PersistenceError):
            asyncio.run(session.commit())
        asyncio.run(session.remove_line(0))
        assert session.lines == ()


class TestDiscard:
    def test_discard_drops_lines(self):
        session, audit_storage = _session()
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        dropped = asyncio.run(session.discard())
        assert dropped == 1
        assert session.lines == ()
        assert audit_storage.events[-1].event_type == AuditEventType.DRAFT_DISCARDED


class TestCapabilities:
    """Tests for editing rights."""

    def test_blocked_document_refuses_edits(self):
        session, _ = _session(capabilities=EditingCapabilities(editing_blocked=True))
        with pytest.raises(EditingBlockedError):
            session.set_description("Czynsz")
        with pytest.raises(EditingBlockedError):
            session.change_amount(Side.DEBIT, "10")

    def test_read_only_cannot_commit(self):
        session, _ = _session(capabilities=EditingCapabilities.read_only())
        with pytest.raises(EditingBlockedError):
            asyncio.run(session.commit())

    def test_editor_without_commit_right(self):
        storage = InMemoryLedgerStorage()
        session, _ = _session(
            storage=storage,
            capabilities=EditingCapabilities(can_commit=False),
        )
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        with pytest.raises(EditingBlockedError):
            asyncio.run(session.commit())
        assert storage.batches == {}


class TestFactory:
    def test_create_session_wires_storage(self):
        session = create_session()
        _type_line(session, "Czynsz", "402", "201", "100")
        asyncio.run(session.add_draft_line())
        receipt = asyncio.run(session.commit())
        assert receipt.line_count == 1

    def test_create_session_with_tolerance(self):
        session = create_session(use_storage=False, tolerance=Decimal("1"))
        assert session.check().totals.tolerance == Decimal("1")
