"""
Entry Session Orchestrator

This module ties the balancing functions, the commit gate and the
collaborators together into one editing session per document:

    draft events → auto-balancing → batch → commit gate → persistence

DESIGN DECISION: The session enforces the boundaries:
- Nothing is persisted unless the commit gate accepts the whole batch
- A failed commit never loses the unsaved lines
- Every batch change is audited

The balancing logic itself lives in pure functions; the session only
holds the current draft and batch and swaps them for the results.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from balancer.audit import AuditLogger, create_correlation_id
from balancer.balancing import (
    apply_amount_change,
    coerce_amount,
    compute_totals,
    evaluate_blur,
    finalize_draft,
    focus_field,
    group_totals_by_prefix,
    new_draft,
    set_account,
    set_description,
    set_settlement_type,
    split_line,
)
from balancer.balancing.auto_balancer import AmountInput
from balancer.errors import EditingBlockedError, EntryValidationError, PersistenceError
from balancer.models.ledger import (
    BalanceTotals,
    BlurOutcome,
    CommitDecision,
    CommitReceipt,
    DocumentHeader,
    DraftField,
    DraftLine,
    EditingCapabilities,
    LedgerLine,
    SettlementType,
    Side,
    SplitPart,
)
from balancer.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    StorageError,
)
from balancer.validation import CommitGate


# Fields a user may change on a line already in the batch
EDITABLE_FIELDS = frozenset({
    "description",
    "debit_account_ref",
    "credit_account_ref",
    "debit_amount",
    "credit_amount",
    "settlement_type",
})


class EntrySession:
    """
    Editing session for the lines of one document.

    Flow:
    1. Draft → field events build up the current draft line
    2. Blur → an unbalanced draft may be split into line + corrective line
    3. Add → a READY draft joins the batch
    4. Review → lines can be edited, removed or split
    5. Commit → commit gate, then persistence, all-or-nothing

    The batch is only cleared after persistence succeeded.
    """

    def __init__(
        self,
        header: DocumentHeader,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        gate: Optional[CommitGate] = None,
        capabilities: Optional[EditingCapabilities] = None,
        correlation_id: Optional[UUID] = None,
        lines: Optional[list[LedgerLine]] = None,
    ):
        self._header = header
        self._storage = storage
        self._audit_logger = audit_logger
        self._gate = gate or CommitGate()
        self._capabilities = capabilities or EditingCapabilities()
        self._correlation_id = correlation_id or create_correlation_id()
        self._lines: list[LedgerLine] = list(lines or [])
        self._replace = False
        self._committing = False
        self._draft = self._fresh_draft()
        self._logger = structlog.get_logger("balancer.session").bind(
            document_id=str(header.document_id),
            correlation_id=str(self._correlation_id),
        )

    @classmethod
    async def open_existing(
        cls,
        header: DocumentHeader,
        storage: LedgerStorageInterface,
        **kwargs,
    ) -> "EntrySession":
        """
        Open a stored document for editing.

        Committing the session replaces the stored lines.

        Raises:
            PersistenceError: the lines could not be loaded
        """
        try:
            lines = await storage.get_lines(header.document_id)
        except StorageError as e:
            raise PersistenceError(str(e)) from e

        session = cls(header, storage=storage, lines=lines, **kwargs)
        session._replace = True
        return session

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def header(self) -> DocumentHeader:
        return self._header

    @property
    def lines(self) -> tuple[LedgerLine, ...]:
        return tuple(self._lines)

    @property
    def draft(self) -> DraftLine:
        return self._draft

    @property
    def capabilities(self) -> EditingCapabilities:
        return self._capabilities

    @property
    def correlation_id(self) -> UUID:
        return self._correlation_id

    def _fresh_draft(
        self,
        settlement_type: SettlementType = SettlementType.BANK,
    ) -> DraftLine:
        return new_draft(
            currency=self._header.currency,
            settlement_type=settlement_type,
        )

    def _require_idle(self, action: str) -> None:
        # The batch handed to storage must stay the batch that gets cleared
        if self._committing:
            self._logger.warning("editing_blocked", action=action, reason="commit_in_progress")
            raise EditingBlockedError(f"A commit is in progress: cannot {action}")

    def _require_edit(self, action: str) -> None:
        self._require_idle(action)
        if not self._capabilities.may_edit:
            self._logger.warning("editing_blocked", action=action)
            raise EditingBlockedError(f"Editing is not allowed: cannot {action}")

    def _require_commit(self) -> None:
        self._require_edit("commit")
        if not self._capabilities.can_commit:
            self._logger.warning("editing_blocked", action="commit")
            raise EditingBlockedError("Saving this document is not allowed")

    def _line_at(self, index: int) -> LedgerLine:
        if not 0 <= index < len(self._lines):
            raise EntryValidationError(f"No line at position {index + 1}")
        return self._lines[index]

    # -------------------------------------------------------------------------
    # Draft events
    # -------------------------------------------------------------------------

    def set_description(self, text: str) -> DraftLine:
        self._require_edit("change description")
        self._draft = set_description(self._draft, text)
        return self._draft

    def select_account(self, side: Side, account_ref: Optional[str]) -> DraftLine:
        self._require_edit("select account")
        self._draft = set_account(self._draft, Side(side), account_ref)
        return self._draft

    def set_settlement_type(self, settlement_type: SettlementType) -> DraftLine:
        self._require_edit("change settlement type")
        self._draft = set_settlement_type(self._draft, settlement_type)
        return self._draft

    def focus_amount(self, side: Side) -> DraftLine:
        self._require_edit("edit amount")
        self._draft = focus_field(self._draft, DraftField.amount_field(Side(side)))
        return self._draft

    def change_amount(self, side: Side, value: AmountInput) -> DraftLine:
        """
        Apply a new amount to one side of the draft.

        Raises:
            EntryValidationError: the input is not a valid amount
        """
        self._require_edit("edit amount")
        side = Side(side)
        before = self._draft.amount_for(side.opposite)
        self._draft = apply_amount_change(self._draft, side, value)

        after = self._draft.amount_for(side.opposite)
        if after != before:
            self._logger.debug(
                "amount_mirrored",
                from_side=side.value,
                to_side=side.opposite.value,
                amount=str(after),
            )
        return self._draft

    async def blur_amount(self, side: Side) -> BlurOutcome:
        """
        Leave an amount field.

        On a split, the original line and its corrective line join the
        batch and a fresh draft is started.
        """
        self._require_edit("edit amount")
        outcome = evaluate_blur(self._draft, Side(side), self._gate.tolerance)
        self._draft = outcome.state

        if outcome.split:
            original, corrective = outcome.emitted_lines
            self._lines.extend(outcome.emitted_lines)

            if self._audit_logger:
                await self._audit_logger.log_line_added(
                    document_id=self._header.document_id,
                    line_id=original.id,
                    amount=str(original.amount),
                    correlation_id=self._correlation_id,
                )
                await self._audit_logger.log_corrective_line(
                    document_id=self._header.document_id,
                    original_line_id=original.id,
                    corrective_line_id=corrective.id,
                    side=corrective.corrective_side.value,
                    amount=str(corrective.amount),
                    correlation_id=self._correlation_id,
                )

        return outcome

    async def add_draft_line(self) -> LedgerLine:
        """
        Add the current draft to the batch and start a new one.

        Raises:
            EntryValidationError: the draft is not ready
        """
        self._require_edit("add line")
        line = finalize_draft(self._draft, self._gate.tolerance)
        self._lines.append(line)
        self._draft = self._fresh_draft(settlement_type=line.settlement_type)

        if self._audit_logger:
            await self._audit_logger.log_line_added(
                document_id=self._header.document_id,
                line_id=line.id,
                amount=str(line.amount),
                correlation_id=self._correlation_id,
            )

        return line

    def cancel_draft(self) -> DraftLine:
        """Throw away the current draft without touching the batch."""
        self._require_idle("cancel draft")
        self._draft = self._fresh_draft(settlement_type=self._draft.settlement_type)
        return self._draft

    # -------------------------------------------------------------------------
    # Batch editing
    # -------------------------------------------------------------------------

    async def edit_line(self, index: int, **changes) -> LedgerLine:
        """
        Replace fields of a line in the batch.

        Amounts accept the same input as the amount fields. The edited
        line keeps its id and balancing group.

        Raises:
            EntryValidationError: unknown field or invalid value
        """
        self._require_edit("edit line")
        line = self._line_at(index)

        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise EntryValidationError(
                f"Cannot edit field(s): {', '.join(sorted(unknown))}"
            )

        for name in ("debit_amount", "credit_amount"):
            if name in changes:
                changes[name] = coerce_amount(changes[name])

        try:
            edited = LedgerLine.model_validate({**line.model_dump(), **changes})
        except ValidationError as e:
            raise EntryValidationError(f"Invalid line: {e.errors()[0]['msg']}") from e

        self._lines[index] = edited

        if self._audit_logger:
            await self._audit_logger.log_line_edited(
                document_id=self._header.document_id,
                line_id=edited.id,
                changed_fields=sorted(changes),
                correlation_id=self._correlation_id,
            )

        return edited

    async def remove_line(self, index: int) -> LedgerLine:
        self._require_edit("remove line")
        line = self._line_at(index)
        del self._lines[index]

        if self._audit_logger:
            await self._audit_logger.log_line_removed(
                document_id=self._header.document_id,
                line_id=line.id,
                correlation_id=self._correlation_id,
            )

        return line

    async def split_line(
        self,
        index: int,
        side: Side,
        parts: list[SplitPart],
    ) -> list[LedgerLine]:
        """
        Replace a line by the lines of a split, in place.

        Raises:
            EntryValidationError: the parts do not form a valid split
        """
        self._require_edit("split line")
        line = self._line_at(index)
        side = Side(side)
        pieces = split_line(line, side, parts, self._gate.tolerance)
        self._lines[index:index + 1] = pieces

        if self._audit_logger:
            await self._audit_logger.log_line_split(
                document_id=self._header.document_id,
                line_id=line.id,
                side=side.value,
                part_count=len(pieces),
                correlation_id=self._correlation_id,
            )

        return pieces

    # -------------------------------------------------------------------------
    # Totals and commit
    # -------------------------------------------------------------------------

    def totals(self, include_draft: bool = False) -> BalanceTotals:
        """Running totals of the batch, optionally with the draft."""
        draft = self._draft if include_draft else None
        return compute_totals(self._lines, draft=draft, tolerance=self._gate.tolerance)

    def totals_by_prefix(self, prefix_len: Optional[int] = None) -> dict[str, BalanceTotals]:
        """Turnover of the batch per account-number prefix."""
        return group_totals_by_prefix(self._lines, prefix_len, tolerance=self._gate.tolerance)

    def check(self) -> CommitDecision:
        """Commit gate decision for the batch as it stands."""
        return self._gate.evaluate(self._lines, currency=self._header.currency)

    async def commit(self) -> CommitReceipt:
        """
        Validate and persist the batch.

        CRITICAL: The batch is handed to persistence whole or not at all.

        Raises:
            EntryValidationError: the commit gate refused the batch
            PersistenceError: storage failed; the batch is kept for retry
        """
        self._require_commit()
        decision = self.check()

        if not decision.eligible:
            if self._audit_logger:
                await self._audit_logger.log_commit_rejected(
                    document_id=self._header.document_id,
                    issues=[issue.model_dump(mode="json") for issue in decision.issues],
                    correlation_id=self._correlation_id,
                )
            raise EntryValidationError(
                self._gate.get_user_friendly_summary(decision),
                issues=decision.issues,
                decision=decision,
            )

        if self._storage is None:
            raise PersistenceError("No storage configured for this session")

        # Edits wait until storage answers
        self._committing = True
        try:
            receipt = await self._storage.save_batch(
                self._header,
                list(self._lines),
                replace=self._replace,
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_persistence_failed(
                    document_id=self._header.document_id,
                    error_message=str(e),
                    correlation_id=self._correlation_id,
                )
            raise PersistenceError(str(e)) from e
        finally:
            self._committing = False

        self._lines = []
        self._draft = self._fresh_draft()
        # The document now exists; later commits overwrite it
        self._replace = True

        if self._audit_logger:
            await self._audit_logger.log_batch_committed(
                document_id=self._header.document_id,
                line_count=receipt.line_count,
                currency=receipt.currency,
                correlation_id=self._correlation_id,
            )

        return receipt

    async def discard(self) -> int:
        """
        Drop every unsaved line and the draft.

        Returns the number of lines dropped.
        """
        self._require_idle("discard")
        dropped = len(self._lines)
        self._lines = []
        self._draft = self._fresh_draft()

        if self._audit_logger:
            await self._audit_logger.log_draft_discarded(
                document_id=self._header.document_id,
                line_count=dropped,
                correlation_id=self._correlation_id,
            )

        return dropped


def create_session(
    header: Optional[DocumentHeader] = None,
    use_storage: bool = True,
    capabilities: Optional[EditingCapabilities] = None,
    tolerance: Optional[Decimal] = None,
) -> EntrySession:
    """
    Factory function to create a wired entry session.

    Args:
        header: Document to edit; a new document when omitted
        use_storage: Whether to attach in-memory ledger and audit storage.
                    Set to False for a session that can only validate.
        capabilities: What the user may do; full editing when omitted
        tolerance: Balance tolerance; the configured one when omitted

    Returns:
        EntrySession
    """
    if use_storage:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        storage = None
        audit_logger = AuditLogger()  # Local-only logging

    return EntrySession(
        header=header or DocumentHeader(),
        storage=storage,
        audit_logger=audit_logger,
        gate=CommitGate(tolerance),
        capabilities=capabilities,
    )
