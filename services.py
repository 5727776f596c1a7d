"""
Service layer

Reads a catalog snapshot, runs one engine operation, then commits the
resulting batch together with its audit log rows in a single transaction.
Events go out only after the commit.
"""

import logging
import sqlite3
from datetime import date
from typing import Optional, Sequence

import composition
import events as ev
import repositories as repo
from builder import BuildDraft
from catalog import Catalog, LinkIssue
from compatibility import CompatibleGroup, compatible_partners
from config import Settings
from events import EventBus
from item import ChangeSet, InventoryItem
from trade import IncomingDraft, execute_trade

logger = logging.getLogger(__name__)


class InventoryService:
    def __init__(self, conn: sqlite3.Connection, event_bus: EventBus, settings: Optional[Settings] = None) -> None:
        # Service owns the connection and coordinates engine operations, persistence and events.
        self._conn = conn
        self._events = event_bus
        self._settings = settings or Settings()
        self._reported_issues: frozenset[LinkIssue] = frozenset()

    @property
    def settings(self) -> Settings:
        return self._settings

    def snapshot(self) -> Catalog:
        catalog = Catalog(repo.load_items(self._conn))
        self._report_link_issues(catalog.link_issues())
        return catalog

    def _report_link_issues(self, issues: list[LinkIssue]) -> None:
        # Only a changed issue set is surfaced; repeated reads stay quiet.
        current = frozenset(issues)
        if current == self._reported_issues:
            return
        self._reported_issues = current
        if not issues:
            return
        for issue in issues:
            logger.warning(
                "Link issue: composite=%s component=%s (%s)",
                issue.composite_id, issue.component_id, issue.problem,
            )
        self._events.publish(
            ev.LINK_ISSUES_FOUND,
            issues=[(i.composite_id, i.component_id, i.problem) for i in issues],
        )

    def _commit(self, actor: str, action: str, changes: ChangeSet, message: str, before: Catalog) -> None:
        try:
            # Transaction: the whole batch plus one log row per touched record, as one unit of work.
            repo.apply_changes(self._conn, changes)
            for item in changes.created + changes.updated:
                previous = before.get(item.id)
                repo.add_log(
                    self._conn,
                    item_id=item.id,
                    actor=actor,
                    action=action,
                    message=message,
                    status_before=previous.status.value if previous else None,
                    status_after=item.status.value,
                )
            for item_id in changes.deleted:
                previous = before.get(item_id)
                repo.add_log(
                    self._conn,
                    item_id=item_id,
                    actor=actor,
                    action=action,
                    message=f"Deleted '{previous.name}'. {message}".strip() if previous else message,
                    status_before=previous.status.value if previous else None,
                )
            self._conn.commit()
        except sqlite3.Error as e:
            # Roll back on any DB error to avoid half-updated links.
            self._conn.rollback()
            raise RuntimeError(f"Database error while applying {action.lower()}: {e}") from e
        except Exception:
            # Anything else must not leave rows behind for the next commit to pick up.
            self._conn.rollback()
            raise
        logger.info("%s by %s: %d records changed", action, actor, len(changes.touched_ids()))

    def add_item(self, actor: str, item: InventoryItem) -> str:
        before = self.snapshot()
        # Business rule: ids are unique and composites only come from build/bundle operations.
        if item.id in before:
            raise ValueError(f"An item with id '{item.id}' already exists.")
        if item.is_composite or item.component_ids:
            raise ValueError("Use a build or bundle operation to create composites.")
        self._commit(actor, "CREATE_ITEM", ChangeSet(created=[item]), f"Created '{item.name}'.", before)
        return item.id

    def get_item(self, item_id: str) -> Optional[InventoryItem]:
        return self.snapshot().get(item_id)

    def list_items(self) -> list[InventoryItem]:
        return self.snapshot().items()

    def compatible_partners(self, item_id: str) -> list[CompatibleGroup]:
        catalog = self.snapshot()
        return compatible_partners(catalog.require(item_id), catalog)

    def new_build(self) -> BuildDraft:
        return BuildDraft(
            max_name_length=self._settings.build_name_max_length,
            default_name=self._settings.default_build_name,
        )

    def edit_build(self, composite_id: str) -> BuildDraft:
        return BuildDraft.from_composite(
            self.snapshot(),
            composite_id,
            max_name_length=self._settings.build_name_max_length,
            default_name=self._settings.default_build_name,
        )

    def save_build(self, actor: str, draft: BuildDraft) -> str:
        # Validation happens before anything is read or written.
        draft.validate(enforce_required_slots=self._settings.enforce_required_slots)
        before = self.snapshot()
        changes = composition.assemble(
            before,
            draft.name,
            [i.id for i in draft.selected_items()],
            composite_id=draft.editing_id,
        )
        composite = (changes.created or changes.updated)[0]
        action = "UPDATE_BUILD" if draft.editing_id else "ASSEMBLE_BUILD"
        self._commit(actor, action, changes, f"Build '{composite.name}'.", before)

        # Publish event after commit so subscribers never see rolled-back state.
        self._events.publish(
            ev.COMPOSITE_UPDATED if draft.editing_id else ev.COMPOSITE_ASSEMBLED,
            composite_id=composite.id,
            composite_name=composite.name,
            component_ids=list(composite.component_ids),
        )
        return composite.id

    def create_smart_bundle(self, actor: str, name: str, component_ids: Sequence[str]) -> str:
        before = self.snapshot()
        changes = composition.assemble(before, name, component_ids, bundle=True)
        bundle = changes.created[0]
        self._commit(actor, "ASSEMBLE_BUNDLE", changes, f"Bundle '{bundle.name}'.", before)
        self._events.publish(
            ev.COMPOSITE_ASSEMBLED,
            composite_id=bundle.id,
            composite_name=bundle.name,
            component_ids=list(bundle.component_ids),
        )
        return bundle.id

    def sell_composite(
        self,
        actor: str,
        composite_id: str,
        sell_price: float,
        sell_date: Optional[str] = None,
        *,
        fee_amount: float = 0.0,
        payment_type: Optional[str] = None,
        platform_sold: Optional[str] = None,
    ) -> None:
        before = self.snapshot()
        changes = composition.sell_composite(
            before, composite_id, sell_price, sell_date,
            fee_amount=fee_amount, payment_type=payment_type, platform_sold=platform_sold,
        )
        sold = changes.find(composite_id)
        # Transaction: composite and every component flip to SOLD together.
        self._commit(actor, "SELL_COMPOSITE", changes, f"Sold for {sell_price:.2f}.", before)
        self._events.publish(
            ev.COMPOSITE_SOLD, composite_id=composite_id, sell_date=sold.sell_date if sold else sell_date,
        )

    def dismantle(self, actor: str, composite_id: str) -> list[str]:
        before = self.snapshot()
        changes = composition.dismantle(before, composite_id)
        released = [i.id for i in changes.updated]
        # Transaction: deleting the composite and releasing its parts is one batch.
        self._commit(actor, "DISMANTLE", changes, f"Released {len(released)} components.", before)
        self._events.publish(ev.COMPOSITE_DISMANTLED, composite_id=composite_id, released_ids=released)
        return released

    def preview_retro_bundle(self, item_ids: Sequence[str]) -> composition.RetroBundleSummary:
        # Read-only: nothing is written for a preview.
        return composition.summarize_retro_bundle(self.snapshot(), item_ids)

    def create_retro_bundle(
        self,
        actor: str,
        item_ids: Sequence[str],
        *,
        name: Optional[str] = None,
        sell_date: Optional[str] = None,
    ) -> str:
        before = self.snapshot()
        changes = composition.retro_bundle(before, item_ids, name=name, sell_date=sell_date)
        bundle = changes.created[0]
        self._commit(actor, "RETRO_BUNDLE", changes, f"Bundle '{bundle.name}'.", before)
        self._events.publish(
            ev.RETRO_BUNDLE_CREATED, composite_id=bundle.id, margin=bundle.profit,
            component_ids=list(bundle.component_ids),
        )
        return bundle.id

    def trade(
        self,
        actor: str,
        outgoing_id: str,
        incoming: Sequence[IncomingDraft],
        cash_delta: float = 0.0,
        trade_date: Optional[str] = None,
        note: str = "",
    ) -> list[str]:
        before = self.snapshot()
        changes = execute_trade(
            before, outgoing_id, incoming, cash_delta, trade_date or date.today().isoformat(), note
        )
        acquired = [i.id for i in changes.created]
        # Transaction: outgoing item, acquired items and their trade links land together.
        self._commit(actor, "TRADE", changes, note.strip(), before)
        self._events.publish(
            ev.ITEM_TRADED, item_id=outgoing_id, acquired_ids=acquired, cash_delta=cash_delta,
        )
        return acquired

    def list_logs(self, item_id: Optional[str] = None, limit: int = 50):
        return repo.list_logs(self._conn, item_id=item_id, limit=limit)
