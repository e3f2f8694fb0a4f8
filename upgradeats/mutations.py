import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from .errors import GatewayError
from .models import MODELS, Record

logger = logging.getLogger(__name__)

# Orders only change through the order lifecycle, never through the forms.
EDITABLE_TABLES = ("products", "team_members", "features", "feedbacks")

SAVED = "Data berhasil disimpan!"
BUSY = "Permintaan sebelumnya masih diproses."


@dataclass
class FormState:
    table: str
    values: Dict[str, object] = field(default_factory=dict)

    @property
    def is_edit(self) -> bool:
        return bool(self.values.get("id"))


@dataclass(frozen=True)
class Confirmation:
    table: str
    ids: Tuple[int, ...]
    message: str
    bulk: bool = False


def _record_id(value) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


def _form_values(record: Record) -> dict:
    values = record.model_dump(mode="json")
    values.pop("created_at", None)
    return values


class MutationOrchestrator:
    """Turns form submissions and delete requests into gateway writes."""

    def __init__(self, gateway, store, notifier, list_view):
        self.gateway = gateway
        self.store = store
        self.notifier = notifier
        self.list_view = list_view
        self.form: Optional[FormState] = None
        self.pending: Optional[Confirmation] = None
        self._in_flight = set()
        self._lock = threading.Lock()

    def open_form(self, table: str, record: Optional[Record] = None) -> Optional[FormState]:
        if not self._check_table(table):
            return None
        self.form = FormState(table, _form_values(record) if record else {})
        return self.form

    def close_form(self):
        self.form = None

    def _begin(self, key) -> bool:
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def _end(self, key):
        with self._lock:
            self._in_flight.discard(key)

    def _check_table(self, table: str) -> bool:
        if table in EDITABLE_TABLES:
            return True
        self.notifier.error(f"Tabel {table} tidak dapat diubah dari sini.")
        return False

    def submit(self, table: str, form_state: dict) -> bool:
        """Insert the form as a new row, or update the row named by its ``id``."""
        if not self._check_table(table):
            return False
        values = {
            key: value.strip() if isinstance(value, str) else value
            for key, value in form_state.items()
        }
        # The form stays open with what was typed until the write succeeds.
        self.form = FormState(table, dict(values))

        model = MODELS[table]
        try:
            record_id = _record_id(values.pop("id", None))
        except ValueError:
            self.notifier.error("ID tidak valid.")
            return False
        missing = [name for name in model.required_fields() if values.get(name) in (None, "")]
        if missing:
            self.notifier.error(f"Field wajib diisi: {', '.join(missing)}")
            return False
        try:
            row = model.model_validate(values).to_row()
        except ValidationError as exc:
            self.notifier.error(f"Data tidak valid: {exc.errors()[0]['msg']}")
            return False

        if not self._begin(table):
            self.notifier.error(BUSY)
            return False
        try:
            if record_id is not None:
                self.gateway.update(table, record_id, row)
                logger.info("Updated %s #%d", table, record_id)
            else:
                inserted = self.gateway.insert(table, row)
                logger.info("Inserted into %s: #%s", table, inserted.get("id"))
        except GatewayError as exc:
            logger.warning("Saving to %s failed: %s", table, exc.message)
            self.notifier.error(exc.message)
            return False
        finally:
            self._end(table)

        self.close_form()
        self.notifier.success(SAVED)
        self.store.refresh()
        return True

    def request_delete(self, table: str, record_id: int) -> Optional[Confirmation]:
        if not self._check_table(table):
            return None
        self.pending = Confirmation(table, (record_id,), "Hapus data ini selamanya?")
        return self.pending

    def request_bulk_delete(self, table: str) -> Optional[Confirmation]:
        if not self.list_view.selected or not self._check_table(table):
            return None
        ids = tuple(sorted(self.list_view.selected))
        self.pending = Confirmation(table, ids, f"Hapus {len(ids)} item yang dipilih?", bulk=True)
        return self.pending

    def cancel(self):
        self.pending = None

    def confirm(self) -> bool:
        """Run the delete waiting for confirmation, if any."""
        pending, self.pending = self.pending, None
        if pending is None:
            return False
        if not self._begin(pending.table):
            self.notifier.error(BUSY)
            return False
        try:
            self.gateway.delete(pending.table, pending.ids)
        except GatewayError as exc:
            logger.warning("Deleting from %s failed: %s", pending.table, exc.message)
            self.notifier.error(exc.message)
            return False
        finally:
            self._end(pending.table)

        logger.info("Deleted %s ids=%s", pending.table, list(pending.ids))
        if pending.bulk:
            self.list_view.clear_selection()
            self.notifier.success(f"{len(pending.ids)} data dihapus")
        else:
            self.list_view.selected.discard(pending.ids[0])
            self.notifier.success("Data dihapus")
        self.store.refresh()
        return True
