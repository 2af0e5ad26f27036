"""Textual front end for PinVault.

Start here with `python -m pinvault.frontend.cli.app` or `python main.py`.

All engine calls run in thread workers. Most derive a key with 100k PBKDF2
rounds, and lock() waits for any write in flight, so on the event loop they
would freeze the UI.
"""

from __future__ import annotations

import argparse
from typing import Optional

from pyperclip import PyperclipException
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Select,
    Static,
)

from pinvault.core.exceptions import AuthenticationError, PinVaultError, ValidationError
from pinvault.core.models import ItemCategory, VaultItem
from pinvault.core.validators import PIN_MAX_LENGTH, PIN_MIN_LENGTH
from pinvault.frontend.cli.clipboard import copy_item_field
from pinvault.frontend.cli.context import (
    BACKENDS,
    LOG_FILENAME,
    AppContext,
    build_context,
    resolve_backend,
    resolve_home,
    resolve_log_level,
)
from pinvault.frontend.cli.logging_config import configure_logging
from pinvault.frontend.cli.labels import (
    category_icon,
    category_name,
    category_options,
    field_labels,
    filter_items,
    mask,
)

AUTH_FAILED_MESSAGE = "Wrong PIN or corrupted data."
SECRET_REVEAL_SECONDS = 5


def describe_error(exc: Exception) -> str:
    # Authentication failures get one fixed message whatever caused them.
    if isinstance(exc, AuthenticationError):
        return AUTH_FAILED_MESSAGE
    return str(exc) or exc.__class__.__name__


def pin_problem(pin: str) -> Optional[str]:
    if not pin.isdigit():
        return "PIN must contain digits only"
    if not PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH:
        return f"PIN must be {PIN_MIN_LENGTH} to {PIN_MAX_LENGTH} digits"
    return None


# === Modal definitions ===


class PinPromptModal(ModalScreen[Optional[str]]):
    """Ask for the PIN again before a change is written."""

    def __init__(self, action_label: str):
        super().__init__()
        self.action_label = action_label

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(f"Confirm PIN to {self.action_label}", classes="title")
            self.pin_input = Input(
                placeholder="••••",
                password=True,
                max_length=PIN_MAX_LENGTH,
                restrict=r"[0-9]*",
                id="pin",
            )
            yield self.pin_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Confirm (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.pin_input)

    def _submit(self) -> None:
        pin = self.pin_input.value or ""
        problem = pin_problem(pin)
        if problem:
            self.app.notify(problem, severity="error")
            return
        self.dismiss(pin)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
        else:
            self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class ItemFormModal(ModalScreen[Optional[VaultItem]]):
    """Create a new item, or edit ``item`` when given."""

    def __init__(self, item: Optional[VaultItem] = None):
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        item = self.item
        category = item.category if item else ItemCategory.LOGIN
        primary_label, secondary_label = field_labels(category)
        with Vertical(classes="dialog"):
            yield Static("Edit Item" if item else "New Item", classes="title")
            yield Label("Title")
            self.title_input = Input(value=item.title if item else "", id="title")
            yield self.title_input
            yield Label("Category")
            self.category_select = Select(
                category_options(), value=category, allow_blank=False, id="category"
            )
            yield self.category_select
            self.primary_label = Label(primary_label)
            yield self.primary_label
            self.primary_input = Input(value=item.primary_field if item else "", id="primary")
            yield self.primary_input
            self.secondary_label = Label(secondary_label)
            yield self.secondary_label
            self.secondary_input = Input(
                value=(item.secondary_field or "") if item else "",
                password=True,
                id="secondary",
            )
            yield self.secondary_input
            yield Label("Notes")
            self.notes_input = Input(value=(item.notes or "") if item else "", id="notes")
            yield self.notes_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.title_input)

    def on_select_changed(self, event: Select.Changed) -> None:  # pragma: no cover
        if isinstance(event.value, ItemCategory):
            primary, secondary = field_labels(event.value)
            self.primary_label.update(primary)
            self.secondary_label.update(secondary)

    def _submit(self) -> None:
        title = (self.title_input.value or "").strip()
        if not title:
            self.app.notify("Title is required", severity="error")
            return
        fields = dict(
            title=title,
            category=self.category_select.value,
            primary_field=self.primary_input.value or "",
            secondary_field=self.secondary_input.value or None,
            notes=self.notes_input.value or None,
        )
        if self.item is not None:
            self.dismiss(self.item.replace(**fields))
        else:
            self.dismiss(VaultItem(**fields))

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
        else:
            self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)


class DeleteConfirmModal(ModalScreen[Optional[bool]]):
    def __init__(self, prompt: str):
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static(self.prompt)
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Delete (Enter)", id="ok", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        self.dismiss(event.button.id == "ok")

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(False)
        elif event.key == "enter":
            self.dismiss(True)


class ErrorModal(ModalScreen[None]):
    """Modal for displaying error messages prominently."""

    def __init__(self, title: str, message: str):
        super().__init__()
        self.error_title = title
        self.error_message = message

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static(self.error_title, classes="title")
            yield Static(self.error_message)
            yield Static("")
            yield Button("OK", id="ok", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        self.dismiss(None)

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key in ("escape", "enter"):
            self.dismiss(None)


# === Screens ===


class LockScreen(Screen):
    """PIN entry. With ``setup`` set, asks for a new PIN and its confirmation."""

    def __init__(self, setup: bool):
        super().__init__()
        self.setup = setup

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(classes="dialog", id="lock"):
            title = "Set up PinVault" if self.setup else "Welcome back"
            yield Static(title, classes="title")
            yield Label(
                f"Choose a {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digit PIN"
                if self.setup
                else "Enter your PIN"
            )
            self.pin_input = Input(
                placeholder="••••",
                password=True,
                max_length=PIN_MAX_LENGTH,
                restrict=r"[0-9]*",
                id="pin",
            )
            yield self.pin_input
            self.confirm_input: Input | None = None
            if self.setup:
                yield Label("Confirm PIN")
                self.confirm_input = Input(
                    placeholder="••••",
                    password=True,
                    max_length=PIN_MAX_LENGTH,
                    restrict=r"[0-9]*",
                    id="confirm",
                )
                yield self.confirm_input
            self.error_line = Static("", id="lock-error")
            yield self.error_line
            yield Button("Continue" if self.setup else "Unlock", id="submit", variant="primary")
        yield Footer()

    def on_mount(self) -> None:
        self.set_focus(self.pin_input)

    def show_error(self, message: str) -> None:
        self.error_line.update(message)

    def submit(self) -> None:
        pin = self.pin_input.value or ""
        problem = pin_problem(pin)
        if problem:
            self.show_error(problem)
            return
        if self.setup:
            confirm = self.confirm_input.value if self.confirm_input else ""
            if pin != confirm:
                self.show_error("PINs do not match")
                self.confirm_input.value = ""
                return
        self.show_error("Working...")
        self.app.open_vault(pin, setup=self.setup)
        self.pin_input.value = ""
        if self.confirm_input is not None:
            self.confirm_input.value = ""

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "submit":
            self.submit()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if self.setup and event.input is self.pin_input:
            self.set_focus(self.confirm_input)
            return
        self.submit()


class VaultScreen(Screen):
    """Searchable item list with a detail pane."""

    BINDINGS = [
        ("a", "add_item", "Add"),
        ("e", "edit_item", "Edit"),
        ("d", "delete_item", "Delete"),
        ("c", "copy_primary", "Copy user"),
        ("y", "copy_secondary", "Copy secret"),
        ("s", "toggle_secrets", "Show/Hide"),
        ("/", "focus_search", "Search"),
        ("l", "lock", "Lock"),
    ]

    def __init__(self):
        super().__init__()
        self.row_keys: list[str] = []
        self.show_secrets = False
        self.detail_text = ""
        self._hide_timer = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            with Vertical(id="sidebar"):
                self.search_input = Input(placeholder="Search...", id="search")
                yield self.search_input
                self.table = DataTable(id="items", cursor_type="row")
                yield self.table
            with Vertical(id="main"):
                yield Static("Details", classes="title")
                self.detail = Static("", id="detail")
                yield self.detail
        self.status = Static("", id="status")
        yield self.status
        yield Footer()

    def on_mount(self) -> None:
        self.table.add_columns("", "Title", "Category")
        self.refresh_items()

    @property
    def vault(self):
        return self.app.ctx.vault

    def refresh_items(self) -> None:
        if not self.vault.is_unlocked:
            return
        items = filter_items(self.vault.current_items(), self.search_input.value)
        self.table.clear()
        self.row_keys = []
        for item in items:
            self.table.add_row(
                category_icon(item.category),
                item.title,
                category_name(item.category),
                key=item.id,
            )
            self.row_keys.append(item.id)
        self._show_detail(self.selected_item())
        self.status.update(f"{len(self.vault.current_items())} items")

    def selected_item(self) -> Optional[VaultItem]:
        idx = self.table.cursor_row
        if idx is None or not 0 <= idx < len(self.row_keys):
            return None
        try:
            return self.vault.get_item(self.row_keys[idx])
        except PinVaultError:
            return None

    def _show_detail(self, item: Optional[VaultItem]) -> None:
        if item is None:
            self.detail_text = "No item selected"
        else:
            primary_label, secondary_label = field_labels(item.category)
            lines = [f"{category_icon(item.category)} {item.title}", ""]
            # empty fields are left out
            if item.primary_field:
                lines.append(f"{primary_label}: {item.primary_field}")
            if item.secondary_field:
                secondary = item.secondary_field if self.show_secrets else mask(item.secondary_field)
                lines.append(f"{secondary_label}: {secondary}")
            if item.notes:
                lines += ["", "Notes:", item.notes]
            self.detail_text = "\n".join(lines)
        self.detail.update(self.detail_text)

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input is self.search_input:
            self.refresh_items()

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        self._show_detail(self.selected_item())

    # === Actions ===

    def action_focus_search(self) -> None:
        self.set_focus(self.search_input)

    def action_toggle_secrets(self) -> None:
        self.show_secrets = not self.show_secrets
        if self._hide_timer is not None:
            self._hide_timer.stop()
            self._hide_timer = None
        if self.show_secrets:
            self._hide_timer = self.set_timer(SECRET_REVEAL_SECONDS, self.hide_secrets)
        self._show_detail(self.selected_item())

    def hide_secrets(self) -> None:
        """Mask revealed secrets again; runs when the reveal timer fires."""
        self._hide_timer = None
        self.show_secrets = False
        self._show_detail(self.selected_item())

    def action_lock(self) -> None:
        self.status.update("Locking...")
        self.app.lock_vault()

    def action_add_item(self) -> None:
        self.app.push_screen(ItemFormModal(), self._handle_new_item)

    def _handle_new_item(self, item: Optional[VaultItem]) -> None:
        if item is None:
            return
        self.app.push_screen(
            PinPromptModal("save this item"),
            lambda pin: pin and self.app.mutate_vault("add", item, pin),
        )

    def action_edit_item(self) -> None:
        item = self.selected_item()
        if item is None:
            self.status.update("Select an item first")
            return
        self.app.push_screen(ItemFormModal(item), self._handle_edited_item)

    def _handle_edited_item(self, item: Optional[VaultItem]) -> None:
        if item is None:
            return
        self.app.push_screen(
            PinPromptModal("save changes"),
            lambda pin: pin and self.app.mutate_vault("update", item, pin),
        )

    def action_delete_item(self) -> None:
        item = self.selected_item()
        if item is None:
            self.status.update("Select an item first")
            return

        def confirmed(ok: Optional[bool]) -> None:
            if ok:
                self.app.push_screen(
                    PinPromptModal(f"delete '{item.title}'"),
                    lambda pin: pin and self.app.mutate_vault("delete", item.id, pin),
                )

        self.app.push_screen(DeleteConfirmModal(f"Delete '{item.title}'?"), confirmed)

    def _copy(self, secondary: bool) -> None:
        item = self.selected_item()
        if item is None:
            return
        try:
            copied = copy_item_field(item, secondary=secondary)
        except PyperclipException as exc:  # pragma: no cover - platform dependent
            self.status.update(f"Clipboard unavailable: {exc}")
            return
        self.status.update("Copied to clipboard" if copied else "Nothing to copy")

    def action_copy_primary(self) -> None:
        self._copy(secondary=False)

    def action_copy_secondary(self) -> None:
        self._copy(secondary=True)


class PinVaultApp(App):
    """PinVault terminal UI: lock screen plus item browser."""

    TITLE = "PinVault"

    CSS = """
    #sidebar { width: 45%; min-width: 30; border: heavy $surface; }
    #main { border: heavy $surface; padding: 0 1; }
    .title { padding: 1 1; text-style: bold; }
    #status { padding: 0 1; height: 1; color: $text-muted; }
    #lock-error { color: $error; height: 1; }
    #lock { width: 50; height: auto; margin: 2 4; }
    ModalScreen { align: center middle; background: rgba(0,0,0,0.45); }
    .dialog { width: 75%; height: auto; padding: 1; border: heavy $surface; background: $boost; }
    """

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, ctx: AppContext | None = None):
        self.ctx = ctx or build_context()
        super().__init__()

    def on_mount(self) -> None:
        self.push_screen(LockScreen(setup=self.ctx.first_run))

    # === Engine calls (thread workers) ===

    def open_vault(self, pin: str, setup: bool) -> None:
        self.run_worker(
            lambda: self._open_vault_worker(pin, setup),
            name="open_vault_worker",
            exclusive=True,
            thread=True,
        )

    def _open_vault_worker(self, pin: str, setup: bool) -> dict:
        try:
            if setup:
                self.ctx.vault.setup_pin(pin)
            else:
                self.ctx.vault.unlock(pin)
        except PinVaultError as exc:
            return {"success": False, "error": describe_error(exc)}
        return {"success": True}

    def mutate_vault(self, op: str, target, pin: str) -> None:
        self.run_worker(
            lambda: self._mutate_worker(op, target, pin),
            name="mutate_worker",
            exclusive=True,
            thread=True,
        )

    def _mutate_worker(self, op: str, target, pin: str) -> dict:
        vault = self.ctx.vault
        try:
            if op == "add":
                vault.add_item(target, pin)
            elif op == "update":
                vault.update_item(target, pin)
            elif op == "delete":
                vault.delete_item(target, pin)
            else:
                raise ValueError(f"unknown operation {op!r}")
        except PinVaultError as exc:
            return {"success": False, "op": op, "error": describe_error(exc)}
        return {"success": True, "op": op}

    def lock_vault(self) -> None:
        # lock() waits for any in-flight write, so keep it off the event loop
        self.run_worker(self.ctx.vault.lock, name="lock_worker", thread=True)

    def on_worker_state_changed(self, event) -> None:
        """Handle worker completion to update UI."""
        if not event.worker.is_finished:
            return
        worker_name = event.worker.name

        if worker_name == "lock_worker":
            if not self.ctx.vault.is_unlocked:
                self.switch_screen(LockScreen(setup=False))
            return
        if worker_name == "quit_worker":
            self.exit()
            return
        result = event.worker.result or {"success": False, "error": "Operation failed"}

        if worker_name == "open_vault_worker":
            if result["success"]:
                self.switch_screen(VaultScreen())
            elif isinstance(self.screen, LockScreen):
                self.screen.show_error(result["error"])

        elif worker_name == "mutate_worker":
            if result["success"]:
                done = {"add": "Item added", "update": "Item saved", "delete": "Item deleted"}
                self.notify(done.get(result["op"], "Saved"))
            else:
                self.push_screen(ErrorModal("Change not saved", result["error"]))
            if isinstance(self.screen, VaultScreen):
                self.screen.refresh_items()

    def action_quit(self) -> None:
        """Lock before leaving so decrypted items are dropped."""
        self.run_worker(self.ctx.vault.lock, name="quit_worker", thread=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PIN-protected encrypted secret store")
    parser.add_argument("--home", help="directory holding the vault (env PINVAULT_HOME)")
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        help="where the sealed vault is stored (env PINVAULT_BACKEND)",
    )
    parser.add_argument("--log-level", help="logging level (env PINVAULT_LOG_LEVEL)")
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv=None) -> None:
    """Run the PinVault Textual application."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        home = resolve_home(args.home)
        backend = resolve_backend(args.backend)
        level = resolve_log_level(args.log_level)
    except ValidationError as exc:
        parser.error(str(exc))
    # handlers must exist before the controller logs its opening state
    configure_logging(level, log_file=home / LOG_FILENAME)
    ctx = build_context(home=home, backend=backend)
    PinVaultApp(ctx=ctx).run()


if __name__ == "__main__":  # pragma: no cover
    main()
