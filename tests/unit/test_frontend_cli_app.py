"""Unit tests for the PinVault Textual App (Frontend)."""

from unittest.mock import MagicMock, patch

import pytest

from pinvault.core.exceptions import AuthenticationError, StorageError
from pinvault.core.models import VaultItem, VaultState
from pinvault.core.storage import MemoryVaultStore
from pinvault.core.vault import VaultController
from pinvault.frontend.cli.app import (
    AUTH_FAILED_MESSAGE,
    SECRET_REVEAL_SECONDS,
    ErrorModal,
    LockScreen,
    PinVaultApp,
    VaultScreen,
    describe_error,
    main,
    parse_args,
    pin_problem,
)
from pinvault.frontend.cli.context import AppContext
from pinvault.security.envelope import EnvelopeCipher


# --- Fixtures ---

@pytest.fixture
def store():
    return MemoryVaultStore()


@pytest.fixture
def cipher():
    return EnvelopeCipher(iterations=1000)


@pytest.fixture
def ctx(store, cipher, tmp_path):
    """Context over an empty in-memory vault."""
    return AppContext(vault=VaultController(store, cipher=cipher), home=tmp_path)


@pytest.fixture
def locked_ctx(store, cipher, tmp_path):
    """Context over an existing vault holding two items, PIN 1234."""
    seed = VaultController(store, cipher=cipher)
    seed.setup_pin("1234")
    seed.add_item(VaultItem(title="Email", primary_field="a@b.com", secondary_field="pw"), "1234")
    seed.add_item(VaultItem(title="Router", category="Wi-Fi", primary_field="home"), "1234")
    return AppContext(vault=VaultController(store, cipher=cipher), home=tmp_path)


async def settle(app, pilot):
    # let thread workers finish and their state-change messages land
    await app.workers.wait_for_complete()
    await pilot.pause()
    await pilot.pause()


# --- Test 1: Utility Functions ---

def test_describe_error_hides_auth_detail():
    assert describe_error(AuthenticationError("tag mismatch")) == AUTH_FAILED_MESSAGE
    assert describe_error(StorageError("disk full")) == "disk full"


@pytest.mark.parametrize(
    "pin, ok",
    [("1234", True), ("123456", True), ("123", False), ("1234567", False), ("12a4", False), ("", False)],
)
def test_pin_problem(pin, ok):
    assert (pin_problem(pin) is None) is ok


def test_parse_args():
    args = parse_args(["--home", "/tmp/v", "--backend", "keyring", "--log-level", "DEBUG"])
    assert args.home == "/tmp/v"
    assert args.backend == "keyring"
    assert args.log_level == "DEBUG"


# --- Test 2: Lock screen ---

@pytest.mark.asyncio
async def test_first_run_shows_setup_screen(ctx):
    app = PinVaultApp(ctx=ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert isinstance(app.screen, LockScreen)
        assert app.screen.setup is True
        assert app.screen.confirm_input is not None


@pytest.mark.asyncio
async def test_existing_vault_shows_unlock_screen(locked_ctx):
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert isinstance(app.screen, LockScreen)
        assert app.screen.setup is False
        assert app.screen.confirm_input is None


@pytest.mark.asyncio
async def test_setup_flow_unlocks(ctx, store):
    app = PinVaultApp(ctx=ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        screen = app.screen
        screen.pin_input.value = "2468"
        screen.confirm_input.value = "2468"
        screen.submit()
        await settle(app, pilot)

        assert ctx.vault.state is VaultState.UNLOCKED
        assert store.record is not None
        assert isinstance(app.screen, VaultScreen)


@pytest.mark.asyncio
async def test_setup_mismatch_does_not_create_vault(ctx, store):
    app = PinVaultApp(ctx=ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        screen = app.screen
        screen.pin_input.value = "2468"
        screen.confirm_input.value = "2469"
        screen.submit()
        await settle(app, pilot)

        assert ctx.vault.state is VaultState.UNINITIALIZED
        assert store.record is None
        assert screen.confirm_input.value == ""
        assert isinstance(app.screen, LockScreen)


@pytest.mark.asyncio
async def test_wrong_pin_stays_locked(locked_ctx):
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.screen.pin_input.value = "9999"
        app.screen.submit()
        await settle(app, pilot)

        assert locked_ctx.vault.state is VaultState.LOCKED
        assert isinstance(app.screen, LockScreen)


# --- Test 3: Vault screen ---

@pytest.mark.asyncio
async def test_unlock_lists_items_then_lock(locked_ctx):
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.screen.pin_input.value = "1234"
        app.screen.submit()
        await settle(app, pilot)

        screen = app.screen
        assert isinstance(screen, VaultScreen)
        ids = [item.id for item in locked_ctx.vault.current_items()]
        assert screen.row_keys == ids
        assert screen.table.row_count == 2

        screen.search_input.value = "router"
        await pilot.pause()
        assert len(screen.row_keys) == 1

        screen.action_lock()
        await settle(app, pilot)
        assert locked_ctx.vault.state is VaultState.LOCKED
        assert isinstance(app.screen, LockScreen)


@pytest.mark.asyncio
async def test_mutation_worker_adds_item(locked_ctx):
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()

        app.mutate_vault("add", VaultItem(title="Card", category="CreditCard", primary_field="4111"), "1234")
        await settle(app, pilot)

        titles = [item.title for item in locked_ctx.vault.current_items()]
        assert titles == ["Email", "Router", "Card"]
        assert len(app.screen.row_keys) == 3


@pytest.mark.asyncio
async def test_mutation_with_wrong_pin_shows_error(locked_ctx, store):
    locked_ctx.vault.unlock("1234")
    before = store.record
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()

        app.mutate_vault("delete", locked_ctx.vault.current_items()[0].id, "0000")
        await settle(app, pilot)

        assert isinstance(app.screen, ErrorModal)
        assert app.screen.error_message == AUTH_FAILED_MESSAGE
        assert store.record == before
        assert len(locked_ctx.vault.current_items()) == 2


@pytest.mark.asyncio
async def test_lock_waits_for_write_off_the_event_loop(locked_ctx):
    """Locking while a write holds the controller keeps the UI responsive."""
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()

        busy = locked_ctx.vault._lock
        busy.acquire()
        try:
            app.screen.action_lock()
            await pilot.pause()
            # still responsive; the lock is queued behind the write
            assert isinstance(app.screen, VaultScreen)
            assert locked_ctx.vault.state is VaultState.UNLOCKED
        finally:
            busy.release()
        await settle(app, pilot)

        assert locked_ctx.vault.state is VaultState.LOCKED
        assert isinstance(app.screen, LockScreen)


@pytest.mark.asyncio
async def test_quit_locks_vault(locked_ctx):
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.action_quit()
        await app.workers.wait_for_complete()
        await pilot.pause()
    assert locked_ctx.vault.state is VaultState.LOCKED


# --- Test 4: Detail pane ---

@pytest.mark.asyncio
async def test_detail_skips_empty_fields(locked_ctx):
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()
        screen = app.screen

        router = locked_ctx.vault.current_items()[1]
        screen._show_detail(router)
        assert "Network name (SSID): home" in screen.detail_text
        assert "Password" not in screen.detail_text

        screen._show_detail(VaultItem(title="Blank", id="x"))
        assert screen.detail_text.rstrip().endswith("Blank")


@pytest.mark.asyncio
async def test_revealed_secret_is_masked_again(locked_ctx):
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()
        screen = app.screen
        assert screen.selected_item().title == "Email"
        assert "Password: ••" in screen.detail_text

        with patch.object(screen, "set_timer", wraps=screen.set_timer) as timer:
            screen.action_toggle_secrets()
        timer.assert_called_once_with(SECRET_REVEAL_SECONDS, screen.hide_secrets)
        assert "Password: pw" in screen.detail_text

        screen.hide_secrets()
        assert screen.show_secrets is False
        assert "Password: pw" not in screen.detail_text
        assert "Password: ••" in screen.detail_text


@pytest.mark.asyncio
async def test_hiding_secrets_early_cancels_timer(locked_ctx):
    locked_ctx.vault.unlock("1234")
    app = PinVaultApp(ctx=locked_ctx)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.switch_screen(VaultScreen())
        await pilot.pause()
        screen = app.screen

        screen.action_toggle_secrets()
        assert screen._hide_timer is not None
        screen.action_toggle_secrets()
        assert screen._hide_timer is None
        assert screen.show_secrets is False


# --- Test 5: Entry point ---

def test_main_configures_logging_before_opening_vault(tmp_path, monkeypatch):
    monkeypatch.delenv("PINVAULT_BACKEND", raising=False)
    monkeypatch.delenv("PINVAULT_LOG_LEVEL", raising=False)
    calls = MagicMock()
    with patch("pinvault.frontend.cli.app.configure_logging", calls.configure_logging), \
         patch("pinvault.frontend.cli.app.build_context", calls.build_context), \
         patch("pinvault.frontend.cli.app.PinVaultApp", calls.PinVaultApp):
        main(["--home", str(tmp_path), "--log-level", "debug"])

    names = [c[0] for c in calls.mock_calls]
    assert names.index("configure_logging") < names.index("build_context")
    calls.configure_logging.assert_called_once_with(10, log_file=tmp_path / "pinvault.log")
    calls.build_context.assert_called_once_with(home=tmp_path, backend="file")
    calls.PinVaultApp.return_value.run.assert_called_once()


@pytest.mark.parametrize(
    "env, value",
    [("PINVAULT_BACKEND", "cloud"), ("PINVAULT_LOG_LEVEL", "LOUD")],
)
def test_main_reports_bad_config_as_usage_error(tmp_path, monkeypatch, capsys, env, value):
    monkeypatch.delenv("PINVAULT_BACKEND", raising=False)
    monkeypatch.delenv("PINVAULT_LOG_LEVEL", raising=False)
    monkeypatch.setenv(env, value)
    with patch("pinvault.frontend.cli.app.build_context") as build:
        with pytest.raises(SystemExit) as exc:
            main(["--home", str(tmp_path)])
    assert exc.value.code == 2
    assert value.lower() in capsys.readouterr().err.lower()
    build.assert_not_called()
