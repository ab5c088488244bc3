import pytest

from otp_auth.core import otp_engine
from otp_auth.core.session import (
    ERROR_HEADLINE,
    NO_SELECTION_NOTICE,
    OTP_HEADLINE,
    WELCOME_HEADLINE,
    SessionState,
    SessionStatus,
)
from otp_auth.database.provider_store import Provider
from tests.conftest import DEMO_SECRET, RFC_CODES, RFC_SECRET, FakeClock

BAD = Provider("broken", "not-base32!")


@pytest.fixture
def providers():
    return [Provider("rfc", RFC_SECRET), Provider("demo", DEMO_SECRET)]


@pytest.fixture
def session(providers):
    return SessionState(providers, FakeClock(59.0))


def _assert_pair_invariant(session):
    assert (session.current_code is None) == (session.current_provider_name is None)


def test_initial_state_is_unselected(session):
    assert session.status is SessionStatus.UNSELECTED
    model = session.render_model()
    assert model.headline == WELCOME_HEADLINE
    assert model.code is None
    assert model.provider_name is None
    assert model.error_message == ""
    assert model.notice == NO_SELECTION_NOTICE


def test_empty_list_renders_welcome():
    session = SessionState([], FakeClock(0))
    model = session.render_model()
    assert model.headline == WELCOME_HEADLINE
    assert model.error_message == ""
    assert model.code is None


def test_select_generates_code(session):
    assert session.select(0) is SessionStatus.SELECTED_VALID
    assert session.current_code == RFC_CODES[1]
    assert session.current_provider_name == "rfc"

    model = session.render_model()
    assert model.headline == OTP_HEADLINE
    assert model.code == RFC_CODES[1]
    assert model.provider_name == "rfc"
    assert model.remaining_seconds == 1


def test_select_twice_in_same_window_is_idempotent(session):
    session.select(1, now=31)
    first = session.current_code
    session.select(1, now=58)
    assert session.current_code == first
    assert session.selected_index == 1


@pytest.mark.parametrize("index", [-1, 2, 99, None])
def test_select_out_of_range_clears(session, index):
    session.select(0)
    assert session.select(index) is SessionStatus.UNSELECTED
    assert session.selected_index is None
    assert session.current_code is None
    assert session.current_provider_name is None


def test_select_with_no_providers():
    session = SessionState([], FakeClock(0))
    assert session.select(0) is SessionStatus.UNSELECTED


def test_generation_failure_moves_to_error_state():
    session = SessionState([BAD], FakeClock(59))
    assert session.select(0) is SessionStatus.SELECTED_ERROR
    _assert_pair_invariant(session)
    assert session.current_code is None
    assert session.selected_index == 0
    assert "failed to generate code" in session.error_message

    model = session.render_model()
    assert model.headline == ERROR_HEADLINE
    assert model.code is None
    assert model.error_message


def test_valid_to_error_and_back(providers):
    session = SessionState(providers, FakeClock(59))
    session.select(0)
    assert session.status is SessionStatus.SELECTED_VALID

    providers[0] = BAD
    assert session.refresh() is SessionStatus.SELECTED_ERROR
    _assert_pair_invariant(session)

    providers[0] = Provider("rfc", RFC_SECRET)
    assert session.refresh(now=60) is SessionStatus.SELECTED_VALID
    assert session.current_code == RFC_CODES[2]
    assert session.error_message == ""


def test_refresh_without_selection_does_not_generate(session, monkeypatch):
    def explode(*args, **kwargs):
        raise AssertionError("generate must not be called")

    monkeypatch.setattr(otp_engine, "generate", explode)
    assert session.refresh() is SessionStatus.UNSELECTED
    assert session.current_code is None


def test_refresh_keeps_selected_index(session):
    session.select(1)
    for now in (60, 90, 120):
        session.refresh(now)
        assert session.selected_index == 1


def test_refresh_follows_window(session):
    session.select(0, now=59)
    session.refresh(now=60)
    assert session.current_code == RFC_CODES[2]


def test_removing_selected_provider_unselects(providers):
    session = SessionState(providers, FakeClock(59))
    session.select(1)
    del providers[1]
    session.provider_removed(1)
    assert session.status is SessionStatus.UNSELECTED
    _assert_pair_invariant(session)


def test_removing_earlier_provider_shifts_index(providers):
    session = SessionState(providers, FakeClock(59))
    session.select(1)
    del providers[0]
    session.provider_removed(0)
    assert session.selected_index == 0
    assert session.current_provider_name == "demo"


def test_removing_later_provider_keeps_index(providers):
    session = SessionState(providers, FakeClock(59))
    session.select(0)
    del providers[1]
    session.provider_removed(1)
    assert session.selected_index == 0


def test_refresh_after_list_emptied_unselects(providers):
    session = SessionState(providers, FakeClock(59))
    session.select(1)
    providers.clear()
    assert session.refresh() is SessionStatus.UNSELECTED


def test_code_expired(session):
    assert not session.code_expired(59)
    session.select(0, now=45)
    assert not session.code_expired(59)
    assert session.code_expired(60)


def test_stale_code_is_not_rendered_with_new_countdown(session):
    session.select(0, now=59)
    model = session.render_model(now=60)
    assert model.headline == OTP_HEADLINE
    assert model.provider_name == "rfc"
    assert model.code is None
    assert model.remaining_seconds is None

    session.refresh(now=60)
    model = session.render_model(now=60)
    assert (model.code, model.remaining_seconds) == (RFC_CODES[2], 30)


def test_action_error_is_shown(session):
    session.set_notice(error="Secret cannot be empty")
    assert session.render_model().error_message == "Secret cannot be empty"
    session.set_notice()
    assert session.render_model().error_message == ""
