"""
session.py — selection state and the render model built from it.

SessionState is owned by the scheduler's consumer task; nothing else writes
to it. States:

    UNSELECTED      no provider selected (initial)
    SELECTED_VALID  provider selected, last generation succeeded
    SELECTED_ERROR  provider selected, last generation failed

current_code and current_provider_name are set together or not at all.
A render model carries a code only together with the remaining seconds of
that code's own window; between a rollover and the next refresh the code
is left out.
"""

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from otp_auth.core import otp_engine
from otp_auth.core.errors import CodeGenerationError

logger = logging.getLogger(__name__)

WELCOME_HEADLINE = "Welcome to OTP Auth!"
OTP_HEADLINE = "Your OTP"
ERROR_HEADLINE = "Error"
NO_SELECTION_NOTICE = "No providers available or no provider selected"


class SessionStatus(enum.Enum):
    UNSELECTED = "unselected"
    SELECTED_VALID = "selected-valid"
    SELECTED_ERROR = "selected-error"


@dataclass(frozen=True)
class RenderModel:
    """Plain fields for any presentation layer; no markup, no escaping."""

    headline: str
    provider_name: Optional[str] = None
    code: Optional[str] = None
    remaining_seconds: Optional[int] = None
    error_message: str = ""
    notice: str = ""

    def to_dict(self) -> dict:
        return {
            "headline": self.headline,
            "provider_name": self.provider_name,
            "code": self.code,
            "remaining_seconds": self.remaining_seconds,
            "error_message": self.error_message,
            "notice": self.notice,
        }


class SessionState:
    """
    The selected provider and its current code.

    *providers* is any indexable sequence of objects with .name / .secret
    (the ProviderStore in practice). *clock* returns epoch seconds.
    """

    def __init__(self, providers: Sequence, clock: Callable[[], float] = time.time):
        self._providers = providers
        self._clock = clock
        self.selected_index: Optional[int] = None
        self.current_code: Optional[str] = None
        self.current_provider_name: Optional[str] = None
        self.code_window: Optional[int] = None
        # generation failure for the selected provider
        self.error_message = ""
        # result of the last user action (add, read secret, ...)
        self.action_error = ""
        self.notice = ""

    @property
    def status(self) -> SessionStatus:
        if self.selected_index is None:
            return SessionStatus.UNSELECTED
        if self.current_code is None:
            return SessionStatus.SELECTED_ERROR
        return SessionStatus.SELECTED_VALID

    # --- Transitions -------------------------------------------------------
    def select(self, index: Optional[int], now: Optional[float] = None) -> SessionStatus:
        """Select provider *index* and generate its code right away."""
        if index is None or not 0 <= index < len(self._providers):
            logger.debug("select(%r): no such provider, clearing selection", index)
            self._clear()
            return self.status
        self.selected_index = index
        self._generate(now)
        return self.status

    def refresh(self, now: Optional[float] = None) -> SessionStatus:
        """Regenerate the code of the current selection. No-op when unselected."""
        if self.selected_index is None:
            return self.status
        if self.selected_index >= len(self._providers):
            self._clear()
            return self.status
        self._generate(now)
        return self.status

    def provider_removed(self, index: int) -> None:
        """Keep the selection pointing at the same provider after a removal."""
        if self.selected_index is None:
            return
        if index == self.selected_index:
            self._clear()
        elif index < self.selected_index:
            self.selected_index -= 1
        if self.selected_index is not None and self.selected_index >= len(self._providers):
            self._clear()

    def set_notice(self, notice: str = "", error: str = "") -> None:
        self.notice = notice
        self.action_error = error

    def _clear(self) -> None:
        self.selected_index = None
        self.current_code = None
        self.current_provider_name = None
        self.code_window = None
        self.error_message = ""

    def _generate(self, now: Optional[float]) -> None:
        instant = self._clock() if now is None else now
        provider = self._providers[self.selected_index]
        try:
            code = otp_engine.generate(provider.secret, instant)
        except CodeGenerationError as e:
            logger.warning("code generation failed for %r: %s", provider.name, e)
            self.current_code = None
            self.current_provider_name = None
            self.code_window = None
            self.error_message = str(e)
            return
        self.current_code = code
        self.current_provider_name = provider.name
        self.code_window = otp_engine.window_of(instant)
        self.error_message = ""

    # --- Queries -----------------------------------------------------------
    def code_expired(self, now: Optional[float] = None) -> bool:
        """True when the displayed code belongs to a window that has rolled over."""
        if self.code_window is None:
            return False
        instant = self._clock() if now is None else now
        return otp_engine.window_of(instant) != self.code_window

    def render_model(self, now: Optional[float] = None) -> RenderModel:
        instant = self._clock() if now is None else now
        status = self.status
        if status is SessionStatus.UNSELECTED:
            return RenderModel(
                headline=WELCOME_HEADLINE,
                error_message=self.action_error,
                notice=self.notice or NO_SELECTION_NOTICE,
            )
        if status is SessionStatus.SELECTED_ERROR:
            return RenderModel(
                headline=ERROR_HEADLINE,
                provider_name=self._providers[self.selected_index].name,
                error_message=self.action_error or self.error_message,
                notice=self.notice,
            )
        if self.code_expired(instant):
            # never pair an old window's code with the new window's countdown
            return RenderModel(
                headline=OTP_HEADLINE,
                provider_name=self.current_provider_name,
                error_message=self.action_error,
                notice=self.notice,
            )
        return RenderModel(
            headline=OTP_HEADLINE,
            provider_name=self.current_provider_name,
            code=self.current_code,
            remaining_seconds=otp_engine.remaining_seconds(instant),
            error_message=self.action_error,
            notice=self.notice,
        )
