"""Events accepted by the RefreshScheduler queue."""

from dataclasses import dataclass
from typing import NamedTuple, Optional

from otp_auth.core.errors import OTPAuthError
from otp_auth.core.session import RenderModel


@dataclass(frozen=True)
class CoarseTick:
    """Regenerate the code of the selected provider."""

    now: Optional[float] = None


@dataclass(frozen=True)
class FineTick:
    """Update the countdown only."""

    now: Optional[float] = None


@dataclass(frozen=True)
class SelectProvider:
    index: Optional[int]


@dataclass(frozen=True)
class ProviderForm:
    """
    What the user typed into the "add provider" form.

    Built by the input layer and passed by value; either *secret* or
    *file_path* carries the secret.
    """

    name: str = ""
    secret: str = ""
    file_path: str = ""


@dataclass(frozen=True)
class AddProvider:
    form: ProviderForm


@dataclass(frozen=True)
class RemoveProvider:
    index: int


@dataclass(frozen=True)
class ShowMessage:
    """Display a notice or an error produced outside the queue (picker, file read)."""

    notice: str = ""
    error: str = ""


@dataclass(frozen=True)
class ListProviders:
    pass


@dataclass(frozen=True)
class Snapshot:
    """Ask for the current render model without changing anything."""

    render: bool = False


class Reply(NamedTuple):
    model: RenderModel
    error: Optional[OTPAuthError] = None
    value: object = None
