"""Receiver endpoint models: the services an environment update is sent to."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ReceiverRole(str, Enum):
    """How a receiver takes its part of the update."""

    PER_PAIR = "per_pair"  # one call per variable, args (name, value)
    BULK = "bulk"  # one call, args (mapping,)
    STRICT = "strict"  # one call, args (["NAME=VALUE", ...],)


class ReceiverEndpoint(BaseModel):
    """A single method on a session-bus service.

    ``signature`` is the D-Bus argument signature the method expects.
    """

    model_config = ConfigDict(frozen=True)

    label: str
    role: ReceiverRole
    service: str
    object_path: str
    interface: str
    method: str
    signature: str

    @property
    def address(self) -> str:
        """Human-readable ``service path interface.method`` form."""
        return f"{self.service} {self.object_path} {self.interface}.{self.method}"


class ReceiverCatalog(BaseModel):
    """The four receivers an update job addresses.

    Two legacy receivers take one call per variable; the D-Bus activation
    environment takes the whole mapping; the systemd user manager takes
    ``NAME=VALUE`` strings for values it can parse.
    """

    model_config = ConfigDict(frozen=True)

    launcher: ReceiverEndpoint = ReceiverEndpoint(
        label="klauncher",
        role=ReceiverRole.PER_PAIR,
        service="org.kde.klauncher5",
        object_path="/KLauncher",
        interface="org.kde.KLauncher",
        method="setLaunchEnv",
        signature="ss",
    )
    session_startup: ReceiverEndpoint = ReceiverEndpoint(
        label="plasma-session",
        role=ReceiverRole.PER_PAIR,
        service="org.kde.Startup",
        object_path="/Startup",
        interface="org.kde.Startup",
        method="updateLaunchEnv",
        signature="ss",
    )
    activation: ReceiverEndpoint = ReceiverEndpoint(
        label="dbus-activation",
        role=ReceiverRole.BULK,
        service="org.freedesktop.DBus",
        object_path="/org/freedesktop/DBus",
        interface="org.freedesktop.DBus",
        method="UpdateActivationEnvironment",
        signature="a{ss}",
    )
    systemd: ReceiverEndpoint = ReceiverEndpoint(
        label="systemd-user",
        role=ReceiverRole.STRICT,
        service="org.freedesktop.systemd1",
        object_path="/org/freedesktop/systemd1",
        interface="org.freedesktop.systemd1.Manager",
        method="SetEnvironment",
        signature="as",
    )

    @property
    def per_pair(self) -> tuple[ReceiverEndpoint, ReceiverEndpoint]:
        return (self.launcher, self.session_startup)

    @property
    def endpoints(self) -> list[ReceiverEndpoint]:
        """All endpoints in dispatch order."""
        return [self.launcher, self.session_startup, self.activation, self.systemd]


DEFAULT_RECEIVERS = ReceiverCatalog()
