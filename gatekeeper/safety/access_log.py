"""
Gatekeeper — Access Log
========================

What:  Structured warnings for every policy denial.
How:   Each kind of denial is its own small event type. log_access() takes
       any of them and emits one line on the "gatekeeper.access" logger,
       with the event's fields attached as `extra` for structured handlers.

Events:
    URLBlocked   path is on the static blocklist
    IPBlocked    client holds an active ban
    Banned       client was (or already is) banned until `expiry`
"""

import logging
from dataclasses import asdict, dataclass
from typing import Union

from gatekeeper.middleware.request_id import request_id_var

access_logger = logging.getLogger("gatekeeper.access")


@dataclass(frozen=True)
class URLBlocked:
    method: str
    client: str
    path: str

    kind = "url"

    def describe(self) -> str:
        return f"[BLOCKED URL] => {self.client}: (Method: {self.method}, URL: {self.path})"


@dataclass(frozen=True)
class IPBlocked:
    method: str
    client: str
    path: str

    kind = "ip"

    def describe(self) -> str:
        return f"[BLOCKED IP] => {self.client}: (Method: {self.method}, URL: {self.path})"


@dataclass(frozen=True)
class Banned:
    method: str
    client: str
    path: str
    expiry: int
    reason: str = ""

    kind = "ban"

    def describe(self) -> str:
        text = f"[BANNED] => {self.client} until {self.expiry}"
        if self.reason:
            text += f" ({self.reason})"
        return text


AccessEvent = Union[URLBlocked, IPBlocked, Banned]


def log_access(event: AccessEvent) -> None:
    rid = request_id_var.get("")
    fields = asdict(event)
    fields["event"] = event.kind
    fields["request_id"] = rid
    access_logger.warning("[%s] %s", rid, event.describe(), extra={"access": fields})
