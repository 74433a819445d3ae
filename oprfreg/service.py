"""
Single-writer command loop in front of the registry.

Callers on any number of tasks ``submit`` signed commands; one worker
task drains the queue and applies them strictly one at a time, in
arrival order.  Each command is therefore an indivisible step in a
single totally ordered log, and the registry itself never sees
concurrent access.

Nonces are per caller and must strictly increase; only the highest
accepted nonce is remembered.  Once ``stop`` begins, new submissions
are refused and anything still queued fails with ``RuntimeError``.

Usage
-----
::

    async with RegistryService(registry) as svc:
        await svc.submit(sign_command(admin_key, Command("init_keygen", 42), 0))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .auth import SignedCommand, recover_caller
from .errors import BadContribution, InvalidSignature, RegistryError
from .registry import OprfKeyRegistry

logger = logging.getLogger("oprfreg.service")

# op → (takes key_id, takes data, needs caller)
_OPS: Dict[str, Tuple[bool, bool, bool]] = {
    "init_keygen": (True, False, True),
    "init_reshare": (True, False, True),
    "abort_keygen": (True, False, True),
    "delete_key": (True, False, True),
    "add_round1_keygen_contribution": (True, True, True),
    "add_round1_reshare_contribution": (True, True, True),
    "add_round2_contribution": (True, True, True),
    "add_round3_contribution": (True, False, True),
    "register_peers": (False, True, True),
    "add_admin": (False, True, True),
    "revoke_admin": (False, True, True),
    "get_public_key": (True, False, False),
    "get_public_key_and_epoch": (True, False, False),
}


@dataclass(frozen=True)
class AppliedCommand:
    seq: int
    caller: str
    op: str
    key_id: Optional[int]


class RegistryService:
    """Serialises signed commands onto one registry."""

    def __init__(self, registry: OprfKeyRegistry) -> None:
        self.registry = registry
        self.log: List[AppliedCommand] = []
        self._queue: "asyncio.Queue[Optional[Tuple[SignedCommand, asyncio.Future]]]" = (
            asyncio.Queue()
        )
        self._last_nonce: Dict[str, int] = {}
        self._worker: Optional[asyncio.Task] = None
        self._closing = False

    # ── lifecycle ──────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._worker is None:
            self._closing = False
            self._worker = asyncio.create_task(self._run())
            logger.info("Registry service started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._closing = True
        await self._queue.put(None)
        await self._worker
        self._worker = None
        self._fail_pending()
        logger.info(f"Registry service stopped after {len(self.log)} commands")

    async def __aenter__(self) -> RegistryService:
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    # ── submission ─────────────────────────────────────────────────────

    async def submit(self, signed: SignedCommand) -> Any:
        """Enqueue *signed* and wait for its result or error."""
        if self._worker is None or self._closing:
            raise RuntimeError("service is not running")
        fut = asyncio.get_running_loop().create_future()
        await self._queue.put((signed, fut))
        return await fut

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            if item is None:
                break
            signed, fut = item
            try:
                result = self.apply(signed)
            except RegistryError as e:
                logger.warning(f"Rejected {signed.command.op}: {e}")
                if not fut.cancelled():
                    fut.set_exception(e)
            except Exception as e:
                logger.exception(f"Internal error applying {signed.command.op}")
                if not fut.cancelled():
                    fut.set_exception(e)
            else:
                if not fut.cancelled():
                    fut.set_result(result)

    def _fail_pending(self) -> None:
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is None:
                continue
            _, fut = item
            if not fut.done():
                fut.set_exception(RuntimeError("service stopped"))

    # ── dispatch ───────────────────────────────────────────────────────

    def apply(self, signed: SignedCommand) -> Any:
        """Authenticate and apply one command synchronously."""
        cmd = signed.command
        shape = _OPS.get(cmd.op)
        if shape is None:
            raise BadContribution(f"unknown operation {cmd.op!r}")
        takes_key, takes_data, needs_caller = shape

        caller = recover_caller(signed)
        last = self._last_nonce.get(caller)
        if last is not None and signed.nonce <= last:
            raise InvalidSignature(
                f"nonce {signed.nonce} from {caller} not above {last}"
            )

        args: List[Any] = []
        if needs_caller:
            args.append(caller)
        if takes_key:
            if cmd.key_id is None:
                raise BadContribution(f"{cmd.op} needs a key id")
            args.append(cmd.key_id)
        if takes_data:
            args.append(cmd.data)

        result = getattr(self.registry, cmd.op)(*args)

        self._last_nonce[caller] = signed.nonce
        entry = AppliedCommand(
            seq=len(self.log), caller=caller, op=cmd.op, key_id=cmd.key_id,
        )
        self.log.append(entry)
        logger.debug(f"#{entry.seq} {caller} {cmd.op} key={cmd.key_id}")
        return result
