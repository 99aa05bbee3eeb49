"""Single-pass orchestration of a delegated batch call.

    IDLE -> VALIDATING -> AUTHORIZING -> ENCODING -> SUBMITTED -> CONFIRMED
                 \\             \\            \\           \\
                  `-------------`------------`-----------`--> FAILED

Every error moves the run to FAILED and propagates to the caller. Nothing
is retried: a caller that wants to try again must start a new run, which
reads a fresh nonce and signs a fresh authorization.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from .authorization import authorize
from .chain import ChainStateReader, TransactionTransport
from .config import BatchConfig
from .encoder import encode_batch
from .exceptions import HexBatchError, SigningError, SubmissionError, TransactionReverted
from .logging_config import clear_run_context, generate_run_id, set_run_context
from .models import BatchRunResult, PreparedBatch, RunState
from .policy import TransactionInput, validate_batch
from .signer import Signer

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Runs validate -> authorize -> encode -> submit -> confirm for one account.

    One orchestrator is bound to one signer. Runs on the same orchestrator
    are serialized by an asyncio lock so the nonce read and the signature
    for an account are never interleaved with another run. Hosts running
    several orchestrators for the same account must serialize them
    externally.
    """

    def __init__(
        self,
        config: BatchConfig,
        signer: Optional[Signer],
        chain: ChainStateReader,
        transport: TransactionTransport,
    ):
        self._config = config
        self._signer = signer
        self._chain = chain
        self._transport = transport
        self._lock = asyncio.Lock()
        self._state = RunState.IDLE
        self._history: List[RunState] = [RunState.IDLE]
        self.last_tx_hash: Optional[str] = None

    @property
    def config(self) -> BatchConfig:
        return self._config

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def history(self) -> Tuple[RunState, ...]:
        return tuple(self._history)

    async def prepare(self, transactions: Sequence[TransactionInput]) -> PreparedBatch:
        """Validate, authorize and encode without submitting (dry run)."""
        async with self._lock:
            self._reset()
            try:
                return await self._prepare(transactions)
            except Exception:
                self._transition(RunState.FAILED)
                raise

    async def run(
        self,
        transactions: Sequence[TransactionInput],
        wait: bool = True,
    ) -> BatchRunResult:
        """Execute one pass of the pipeline.

        Args:
            transactions: Raw sub-transactions in execution order
            wait: Wait for inclusion (bounded by the configured timeout).
                When False the run ends in SUBMITTED.

        Raises:
            HexBatchError subclass; the run is FAILED. ConfirmationTimeout
            means the outcome is unknown and carries the tx hash.
        """
        async with self._lock:
            self._reset()
            run_id = generate_run_id()
            set_run_context(run_id, self._signer.address if self._signer else None)
            try:
                return await self._run(run_id, transactions, wait)
            except Exception as e:
                self._transition(RunState.FAILED)
                logger.error("Batch run failed: %s", e)
                raise
            finally:
                clear_run_context()

    async def _run(
        self,
        run_id: str,
        transactions: Sequence[TransactionInput],
        wait: bool,
    ) -> BatchRunResult:
        started_at = datetime.now(timezone.utc)
        prepared = await self._prepare(transactions)

        try:
            tx_hash = await self._transport.submit(prepared.payload)
        except HexBatchError:
            raise
        except Exception as e:
            raise SubmissionError(f"Transport failed to submit batch: {e}") from e

        self.last_tx_hash = tx_hash
        self._transition(RunState.SUBMITTED)
        result = BatchRunResult(
            run_id=run_id,
            state=RunState.SUBMITTED,
            prepared=prepared,
            tx_hash=tx_hash,
            started_at=started_at,
        )
        if not wait:
            result.completed_at = datetime.now(timezone.utc)
            return result

        receipt = await self._transport.await_confirmation(
            tx_hash, self._config.transaction_timeout
        )
        result.receipt = receipt
        if not receipt.succeeded:
            raise TransactionReverted(tx_hash, receipt)

        self._transition(RunState.CONFIRMED)
        result.state = RunState.CONFIRMED
        result.completed_at = datetime.now(timezone.utc)
        return result

    async def _prepare(self, transactions: Sequence[TransactionInput]) -> PreparedBatch:
        self._transition(RunState.VALIDATING)
        batch = validate_batch(self._config, transactions)

        self._transition(RunState.AUTHORIZING)
        if self._signer is None:
            raise SigningError("No signer capability available")
        chain_id = await self._chain.get_chain_id()
        nonce = await self._chain.get_nonce(self._signer.address)
        authorization = authorize(
            self._signer,
            chain_id,
            nonce,
            self._config.implementation_address,
        )

        self._transition(RunState.ENCODING)
        payload = encode_batch(
            authorization,
            batch.transactions,
            gas_limit=self._config.gas_limit,
        )
        logger.info(
            "Batch encoded: to=%s value=%d calldata=%d bytes",
            payload.to,
            payload.value,
            len(payload.data),
        )
        return PreparedBatch(batch=batch, authorization=authorization, payload=payload)

    def _reset(self) -> None:
        self._state = RunState.IDLE
        self._history = [RunState.IDLE]
        self.last_tx_hash = None

    def _transition(self, new_state: RunState) -> None:
        logger.debug("Run state %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        self._history.append(new_state)
