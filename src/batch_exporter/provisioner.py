"""
Destination provisioning.

Runs once per process before anything is dispatched: make sure the namespace
exists, then the table. Several exporter instances may start at the same time;
an "already exists" conflict from either create call just means another
instance got there first, so it counts as success.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from .errors import ProvisioningError, is_conflict
from .metrics import EXPORTER_PROVISIONING_TOTAL
from .models import ProvisioningState
from .schema import DEFAULT_SCHEMA, TableSchema
from .sinks.base import SinkClient


class Provisioner:
    def __init__(self, sink: SinkClient, schema: TableSchema = DEFAULT_SCHEMA, *, label: str = ""):
        self._sink = sink
        self._schema = schema
        self._label = label or sink.name
        self._state = ProvisioningState.UNKNOWN
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ProvisioningState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is not ProvisioningState.UNKNOWN

    async def ensure_destination_ready(self) -> ProvisioningState:
        """Confirm or create namespace and table.

        Returns:
            ``EXISTING`` if the table was already there (or a concurrent
            instance created it), ``CREATED`` if this call created it.

        Raises:
            ProvisioningError: on any sink failure other than a 409 conflict
        """
        async with self._lock:
            if self.ready:
                logger.debug(f"Destination {self._label} already provisioned ({self._state.value})")
                return self._state
            try:
                await self._ensure_namespace()
                self._state = await self._ensure_table()
            except ProvisioningError:
                EXPORTER_PROVISIONING_TOTAL.labels(table=self._label, outcome="failure").inc()
                raise
            EXPORTER_PROVISIONING_TOTAL.labels(table=self._label, outcome=self._state.value).inc()
            return self._state

    async def _ensure_namespace(self) -> None:
        try:
            exists = await self._sink.namespace_exists()
        except Exception as e:
            raise ProvisioningError(f"Failed to check if dataset exists: {e}") from e
        if exists:
            return

        try:
            await self._sink.create_namespace()
            logger.info(f"Created dataset for {self._label}")
        except Exception as e:
            if is_conflict(e):
                logger.debug(f"Dataset for {self._label} was created concurrently")
                return
            raise ProvisioningError(f"Failed to create dataset: {e}") from e

    async def _ensure_table(self) -> ProvisioningState:
        try:
            exists = await self._sink.table_exists()
        except Exception as e:
            raise ProvisioningError(f"Failed to check if table exists: {e}") from e
        if exists:
            logger.debug(f"Table {self._label} already exists")
            return ProvisioningState.EXISTING

        try:
            await self._sink.create_table(self._schema)
        except Exception as e:
            # Another instance may have won the race between our check and create.
            if is_conflict(e):
                logger.debug(f"Table {self._label} was created concurrently")
                return ProvisioningState.EXISTING
            logger.debug(f"Failed to create table {self._label}: {e}")
            raise ProvisioningError(f"Failed to create table: {e}") from e

        logger.info(f"Created table {self._label}")
        return ProvisioningState.CREATED
