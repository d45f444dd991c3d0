import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from deskflow.core.errors import RecordCreationError, RecordTableUnavailable
from deskflow.core.observability import TraceManager
from deskflow.core.settings import settings, RecordSettings
from deskflow.db.models import ServiceRecord

logger = logging.getLogger(__name__)

DEFAULT_TABLES = ("hr_case", "sc_request", "sc_req_item", "incident", "task")

@dataclass(frozen=True)
class RecordRef:
    number: str
    id: str
    table: str
    simulated: bool = False

class RecordSink(ABC):
    @abstractmethod
    async def create(self, table: str, fields: Dict[str, Any]) -> RecordRef:
        """Creates a record or raises RecordCreationError."""
        pass

class DatabaseRecordSink(RecordSink):
    """Writes records into the `service_record` table for an allow-list of tables."""

    def __init__(self, session_factory: async_sessionmaker, config: Optional[RecordSettings] = None, tables: Iterable[str] = DEFAULT_TABLES):
        self.session_factory = session_factory
        self.config = config or settings.records
        self.tables = set(tables)

    async def create(self, table: str, fields: Dict[str, Any]) -> RecordRef:
        if table not in self.tables:
            raise RecordTableUnavailable(table)
        record_id = str(uuid.uuid4())
        # Empty values are not written
        values = {k: v for k, v in fields.items() if v not in (None, "")}
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    count = (await session.execute(
                        select(func.count()).select_from(ServiceRecord).where(ServiceRecord.table_kind == table)
                    )).scalar_one()
                    number = f"{self.config.prefix_for(table)}{count + 1:07d}"
                    session.add(ServiceRecord(id=record_id, table_kind=table, number=number, fields=values))
        except SQLAlchemyError as e:
            raise RecordCreationError(f"Insert into {table} failed: {e}") from e
        logger.info(f"Created {table}: {number}")
        return RecordRef(number=number, id=record_id, table=table)

class SimulatingRecordSink(RecordSink):
    """
    Wraps a real sink and never raises: any failure (or no sink at all)
    yields a simulated record numbered <prefix><last 6 digits of the ms clock>.
    """

    def __init__(self, inner: Optional[RecordSink] = None, config: Optional[RecordSettings] = None):
        self.inner = inner
        self.config = config or settings.records

    def simulated_number(self, table: str) -> str:
        millis = str(int(time.time() * 1000))
        return f"{self.config.prefix_for(table)}{millis[-6:]}"

    async def create(self, table: str, fields: Dict[str, Any]) -> RecordRef:
        if self.inner is not None:
            try:
                return await self.inner.create(table, fields)
            except Exception as e:
                logger.warning(f"Record creation failed for {table}, simulating: {e}")
        ref = RecordRef(number=self.simulated_number(table), id=f"sim-{uuid.uuid4()}", table=table, simulated=True)
        TraceManager.audit("record_simulated", table=table, number=ref.number)
        return ref

def build_record_sink(config: Optional[RecordSettings] = None, session_factory: Optional[async_sessionmaker] = None) -> Optional[RecordSink]:
    """The configured real sink, or None for simulate-only operation."""
    config = config or settings.records
    if config.sink.lower() == "database":
        if session_factory is None:
            from deskflow.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        return DatabaseRecordSink(session_factory, config)
    return None
