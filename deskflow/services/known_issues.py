import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from deskflow.core.settings import settings, RecordSettings
from deskflow.db.models import KnownIssueRecord

logger = logging.getLogger(__name__)

@dataclass
class KnownIssue:
    id: str
    title: str
    category: str
    keywords: List[str]
    resolution: str
    resolution_steps: List[str] = field(default_factory=list)
    confidence: float = 0.5
    hit_count: int = 0
    active: bool = True

    def matches(self, category: str, description: str) -> bool:
        if not self.active or not category or self.category.lower() != category.lower():
            return False
        if not self.keywords:
            return True
        text = (description or "").lower()
        return any(keyword.lower() in text for keyword in self.keywords)

DEFAULT_KNOWN_ISSUES = [
    KnownIssue(
        id="KI-VPN-TIMEOUT",
        title="VPN connection times out after sign-in",
        category="vpn",
        keywords=["vpn", "timeout", "timed out"],
        resolution="The VPN client profile is stale after the gateway certificate rotation. Refreshing the profile fixes it.",
        resolution_steps=[
            "Disconnect the VPN client",
            "Open the client settings and choose 'Refresh profile'",
            "Reconnect with your PIV card",
        ],
        confidence=0.92,
    ),
    KnownIssue(
        id="KI-EMAIL-SYNC",
        title="Outlook stops syncing new mail",
        category="email",
        keywords=["sync", "not receiving", "stuck"],
        resolution="A corrupted offline cache blocks synchronisation. Rebuilding the cache restores mail flow.",
        resolution_steps=["Close Outlook", "Run 'Reset offline cache' from the agency toolbox", "Restart Outlook"],
        confidence=0.85,
    ),
    KnownIssue(
        id="KI-ACCESS-LOCKOUT",
        title="Account locked after password change",
        category="access",
        keywords=["locked", "lockout", "password"],
        resolution="Cached credentials on a second device keep failing after a password change and lock the account.",
        resolution_steps=["Sign out of agency apps on your phone", "Wait 15 minutes for the lock to clear", "Sign in with the new password"],
        confidence=0.8,
    ),
    KnownIssue(
        id="KI-SOFTWARE-LICENSE",
        title="Application reports expired license",
        category="software",
        keywords=["license", "expired", "activation"],
        resolution="License leases renew on next sign-in to the software portal.",
        resolution_steps=["Open the agency software portal", "Sign in and choose 'Renew lease'", "Restart the application"],
        confidence=0.75,
    ),
]

def rank(issues: Iterable[KnownIssue]) -> List[KnownIssue]:
    """Highest confidence first; category then title keep equal confidences deterministic."""
    return sorted(issues, key=lambda i: (-i.confidence, i.category, i.title))

class KnownIssueRepository(ABC):
    @abstractmethod
    async def list_active(self) -> List[KnownIssue]:
        pass

    @abstractmethod
    async def record_hit(self, issue_id: str) -> None:
        pass

    async def match(self, category: str, description: str) -> Optional[KnownIssue]:
        for issue in rank(await self.list_active()):
            if issue.matches(category, description):
                return issue
        return None

class InMemoryKnownIssueRepository(KnownIssueRepository):
    def __init__(self, issues: Optional[Iterable[KnownIssue]] = None):
        source = DEFAULT_KNOWN_ISSUES if issues is None else issues
        self._issues: Dict[str, KnownIssue] = {i.id: copy.deepcopy(i) for i in source}

    async def list_active(self) -> List[KnownIssue]:
        return [i for i in self._issues.values() if i.active]

    async def record_hit(self, issue_id: str) -> None:
        issue = self._issues.get(issue_id)
        if issue:
            issue.hit_count += 1

    def get(self, issue_id: str) -> Optional[KnownIssue]:
        return self._issues.get(issue_id)

class SQLKnownIssueRepository(KnownIssueRepository):
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @staticmethod
    def _to_issue(record: KnownIssueRecord) -> KnownIssue:
        return KnownIssue(
            id=str(record.id),
            title=record.title,
            category=record.category,
            keywords=list(record.keywords or []),
            resolution=record.resolution,
            resolution_steps=list(record.resolution_steps or []),
            confidence=record.confidence or 0.0,
            hit_count=record.hit_count or 0,
            active=record.active,
        )

    async def list_active(self) -> List[KnownIssue]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(KnownIssueRecord).where(KnownIssueRecord.active.is_(True)))
                return [self._to_issue(r) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            # Lookup is advisory; the flow continues to diagnostics without it
            logger.warning(f"Known issue lookup failed: {e}")
            return []

    async def record_hit(self, issue_id: str) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(
                        update(KnownIssueRecord)
                        .where(KnownIssueRecord.id == int(issue_id))
                        .values(hit_count=KnownIssueRecord.hit_count + 1)
                    )
        except (SQLAlchemyError, ValueError) as e:
            logger.warning(f"Known issue hit count update failed for {issue_id}: {e}")

    async def seed(self, issues: Iterable[KnownIssue] = DEFAULT_KNOWN_ISSUES) -> int:
        """Inserts issues whose title is not stored yet. Returns the number inserted."""
        async with self.session_factory() as session:
            async with session.begin():
                existing = set((await session.execute(select(KnownIssueRecord.title))).scalars().all())
                added = 0
                for issue in issues:
                    if issue.title in existing:
                        continue
                    session.add(KnownIssueRecord(
                        title=issue.title,
                        category=issue.category,
                        keywords=list(issue.keywords),
                        resolution=issue.resolution,
                        resolution_steps=list(issue.resolution_steps),
                        confidence=issue.confidence,
                        hit_count=issue.hit_count,
                        active=issue.active,
                    ))
                    added += 1
        return added

def build_known_issue_repository(config: Optional[RecordSettings] = None, session_factory: Optional[async_sessionmaker] = None) -> KnownIssueRepository:
    config = config or settings.records
    if config.known_issue_backend.lower() == "sql":
        if session_factory is None:
            from deskflow.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        return SQLKnownIssueRepository(session_factory)
    return InMemoryKnownIssueRepository()
