"""
Follow-up rule store - (channel, status) -> default cadence and next action.

Rules are read from the follow_up_rules table, loaded once per process and
swapped atomically when refresh() is called after an out-of-band change.
A missing rule means "no scheduled action", never an error.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..models import FollowupRuleRecord
from .channel_registry import (
    Channel, OutreachStatus,
    is_valid_status, stage_sequence,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowupRule:
    """Cadence for one (channel, status) pair."""
    channel: Channel
    status: OutreachStatus
    default_days: int
    description: str
    channel_sequence: int = 0


# ── Default cadence table ─────────────────────────────────────
# Terminal statuses (email_sequence on LinkedIn, closed_*, not_interested)
# have no rule on purpose: nothing is scheduled after them.

_LINKEDIN_RULES: List[Tuple[OutreachStatus, int, str]] = [
    (OutreachStatus.REQUESTED, 3, "Check if connection request was accepted"),
    (OutreachStatus.ACCEPTED, 1, "Send intro message"),
    (OutreachStatus.INTRO_MSG, 3, "Send follow up 1"),
    (OutreachStatus.FOLLOW_UP_1, 7, "Share newsletter 1"),
    (OutreachStatus.NEWSLETTER_1, 7, "Send value proposition"),
    (OutreachStatus.VALUE_PROP, 5, "Hold the thread"),
    (OutreachStatus.HOLD_THREAD, 14, "Share newsletter 2"),
    (OutreachStatus.NEWSLETTER_2, 7, "Send follow up 2"),
    (OutreachStatus.FOLLOW_UP_2, 7, "Move contact to the email sequence"),
]

_EMAIL_RULES: List[Tuple[OutreachStatus, int, str]] = [
    (OutreachStatus.EMAIL_SEQUENCE, 2, "Send first email"),
    (OutreachStatus.CONTACTED, 3, "Follow up on first email"),
    (OutreachStatus.REQUESTED, 3, "Check for a reply"),
    (OutreachStatus.ACCEPTED, 1, "Send intro email"),
    (OutreachStatus.INTRO_MSG, 3, "Send follow up 1"),
    (OutreachStatus.FOLLOW_UP_1, 7, "Share newsletter 1"),
    (OutreachStatus.NEWSLETTER_1, 7, "Send value proposition"),
    (OutreachStatus.VALUE_PROP, 5, "Hold the thread"),
    (OutreachStatus.HOLD_THREAD, 14, "Share newsletter 2"),
    (OutreachStatus.NEWSLETTER_2, 7, "Send follow up 2"),
]

_DEFAULT_RULES: List[Tuple[OutreachStatus, int, str]] = [
    (OutreachStatus.NOT_CONTACTED, 0, "Make first contact"),
    (OutreachStatus.CONTACTED, 3, "Follow up if no reply"),
    (OutreachStatus.REPLIED, 1, "Respond and qualify interest"),
    (OutreachStatus.INTERESTED, 2, "Book a qualification call"),
    (OutreachStatus.FOLLOW_UP, 3, "Re-engage contact"),
    (OutreachStatus.QUALIFIED, 3, "Send proposal"),
    (OutreachStatus.PROPOSAL_SENT, 5, "Follow up on proposal"),
    (OutreachStatus.MEETING_SCHEDULED, 1, "Prepare for meeting"),
    (OutreachStatus.DEMO_COMPLETED, 2, "Send demo follow up"),
    (OutreachStatus.NEGOTIATION, 3, "Close the deal"),
]

_RULES_BY_CHANNEL: Dict[Channel, List[Tuple[OutreachStatus, int, str]]] = {
    Channel.LINKEDIN: _LINKEDIN_RULES,
    Channel.EMAIL: _EMAIL_RULES,
}


def _build_default_rules() -> List[FollowupRule]:
    rules = []
    for channel in Channel:
        sequence = stage_sequence(channel)
        for status, days, description in _RULES_BY_CHANNEL.get(channel, _DEFAULT_RULES):
            rules.append(FollowupRule(
                channel=channel,
                status=status,
                default_days=days,
                description=description,
                channel_sequence=sequence.index(status) + 1,
            ))
    return rules


DEFAULT_FOLLOWUP_RULES: List[FollowupRule] = _build_default_rules()


def seed_default_rules(db: Session) -> int:
    """Insert the default cadence table when no rule exists yet. Returns rows inserted."""
    if db.query(FollowupRuleRecord).count() > 0:
        return 0

    for rule in DEFAULT_FOLLOWUP_RULES:
        db.add(FollowupRuleRecord(
            channel=rule.channel.value,
            status=rule.status.value,
            channel_sequence=rule.channel_sequence,
            default_days=rule.default_days,
            description=rule.description,
        ))
    db.commit()
    logger.info(f"[Rules] Seeded {len(DEFAULT_FOLLOWUP_RULES)} default follow-up rules")
    return len(DEFAULT_FOLLOWUP_RULES)


def load_rules_from_db(db: Session) -> List[FollowupRule]:
    """
    Read follow-up rules from the database.

    Rows with an unknown channel/status, a status outside the channel's
    sequence, or negative days are skipped with a warning.
    """
    rules = []
    records = db.query(FollowupRuleRecord).order_by(
        FollowupRuleRecord.channel, FollowupRuleRecord.channel_sequence
    ).all()

    for record in records:
        try:
            channel = Channel(record.channel)
            status = OutreachStatus(record.status)
        except ValueError:
            logger.warning(f"[Rules] Skipping rule with unknown channel/status: {record.channel}/{record.status}")
            continue

        if not is_valid_status(channel, status):
            logger.warning(f"[Rules] Skipping rule {channel.value}/{status.value}: status not in channel sequence")
            continue
        if record.default_days is None or record.default_days < 0:
            logger.warning(f"[Rules] Skipping rule {channel.value}/{status.value}: invalid default_days {record.default_days}")
            continue

        rules.append(FollowupRule(
            channel=channel,
            status=status,
            default_days=record.default_days,
            description=record.description or "",
            channel_sequence=record.channel_sequence or 0,
        ))
    return rules


class FollowupRuleStore:
    """In-memory lookup table over the configured follow-up rules."""

    def __init__(self, loader: Optional[Callable[[], Iterable[FollowupRule]]] = None):
        """
        Args:
            loader: Callable returning the current rules; used by refresh().
        """
        self._loader = loader
        self._rules: Dict[Tuple[Channel, OutreachStatus], FollowupRule] = {}
        self._lock = threading.Lock()
        self.loaded = False

    def load(self, rules: Iterable[FollowupRule]) -> None:
        """Replace the whole table. Later duplicates of a (channel, status) pair are ignored."""
        table: Dict[Tuple[Channel, OutreachStatus], FollowupRule] = {}
        for rule in rules:
            key = (rule.channel, rule.status)
            if key in table:
                logger.warning(f"[Rules] Duplicate rule for {rule.channel.value}/{rule.status.value}, keeping the first")
                continue
            table[key] = rule

        with self._lock:
            self._rules = table
            self.loaded = True
        logger.info(f"[Rules] Loaded {len(table)} follow-up rules")

    def refresh(self) -> int:
        """Reload the table from the configuration source. Returns the number of rules."""
        if self._loader is None:
            raise RuntimeError("FollowupRuleStore has no loader configured")
        self.load(self._loader())
        return len(self._rules)

    def rule_for(self, channel, status) -> Optional[FollowupRule]:
        """Rule for (channel, status), or None when nothing is configured."""
        if channel is None or status is None:
            return None
        try:
            key = (Channel(channel), OutreachStatus(status))
        except ValueError:
            return None
        return self._rules.get(key)

    def rules(self, channel=None) -> List[FollowupRule]:
        """All rules ordered by channel and position, optionally for one channel."""
        items = list(self._rules.values())
        if channel is not None:
            items = [rule for rule in items if rule.channel == channel]
        return sorted(items, key=lambda rule: (rule.channel.value, rule.channel_sequence))

    def __len__(self) -> int:
        return len(self._rules)


def _load_with_session() -> List[FollowupRule]:
    from ..database import SessionLocal
    db = SessionLocal()
    try:
        return load_rules_from_db(db)
    finally:
        db.close()


# Singleton instance
_rule_store: Optional[FollowupRuleStore] = None


def get_followup_rule_store() -> FollowupRuleStore:
    """Get the process-wide rule store, loading it from the database on first use."""
    global _rule_store
    if _rule_store is None:
        _rule_store = FollowupRuleStore(loader=_load_with_session)
    if not _rule_store.loaded:
        _rule_store.refresh()
    return _rule_store
