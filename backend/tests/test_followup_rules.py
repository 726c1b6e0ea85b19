import pytest

from outreach_crm.models import FollowupRuleRecord
from outreach_crm.services.channel_registry import Channel, OutreachStatus, is_valid_status
from outreach_crm.services.followup_rules import (
    DEFAULT_FOLLOWUP_RULES,
    FollowupRule,
    FollowupRuleStore,
    load_rules_from_db,
    seed_default_rules,
)


def test_default_rules_belong_to_their_channel_sequence():
    for rule in DEFAULT_FOLLOWUP_RULES:
        assert is_valid_status(rule.channel, rule.status), rule
        assert rule.default_days >= 0


def test_terminal_statuses_have_no_rule(rule_store):
    assert rule_store.rule_for(Channel.LINKEDIN, OutreachStatus.EMAIL_SEQUENCE) is None
    assert rule_store.rule_for(Channel.PHONE, OutreachStatus.CLOSED_WON) is None


def test_rule_lookup(rule_store):
    rule = rule_store.rule_for("linkedin", "requested")
    assert rule.default_days == 3
    assert rule.description == "Check if connection request was accepted"
    assert rule.channel_sequence == 1


def test_rule_lookup_with_missing_or_unknown_keys(rule_store):
    assert rule_store.rule_for(None, OutreachStatus.REQUESTED) is None
    assert rule_store.rule_for(Channel.LINKEDIN, None) is None
    assert rule_store.rule_for("fax", "requested") is None


def test_duplicate_rules_keep_the_first():
    store = FollowupRuleStore()
    store.load([
        FollowupRule(Channel.SMS, OutreachStatus.CONTACTED, 3, "first"),
        FollowupRule(Channel.SMS, OutreachStatus.CONTACTED, 9, "second"),
    ])
    assert len(store) == 1
    assert store.rule_for(Channel.SMS, OutreachStatus.CONTACTED).description == "first"


def test_rules_filtered_by_channel_are_in_sequence_order(rule_store):
    rules = rule_store.rules(Channel.EMAIL)
    assert {rule.channel for rule in rules} == {Channel.EMAIL}
    assert [rule.channel_sequence for rule in rules] == sorted(rule.channel_sequence for rule in rules)


def test_refresh_without_loader_fails():
    with pytest.raises(RuntimeError):
        FollowupRuleStore().refresh()


def test_refresh_swaps_the_table():
    current = [FollowupRule(Channel.EMAIL, OutreachStatus.CONTACTED, 3, "Follow up")]
    store = FollowupRuleStore(loader=lambda: list(current))
    assert store.refresh() == 1
    assert store.loaded

    current[:] = [FollowupRule(Channel.EMAIL, OutreachStatus.CONTACTED, 5, "Follow up later")]
    store.refresh()
    assert store.rule_for(Channel.EMAIL, OutreachStatus.CONTACTED).default_days == 5


def test_seed_only_inserts_into_an_empty_table(db):
    assert seed_default_rules(db) == len(DEFAULT_FOLLOWUP_RULES)
    assert seed_default_rules(db) == 0
    assert db.query(FollowupRuleRecord).count() == len(DEFAULT_FOLLOWUP_RULES)


def test_load_from_db_skips_invalid_rows(db):
    db.add_all([
        FollowupRuleRecord(channel="email", status="contacted", channel_sequence=2,
                           default_days=4, description="Nudge"),
        FollowupRuleRecord(channel="fax", status="contacted", default_days=1),
        FollowupRuleRecord(channel="linkedin", status="contacted", default_days=1),
        FollowupRuleRecord(channel="sms", status="replied", default_days=-2),
    ])
    db.commit()

    rules = load_rules_from_db(db)
    assert rules == [FollowupRule(Channel.EMAIL, OutreachStatus.CONTACTED, 4, "Nudge", 2)]
