"""Member directory — users, groups, voting credit balances and properties.

Users are the only actors that can vote. Each user record carries a
``voting_credits`` balance that ballots charge when votes are cast and
that refunds and rewards pay back into. The ``everybody`` group is
implicit: every registered user belongs to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from govtree.errors import ValidationError
from govtree.models.ballot import EVERYBODY, ZERO, CreditAmount, as_credits
from govtree.persistence import records
from govtree.persistence.store import Clone


@dataclass
class Member:
    """A registered community user."""
    user: str
    voting_credits: Decimal = ZERO
    properties: dict[str, str] = field(default_factory=dict)


def member_to_dict(m: Member) -> dict[str, Any]:
    return {
        "user": m.user,
        "voting_credits": records.credits_to_str(m.voting_credits),
        "properties": dict(m.properties),
    }


def member_from_dict(data: dict[str, Any]) -> Member:
    return Member(
        user=data["user"],
        voting_credits=as_credits(data.get("voting_credits", "0")),
        properties=dict(data.get("properties", {})),
    )


class MemberStore:
    """Reads and writes member records inside one clone."""

    def __init__(self, clone: Clone) -> None:
        self._clone = clone

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def add_user(self, user: str, voting_credits: CreditAmount = ZERO) -> Member:
        path = records.user_path(user)
        if self._clone.exists(path):
            raise ValidationError(f"User already registered: {user}")
        credits = as_credits(voting_credits)
        if credits < 0:
            raise ValidationError("Initial voting credits cannot be negative")
        member = Member(user=user, voting_credits=credits)
        self._save(member)
        return member

    def get(self, user: str) -> Member:
        data = records.read_json(self._clone, records.user_path(user))
        if data is None:
            raise ValidationError(f"User not found: {user}")
        return member_from_dict(data)

    def exists(self, user: str) -> bool:
        return self._clone.exists(records.user_path(user))

    def list_users(self) -> list[str]:
        return [
            p.rsplit("/", 1)[-1][: -len(".json")]
            for p in self._clone.list(records.USERS_DIR)
        ]

    def set_property(self, user: str, key: str, value: str) -> None:
        if not key or "/" in key:
            raise ValidationError(f"Invalid property key: {key!r}")
        member = self.get(user)
        member.properties[key] = value
        self._save(member)

    def _save(self, member: Member) -> None:
        records.write_json(self._clone, records.user_path(member.user), member_to_dict(member))

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def balance(self, user: str) -> Decimal:
        return self.get(user).voting_credits

    def credit(self, user: str, amount: CreditAmount) -> None:
        amount = as_credits(amount)
        if amount < 0:
            raise ValidationError(f"Credit amount must be non-negative, got {amount}")
        if amount == 0:
            return
        member = self.get(user)
        member.voting_credits += amount
        self._save(member)

    def debit(self, user: str, amount: CreditAmount) -> None:
        amount = as_credits(amount)
        if amount < 0:
            raise ValidationError(f"Debit amount must be non-negative, got {amount}")
        if amount == 0:
            return
        member = self.get(user)
        if member.voting_credits < amount:
            raise ValidationError(
                f"{user} has {member.voting_credits} voting credits, needs {amount}"
            )
        member.voting_credits -= amount
        self._save(member)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def group_exists(self, group: str) -> bool:
        return group == EVERYBODY or self._clone.exists(records.group_path(group))

    def create_group(self, group: str) -> None:
        if self.group_exists(group):
            raise ValidationError(f"Group already exists: {group}")
        records.write_json(self._clone, records.group_path(group), {"name": group, "members": []})

    def add_to_group(self, group: str, user: str) -> None:
        if group == EVERYBODY:
            raise ValidationError(f"Membership of {EVERYBODY} is implicit")
        self.get(user)
        data = records.read_json(self._clone, records.group_path(group))
        if data is None:
            raise ValidationError(f"Group not found: {group}")
        data["members"] = sorted(set(data["members"]) | {user})
        records.write_json(self._clone, records.group_path(group), data)

    def members_of(self, group: str) -> list[str]:
        if group == EVERYBODY:
            return self.list_users()
        data = records.read_json(self._clone, records.group_path(group))
        if data is None:
            raise ValidationError(f"Group not found: {group}")
        return list(data["members"])

    def is_member(self, user: str, group: str) -> bool:
        if not self.exists(user):
            return False
        return user in self.members_of(group)
