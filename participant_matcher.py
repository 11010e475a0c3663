"""
Matching of Zoom participation records to local users.

Policy, first hit wins:
    1. email of an enrolled user
    2. email of any known user (directory)
    3. exact normalised full name of an enrolled user
    4. fuzzy name of exactly one enrolled user

Steps 3 and 4 can be switched off with `match_by_name`.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from models import LocalUser
from schemas import ParticipationRecord

_NON_WORD = re.compile(r"[^\w\s]", re.UNICODE)
_SPACES = re.compile(r"\s+")


def clean_display_name(name: str) -> str:
    """Zoom sometimes sends '#' where the user typed a comma."""
    return (name or "").replace("#", ",").strip()


def _tokens(text: str) -> List[str]:
    text = _NON_WORD.sub(" ", (text or "").upper())
    return [t for t in _SPACES.split(text) if t]


def split_name(name: str) -> Tuple[List[str], List[str]]:
    """
    Split a display name into (first name tokens, last name tokens).

    "LAST, FIRST MIDDLE" is reordered; otherwise the final word is the last name.
    """
    name = clean_display_name(name)
    if "," in name:
        last, first = name.split(",", 1)
        return _tokens(first), _tokens(last)
    tokens = _tokens(name)
    if len(tokens) < 2:
        return tokens, []
    return tokens[:-1], tokens[-1:]


def normalize_name(name: str) -> str:
    """Canonical "FIRST LAST" form used for exact comparisons."""
    first, last = split_name(name)
    return " ".join(first + last)


class ParticipantMatcher:
    """Resolve participation records to local users for one course."""

    def __init__(
        self,
        enrolled_users: Iterable[LocalUser],
        directory_users: Iterable[LocalUser] = (),
        match_by_name: bool = True,
    ):
        self.enrolled_users = list(enrolled_users)
        self.match_by_name = match_by_name

        self.enrolled_by_email: Dict[str, LocalUser] = {
            u.email.lower(): u for u in self.enrolled_users if u.email
        }
        self.directory_by_email: Dict[str, LocalUser] = {
            u.email.lower(): u for u in directory_users if u.email
        }

        # Exact name index; ambiguous names map to None
        self.enrolled_by_name: Dict[str, Optional[LocalUser]] = {}
        for user in self.enrolled_users:
            key = " ".join(_tokens(user.first_name) + _tokens(user.last_name))
            if not key:
                continue
            if key in self.enrolled_by_name and self.enrolled_by_name[key] is not user:
                self.enrolled_by_name[key] = None
            else:
                self.enrolled_by_name[key] = user

    def match(self, record: ParticipationRecord) -> Optional[LocalUser]:
        """
        Find the local user behind a participation record.

        Returns:
            The matched user or None when the record should be skipped
        """
        email = (record.user_email or "").lower()
        if email:
            user = self.enrolled_by_email.get(email) or self.directory_by_email.get(email)
            if user is not None:
                return user

        if not self.match_by_name or not record.name:
            return None

        user = self.enrolled_by_name.get(normalize_name(record.name))
        if user is not None:
            return user

        return self._fuzzy_match(record.name)

    def _fuzzy_match(self, name: str) -> Optional[LocalUser]:
        first, last = split_name(name)
        if not first or not last:
            return None

        candidates = [u for u in self.enrolled_users if self._names_compatible(first, last, u)]
        if len(candidates) == 1:
            return candidates[0]
        return None

    @staticmethod
    def _names_compatible(first: List[str], last: List[str], user: LocalUser) -> bool:
        user_first = _tokens(user.first_name)
        user_last = _tokens(user.last_name)
        if not user_first or not user_last:
            return False

        # Same letters once spaces are gone, e.g. "TEIMURAZIELLI POWER"
        if "".join(first + last) == "".join(user_first + user_last):
            return True

        if last != user_last:
            # A multi-word last name can swallow trailing first-name tokens
            remote_tokens = first + last
            if remote_tokens[-len(user_last):] != user_last:
                return False
            first = remote_tokens[:-len(user_last)]
            if not first:
                return False

        # Missing or extra middle names, never a different first name
        if first[0] != user_first[0]:
            return False
        return set(first) <= set(user_first) or set(user_first) <= set(first)
