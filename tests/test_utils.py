"""Tests for identifier and invite code helpers."""

from __future__ import annotations

import datetime
import re
import unittest
from unittest.mock import patch

from matchday.core.constants import (
    CHALLENGE_CODE_PREFIX,
    CHALLENGES_COLLECTION,
    INVITE_CODE_MAX_ATTEMPTS,
    TOURNAMENT_CODE_PREFIX,
)
from matchday.errors import ConflictError, ValidationError
from matchday.utils import (
    deadline_from_now,
    generate_entity_id,
    generate_invite_code,
    generate_unique_invite_code,
    is_overdue,
    normalize_invite_code,
)
from tests.helpers import FirestoreTestCase


class InviteCodeTestCase(unittest.TestCase):
    """Test case for invite code generation and parsing."""

    def test_generated_codes_use_unambiguous_alphabet(self) -> None:
        for _ in range(50):
            code = generate_invite_code(CHALLENGE_CODE_PREFIX)
            self.assertRegex(code, r"^1V1-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{4}$")
            self.assertNotRegex(code[4:], r"[01IO]")

    def test_tournament_prefix(self) -> None:
        self.assertTrue(generate_invite_code(TOURNAMENT_CODE_PREFIX).startswith("TRN-"))

    def test_normalize_upper_cases_and_strips(self) -> None:
        self.assertEqual(
            normalize_invite_code("  1v1-ab2c ", CHALLENGE_CODE_PREFIX), "1V1-AB2C"
        )

    def test_normalize_rejects_malformed_codes(self) -> None:
        for bad in ["", None, "1V1-AB", "1V1-AB0C", "XYZ-ABCD", "1V1ABCD"]:
            with self.assertRaises(ValidationError):
                normalize_invite_code(bad, CHALLENGE_CODE_PREFIX)

    def test_normalize_rejects_wrong_prefix(self) -> None:
        with self.assertRaises(ValidationError):
            normalize_invite_code("TRN-ABCD", CHALLENGE_CODE_PREFIX)

    def test_entity_ids_are_twenty_alphanumerics(self) -> None:
        ids = {generate_entity_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)
        for entity_id in ids:
            self.assertTrue(re.fullmatch(r"[A-Za-z0-9]{20}", entity_id))

    def test_deadline_from_now(self) -> None:
        start = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)
        self.assertEqual(
            deadline_from_now(24, start), start + datetime.timedelta(hours=24)
        )

    def test_is_overdue(self) -> None:
        start = datetime.datetime(2026, 1, 1, tzinfo=datetime.timezone.utc)
        self.assertTrue(is_overdue({"deadline": start}, start))
        self.assertFalse(
            is_overdue({"deadline": start}, start - datetime.timedelta(seconds=1))
        )
        self.assertFalse(is_overdue({"deadline": None}, start))


class UniqueInviteCodeTestCase(FirestoreTestCase):
    """Test case for collision checks against stored codes."""

    def test_retries_past_a_taken_code(self) -> None:
        self.db.collection(CHALLENGES_COLLECTION).document("c1").set(
            {"inviteCode": "1V1-AAAA"}
        )
        with patch(
            "matchday.utils.generate_invite_code",
            side_effect=["1V1-AAAA", "1V1-BBBB"],
        ):
            code = generate_unique_invite_code(
                self.db, CHALLENGES_COLLECTION, CHALLENGE_CODE_PREFIX
            )
        self.assertEqual(code, "1V1-BBBB")

    def test_gives_up_after_max_attempts(self) -> None:
        self.db.collection(CHALLENGES_COLLECTION).document("c1").set(
            {"inviteCode": "1V1-AAAA"}
        )
        with patch(
            "matchday.utils.generate_invite_code", return_value="1V1-AAAA"
        ) as mock_generate:
            with self.assertRaises(ConflictError):
                generate_unique_invite_code(
                    self.db, CHALLENGES_COLLECTION, CHALLENGE_CODE_PREFIX
                )
        self.assertEqual(mock_generate.call_count, INVITE_CODE_MAX_ATTEMPTS)


if __name__ == "__main__":
    unittest.main()
