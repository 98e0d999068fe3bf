import unittest
from unittest.mock import MagicMock

from wall.db import DuplicateProfileError, InMemoryDbClient, ProfileRecord
from wall.errors import InvalidNameError, ProfileError
from wall.profiles import sign_in


class SignInTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()

    def test_creates_profile_with_trimmed_name(self):
        profile = sign_in(self.db, "  Ada Lovelace  ")
        self.assertEqual(profile.name, "Ada Lovelace")
        self.assertIs(self.db.get_profile(profile.id), profile)

    def test_reuses_existing_profile(self):
        first = sign_in(self.db, "Ada")
        second = sign_in(self.db, "Ada ")
        self.assertEqual(first.id, second.id)
        self.assertEqual(len(self.db.profiles), 1)

    def test_names_are_case_sensitive(self):
        self.assertNotEqual(sign_in(self.db, "ada").id, sign_in(self.db, "Ada").id)

    def test_blank_name(self):
        for name in ("", "   ", None):
            with self.assertRaises(InvalidNameError) as ctx:
                sign_in(self.db, name)
            self.assertEqual(ctx.exception.message, "Please enter your name")

    def test_concurrent_creation_returns_winner(self):
        winner = ProfileRecord(id="p1", name="Ada")
        db = MagicMock()
        db.find_profile_by_name.side_effect = [None, winner]
        db.create_profile.side_effect = DuplicateProfileError("Ada")
        self.assertIs(sign_in(db, "Ada"), winner)

    def test_lookup_failure(self):
        db = MagicMock()
        db.find_profile_by_name.side_effect = RuntimeError("db down")
        with self.assertRaises(ProfileError) as ctx:
            sign_in(db, "Ada")
        self.assertEqual(ctx.exception.message, "An error occurred. Please try again.")
        self.assertEqual(ctx.exception.status_code, 400)

    def test_create_failure(self):
        db = MagicMock()
        db.find_profile_by_name.return_value = None
        db.create_profile.side_effect = RuntimeError("db down")
        with self.assertRaises(ProfileError) as ctx:
            sign_in(db, "Ada")
        self.assertEqual(
            ctx.exception.message, "Failed to create profile. Please try again."
        )
        self.assertEqual(ctx.exception.status_code, 400)

    def test_long_names_are_kept_whole(self):
        name = "A" * 150
        self.assertEqual(sign_in(self.db, name).name, name)


if __name__ == "__main__":
    unittest.main()
