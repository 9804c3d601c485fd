import unittest
from unittest.mock import MagicMock

from visionboard.auth import Identity
from visionboard.errors import AuthenticationError, BackendError
from visionboard.session import SessionResolver, extract_access_token


class ExtractAccessTokenTests(unittest.TestCase):
    def test_bearer_header_wins(self):
        self.assertEqual(extract_access_token("Bearer abc", "cookie"), "abc")
        self.assertEqual(extract_access_token("bearer  abc ", None), "abc")

    def test_falls_back_to_cookie(self):
        self.assertEqual(extract_access_token(None, "cookie"), "cookie")
        self.assertEqual(extract_access_token("Basic zzz", "cookie"), "cookie")
        self.assertEqual(extract_access_token("Bearer ", "cookie"), "cookie")
        self.assertIsNone(extract_access_token(None, ""))


class SessionResolverTests(unittest.TestCase):
    def setUp(self):
        self.auth = MagicMock()
        self.resolver = SessionResolver(self.auth)

    def test_no_token_skips_backend(self):
        self.assertIsNone(self.resolver.resolve(None))
        self.auth.get_user.assert_not_called()

    def test_resolves_identity(self):
        self.auth.get_user.return_value = Identity(id="u1", email="a@b.c")
        self.assertEqual(self.resolver.require("tok").id, "u1")

    def test_backend_failure_reads_as_signed_out(self):
        self.auth.get_user.side_effect = BackendError("timeout")
        self.assertIsNone(self.resolver.resolve("tok"))
        with self.assertRaises(AuthenticationError):
            self.resolver.require("tok")


if __name__ == "__main__":
    unittest.main()
