# shared setup for route tests
import unittest
from unittest.mock import MagicMock, Mock

import jwt
from flask import Flask

DEALERSHIP = "00000000-0000-0000-0000-000000000001"
SECRET = "test-secret-key"


def make_token(roles, name="Tess", sub="u-1", dealership_id=DEALERSHIP, secret=SECRET):
    return jwt.encode(
        {"sub": sub, "name": name, "roles": list(roles), "dealership_id": dealership_id},
        secret,
        algorithm="HS256",
    )


def auth_header(roles, **kw):
    return {"Authorization": f"Bearer {make_token(roles, **kw)}"}


def mock_connection():
    """MagicMock connection with a transaction that reports itself active."""
    mock_conn = MagicMock()
    mock_result = MagicMock()
    mock_conn.execute.return_value = mock_result

    mock_tx = MagicMock()
    mock_tx.is_active = True
    mock_conn.begin.return_value = mock_tx
    mock_conn.in_transaction = Mock(return_value=False)
    return mock_conn, mock_result, mock_tx


class RouteTestCase(unittest.TestCase):
    blueprint = None

    def setUp(self):
        self.app = Flask(__name__)
        self.app.config["TESTING"] = True
        self.app.config["JWT_SECRET"] = SECRET
        self.app.config["JWT_EXPIRES_HOURS"] = 12
        self.app.config["DEFAULT_DEALERSHIP_ID"] = DEALERSHIP
        self.app.register_blueprint(self.blueprint, url_prefix="/api")
        self.client = self.app.test_client()
        self.mock_conn, self.mock_result, self.mock_tx = mock_connection()

    def wire(self, mock_get_conn):
        mock_get_conn.return_value.__enter__.return_value = self.mock_conn
