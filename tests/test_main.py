"""Tests for the main.py command line.

The ApiClient is patched out; these tests check argument handling and exit
codes, not HTTP.
"""

from unittest.mock import MagicMock, patch

import pytest

import main
from client.api_client import ApiClientError


@pytest.fixture
def fake_client():
    instance = MagicMock()
    instance.login.return_value = {"token": "t", "expiresAt": 123, "roles": ["viewer"]}
    instance.get_example.return_value = {"message": "Hello bob (viewer), this is a GET example"}
    instance.post_example.return_value = {"message": "Hello bob (viewer), you posted data", "data": {"a": 1}}
    with patch.object(main, "ApiClient", return_value=instance) as cls:
        yield cls, instance


def test_demo_get(fake_client, capsys) -> None:
    cls, instance = fake_client
    code = main.main(["demo", "--url", "http://x/api", "--username", "bob", "--password", "password2"])
    assert code == 0
    cls.assert_called_once_with("http://x/api")
    instance.login.assert_called_once_with("bob", "password2")
    instance.get_example.assert_called_once_with()
    out = capsys.readouterr().out
    assert "roles: viewer" in out
    assert "this is a GET example" in out
    instance.close.assert_called_once()


def test_demo_post(fake_client, capsys) -> None:
    _cls, instance = fake_client
    code = main.main(["demo", "--username", "bob", "--password", "pw", "--post", '{"a": 1}'])
    assert code == 0
    instance.post_example.assert_called_once_with({"a": 1})
    out = capsys.readouterr().out
    assert '"a": 1' in out


def test_demo_bad_post_json(fake_client) -> None:
    _cls, instance = fake_client
    code = main.main(["demo", "--username", "bob", "--password", "pw", "--post", "{nope"])
    assert code == 2
    instance.post_example.assert_not_called()


def test_demo_api_error(fake_client, capsys) -> None:
    _cls, instance = fake_client
    instance.login.side_effect = ApiClientError("API error (401): Invalid credentials", status=401)
    code = main.main(["demo", "--username", "bob", "--password", "wrong"])
    assert code == 1
    assert "Invalid credentials" in capsys.readouterr().out


def test_serve_runs_uvicorn() -> None:
    with patch("uvicorn.run") as run:
        code = main.main(["serve", "--port", "9000"])
    assert code == 0
    run.assert_called_once_with("api.main:app", host="127.0.0.1", port=9000, reload=False)


def test_command_required() -> None:
    with pytest.raises(SystemExit):
        main.main([])
