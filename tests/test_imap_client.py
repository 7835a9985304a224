"""Tests for IMAP client module."""

import imaplib
from unittest.mock import MagicMock, patch

import pytest

from mailfiler.config import ImapConfig
from mailfiler.imap_client import IMAPClient, parse_list_response, quote_folder
from mailfiler.mailbox import MailboxAccessor, MailboxError


@pytest.fixture
def config():
    return ImapConfig(host="mail.example.com", username="user", password="secret")


@pytest.fixture
def conn():
    connection = MagicMock()
    connection.login.return_value = ("OK", [b"Logged in"])
    connection.select.return_value = ("OK", [b"12"])
    return connection


@pytest.fixture
def client(config, conn):
    with patch("mailfiler.imap_client.imaplib.IMAP4_SSL", return_value=conn):
        imap = IMAPClient(config)
        imap.connect()
        yield imap


def header_fetch(uid: int, block: bytes) -> list:
    return [(f"{uid} (UID {uid} BODY[HEADER] {{{len(block)}}}".encode(), block), b")"]


class TestParsing:
    """Tests for LIST response parsing."""

    def test_quoted_name(self):
        folder = parse_list_response(b'(\\HasNoChildren) "/" "Lists/Python"')

        assert folder.name == "Lists/Python"
        assert folder.delimiter == "/"
        assert folder.attributes == ["\\HasNoChildren"]

    def test_unquoted_name(self):
        folder = parse_list_response(b'(\\HasChildren) "." INBOX')

        assert folder.name == "INBOX"
        assert folder.delimiter == "."

    def test_nil_delimiter(self):
        folder = parse_list_response(b'(\\Noselect) NIL "Top"')

        assert folder.delimiter == ""
        assert folder.attributes == ["\\Noselect"]

    def test_escaped_quotes(self):
        folder = parse_list_response(b'() "/" "My \\"Box\\""')

        assert folder.name == 'My "Box"'

    def test_garbage(self):
        assert parse_list_response(b"nonsense") is None

    def test_quote_folder(self):
        assert quote_folder('Sent "Old"') == '"Sent \\"Old\\""'


class TestConnection:
    """Tests for connecting and logging in."""

    def test_connect_logs_in(self, client, conn):
        conn.login.assert_called_once_with("user", "secret")

    def test_implements_mailbox_accessor(self, client):
        assert isinstance(client, MailboxAccessor)

    def test_connection_refused(self, config):
        with patch("mailfiler.imap_client.imaplib.IMAP4_SSL", side_effect=OSError("refused")):
            with pytest.raises(ConnectionError):
                IMAPClient(config).connect()

    def test_authentication_failed(self, config, conn):
        conn.login.side_effect = imaplib.IMAP4.error("[AUTHENTICATIONFAILED] Invalid credentials")

        with patch("mailfiler.imap_client.imaplib.IMAP4_SSL", return_value=conn):
            with pytest.raises(ValueError, match="Authentication failed"):
                IMAPClient(config).connect()

    def test_plain_connection(self, conn):
        config = ImapConfig(host="localhost", port=143, username="u", password="p", use_tls=False)

        with patch("mailfiler.imap_client.imaplib.IMAP4", return_value=conn) as factory:
            with IMAPClient(config):
                pass

        factory.assert_called_once_with("localhost", 143, timeout=30)
        conn.logout.assert_called_once()


class TestFolders:
    """Tests for folder operations."""

    def test_list_folders(self, client, conn):
        conn.list.return_value = (
            "OK",
            [
                b'(\\HasNoChildren) "/" "INBOX"',
                b'(\\HasNoChildren) "/" "Lists/Python"',
                (b'(\\HasNoChildren) "/" {9}', b"Odd\\ Name"),
                None,
            ],
        )

        folders = client.list_folders()

        assert [f.name for f in folders] == ["INBOX", "Lists/Python", "Odd\\ Name"]

    def test_folder_exists_uses_listing(self, client, conn):
        conn.list.return_value = ("OK", [b'() "/" "INBOX"'])

        assert client.folder_exists("INBOX")
        assert not client.folder_exists("GitHub")
        assert conn.list.call_count == 1

    def test_created_folder_is_known(self, client, conn):
        conn.list.return_value = ("OK", [b'() "/" "INBOX"'])
        conn.create.return_value = ("OK", [b"Created"])
        client.list_folders()

        client.create_folder("GitHub")

        conn.create.assert_called_once_with('"GitHub"')
        assert client.folder_exists("GitHub")

    def test_select_failure(self, client, conn):
        client.select_folder("INBOX")
        conn.select.return_value = ("NO", [b"Mailbox does not exist"])

        with pytest.raises(MailboxError):
            client.select_folder("Missing")

        assert client.selected_folder is None

    def test_command_error_becomes_mailbox_error(self, client, conn):
        conn.select.side_effect = imaplib.IMAP4.error("connection lost")

        with pytest.raises(MailboxError):
            client.select_folder("INBOX")

    def test_folder_status(self, client, conn):
        conn.status.return_value = ("OK", [b'"Odd (1)" (MESSAGES 12 UNSEEN 3)'])

        status = client.folder_status("Odd (1)")

        assert status == {"MESSAGES": 12, "UNSEEN": 3}
        conn.status.assert_called_once_with('"Odd (1)"', "(MESSAGES UNSEEN)")


class TestMessages:
    """Tests for search, fetch and mutation."""

    def test_search_requires_selection(self, client):
        with pytest.raises(MailboxError):
            client.search_all()

    def test_search_all_sorted(self, client, conn):
        client.select_folder("INBOX")
        conn.uid.return_value = ("OK", [b"3 1 2"])

        assert client.search_all() == [1, 2, 3]
        conn.uid.assert_called_with("SEARCH", None, "ALL")

    def test_search_empty(self, client, conn):
        client.select_folder("INBOX")
        conn.uid.return_value = ("OK", [b""])

        assert client.search_all() == []

    def test_fetch_envelopes(self, client, conn):
        client.select_folder("Lists")
        block = b"From: News <News@Shop.com>\r\nTo: me@example.org, other@example.org\r\n\r\n"
        conn.uid.return_value = ("OK", header_fetch(5, block))

        envelopes = client.fetch_envelopes([5])

        assert envelopes[0].uid == 5
        assert envelopes[0].sender == "news@shop.com"
        assert envelopes[0].to_addrs == ["me@example.org", "other@example.org"]

    def test_fetch_envelopes_empty(self, client, conn):
        assert client.fetch_envelopes([]) == []
        conn.uid.assert_not_called()

    def test_fetch_headers(self, client, conn):
        client.select_folder("Lists")
        conn.uid.return_value = ("OK", header_fetch(7, b"List-Unsubscribe: <x>\r\n\r\n"))

        assert client.fetch_headers(7).startswith("List-Unsubscribe:")

    def test_fetch_headers_missing(self, client, conn):
        client.select_folder("Lists")
        conn.uid.return_value = ("OK", [None])

        with pytest.raises(MailboxError):
            client.fetch_headers(7)

    def test_fetch_new_messages(self, client, conn):
        conn.uid.side_effect = [
            ("OK", [b"1 2"]),
            ("OK", header_fetch(1, b"From: a@b.com\r\n\r\n") + header_fetch(2, b"From: c@d.com\r\n\r\n")),
        ]

        messages = client.fetch_new_messages("INBOX")

        assert [(m.uid, m.from_address) for m in messages] == [(1, "a@b.com"), (2, "c@d.com")]
        assert conn.uid.call_args_list[0].args == ("SEARCH", None, "UNSEEN", "NOT", "DELETED")

    def test_copy_and_mark_deleted(self, client, conn):
        client.select_folder("INBOX")
        conn.uid.return_value = ("OK", [None])

        client.copy_message(5, "Lists")
        client.mark_deleted(5)

        assert conn.uid.call_args_list[0].args == ("COPY", "5", '"Lists"')
        assert conn.uid.call_args_list[1].args == ("STORE", "5", "+FLAGS", "(\\Deleted)")

    def test_copy_failure(self, client, conn):
        client.select_folder("INBOX")
        conn.uid.return_value = ("NO", [b"[TRYCREATE] No such mailbox"])

        with pytest.raises(MailboxError):
            client.copy_message(5, "Missing")

    def test_expunge(self, client, conn):
        client.select_folder("INBOX")
        conn.expunge.return_value = ("OK", [None])

        client.expunge()

        conn.expunge.assert_called_once_with()
