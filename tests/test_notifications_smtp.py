"""Tests for the SMTP client wrapper."""

import smtplib
from email.message import EmailMessage
from unittest.mock import MagicMock

import pytest

from jobdigest.config.environment import EnvironmentConfig
from jobdigest.notifications.models import SMTPDeliveryError
from jobdigest.notifications.smtp_client import (
    SMTPClient,
    build_sender_address,
    normalize_recipient,
)


def make_env(**overrides):
    fields = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_user": "jobs@example.com",
        "smtp_pass": "secret",
    }
    fields.update(overrides)
    return EnvironmentConfig(**fields)


@pytest.fixture
def message():
    msg = EmailMessage()
    msg["Subject"] = "Your Latest Job Digest"
    msg["From"] = "MyCareerBuild <jobs@example.com>"
    msg["To"] = "asha@example.com"
    msg.set_content("Hi Asha")
    return msg


@pytest.fixture
def smtp():
    return MagicMock()


@pytest.fixture
def client(smtp):
    return SMTPClient(
        smtp_factory=MagicMock(return_value=smtp),
        smtp_ssl_factory=MagicMock(return_value=smtp),
        timeout=12,
    )


def test_starttls_login_and_send(client, smtp, message):
    client.send(message, make_env())

    client.smtp_factory.assert_called_once_with("smtp.example.com", 587, timeout=12)
    client.smtp_ssl_factory.assert_not_called()
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("jobs@example.com", "secret")
    smtp.send_message.assert_called_once_with(message)
    smtp.quit.assert_called_once()


def test_implicit_tls_on_port_465(client, smtp, message):
    client.send(message, make_env(smtp_port=465))

    client.smtp_factory.assert_not_called()
    args, kwargs = client.smtp_ssl_factory.call_args
    assert args == ("smtp.example.com", 465)
    assert kwargs["timeout"] == 12
    assert "context" in kwargs
    smtp.starttls.assert_not_called()
    smtp.send_message.assert_called_once_with(message)


def test_plain_connection_without_credentials(client, smtp, message):
    client.send(message, make_env(smtp_user=None, smtp_pass=None, smtp_port=25), use_tls=False)

    smtp.starttls.assert_not_called()
    smtp.login.assert_not_called()
    smtp.send_message.assert_called_once_with(message)


def test_refused_recipient_is_not_retryable(client, smtp, message):
    smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused(
        {"asha@example.com": (550, b"mailbox unavailable")}
    )

    with pytest.raises(SMTPDeliveryError) as exc_info:
        client.send(message, make_env())

    assert exc_info.value.retryable is False
    smtp.quit.assert_called_once()


def test_auth_failure_is_retryable(client, smtp, message):
    smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    with pytest.raises(SMTPDeliveryError) as exc_info:
        client.send(message, make_env())

    assert exc_info.value.retryable is True
    smtp.send_message.assert_not_called()
    smtp.quit.assert_called_once()


def test_connection_failure(client, message):
    client.smtp_factory.side_effect = ConnectionRefusedError("refused")

    with pytest.raises(SMTPDeliveryError, match="Network error"):
        client.send(message, make_env())


def test_quit_errors_are_ignored(client, smtp, message):
    smtp.quit.side_effect = smtplib.SMTPServerDisconnected("gone")

    client.send(message, make_env())

    smtp.send_message.assert_called_once()


def test_normalize_recipient():
    assert normalize_recipient("asha@example.com") == "asha@example.com"
    with pytest.raises(ValueError):
        normalize_recipient("asha at example")


def test_build_sender_address():
    env = make_env(smtp_sender_name="Careers", mail_from_email="digest@example.com")
    assert build_sender_address(env) == "Careers <digest@example.com>"

    # MAIL_FROM_EMAIL falls back to SMTP_USER
    assert build_sender_address(make_env()) == "MyCareerBuild <jobs@example.com>"

    env = make_env(smtp_user=None, smtp_pass=None)
    assert build_sender_address(env) == "MyCareerBuild <noreply@smtp.example.com>"
