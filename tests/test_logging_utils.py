import logging

from gatehouse.logging_utils import KEEP_VERIFY_LINK, RedactSecretsFilter, install_log_safety


def _filtered(msg, *args):
    record = logging.LogRecord("gatehouse.test", logging.INFO, __file__, 1, msg, args, None)
    RedactSecretsFilter().filter(record)
    return record.getMessage()


def test_redacts_key_value_pairs():
    out = _filtered("login password=hunter2&email=a@x.com session_id=%s", "abc123")

    assert "hunter2" not in out
    assert "abc123" not in out
    assert "email=a@x.com" in out


def test_redacts_json_and_hashes_and_links():
    out = _filtered(
        '{"verifyToken": "tok123"} hash=$argon2id$v=19$m=8,t=1,p=1$c2FsdA$aGFzaA '
        "link http://auth.test/auth/verify-email/feedface"
    )

    assert "tok123" not in out
    assert "c2FsdA" not in out
    assert "feedface" not in out
    assert "/verify-email/REDACTED" in out


def test_marked_record_keeps_verify_link_but_not_other_secrets():
    record = logging.LogRecord(
        "gatehouse.test", logging.INFO, __file__, 1,
        "link http://auth.test/auth/verify-email/feedface password=hunter2", (), None,
    )
    setattr(record, KEEP_VERIFY_LINK, True)

    RedactSecretsFilter().filter(record)

    out = record.getMessage()
    assert "/verify-email/feedface" in out
    assert "hunter2" not in out


def test_plain_messages_untouched():
    assert _filtered("Login: %s", "a@x.com") == "Login: a@x.com"


def test_install_is_idempotent():
    install_log_safety()
    install_log_safety()
    root = logging.getLogger()
    names = [getattr(f, "name", None) for f in root.filters]
    assert names.count("gatehouse_redact_secrets") == 1
