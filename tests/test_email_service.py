import pytest
from botocore.exceptions import ClientError

from database import Todo
from otpmodel.otp_model import Purpose
from services.email_service import EmailService


class StubSES:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send_email(self, **kwargs):
        if self.error:
            raise self.error
        self.sent.append(kwargs)
        return {"MessageId": "stub-id"}


@pytest.fixture
def ses():
    return StubSES()


@pytest.fixture
def service(ses):
    return EmailService(client=ses, sender="sender@example.com")


def test_verification_email_contains_code(service, ses):
    service.send_verification_email("alice@example.com", "123456", Purpose.SIGNUP)

    message = ses.sent[0]
    assert message["Source"] == "sender@example.com"
    assert message["Destination"] == {"ToAddresses": ["alice@example.com"]}
    assert message["Message"]["Subject"]["Data"] == "Your OTP for Todo App Account Signup"
    assert "123456" in message["Message"]["Body"]["Text"]["Data"]
    assert "123456" in message["Message"]["Body"]["Html"]["Data"]
    assert "creating your account" in message["Message"]["Body"]["Html"]["Data"]


def test_password_reset_email_wording(service, ses):
    service.send_verification_email("alice@example.com", "654321", Purpose.PASSWORD_RESET)

    message = ses.sent[0]["Message"]
    assert message["Subject"]["Data"] == "Your OTP for Todo App Password Reset"
    assert "resetting your password" in message["Body"]["Html"]["Data"]


def test_todo_list_email_groups_items(service, ses):
    todos = [
        Todo(id=1, title="Write report", done=False, user_id=1),
        Todo(id=2, title="Pay rent", description="Before Friday", date="2025-01-03", done=True, user_id=1),
    ]

    service.send_todo_list("alice@example.com", "alice", todos)

    body = ses.sent[0]["Message"]["Body"]
    assert "Hello, alice!" in body["Html"]["Data"]
    assert "Pending Tasks (1)" in body["Html"]["Data"]
    assert "Completed Tasks (1)" in body["Html"]["Data"]
    assert body["Text"]["Data"].splitlines()[2:] == [
        "1. Write report - No description (No date No time) [Pending]",
        "2. Pay rent - Before Friday (2025-01-03 No time) [Done]",
    ]


def test_todo_list_email_escapes_html(service, ses):
    todos = [Todo(id=1, title="<script>alert(1)</script>", done=False, user_id=1)]

    service.send_todo_list("alice@example.com", "alice", todos)

    html = ses.sent[0]["Message"]["Body"]["Html"]["Data"]
    assert "<script>" not in html
    assert "&lt;script&gt;" in html


def test_send_email_without_html(service, ses):
    service.send_email("alice@example.com", "Hello", "Plain body")

    assert ses.sent[0]["Message"]["Body"] == {"Text": {"Data": "Plain body"}}


def test_ses_errors_propagate():
    error = ClientError({"Error": {"Code": "MessageRejected", "Message": "rejected"}}, "SendEmail")
    service = EmailService(client=StubSES(error=error))

    with pytest.raises(ClientError):
        service.send_verification_email("alice@example.com", "123456", Purpose.SIGNUP)


def test_templates_live_inside_services_package():
    import services.email_service as email_service

    assert email_service.TEMPLATES_DIR.parent.name == "services"
    assert (email_service.TEMPLATES_DIR / "email_verification_code.html.jinja").is_file()
    assert (email_service.TEMPLATES_DIR / "todo_list.html.jinja").is_file()
