"""
Tests for the Sentry event filters and the no-DSN fallbacks.
"""

from hearth.config import Settings
from hearth.core.exceptions import ForbiddenError, PaymentProviderError
from hearth.integrations.sentry import (
    _filter_events,
    _filter_transactions,
    capture_exception,
    init_sentry,
)


def hint_for(error: Exception) -> dict:
    return {"exc_info": (type(error), error, None)}


class TestEventFilter:
    def test_client_errors_dropped(self):
        assert _filter_events({}, hint_for(ForbiddenError())) is None

    def test_server_errors_kept(self):
        event = {"message": "boom"}

        assert _filter_events(event, hint_for(PaymentProviderError())) is event

    def test_credentials_scrubbed(self):
        event = {"request": {"headers": {
            "Authorization": "Bearer abc",
            "Stripe-Signature": "t=1,v1=deadbeef",
            "Accept": "application/json",
        }}}

        headers = _filter_events(event, {})["request"]["headers"]

        assert headers["Authorization"] == "[Filtered]"
        assert headers["Stripe-Signature"] == "[Filtered]"
        assert headers["Accept"] == "application/json"

    def test_health_transactions_dropped(self):
        assert _filter_transactions({"transaction": "/health"}, {}) is None
        assert _filter_transactions({"transaction": "/users"}, {}) is not None


class TestDisabled:
    def test_init_without_dsn(self):
        assert init_sentry(Settings(_env_file=None, sentry_dsn="")) is False

    def test_capture_falls_back_to_logging(self, caplog):
        assert capture_exception(RuntimeError("webhook store down"), event_type="invoice.paid") is None
        assert "Sentry disabled" in caplog.text
