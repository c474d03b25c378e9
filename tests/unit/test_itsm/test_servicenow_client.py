#!/usr/bin/env python3
"""
ServiceNow incident client tests
"""

from unittest.mock import MagicMock, Mock

import pytest
import requests

from servicenow_reporting.config.settings import Settings
from servicenow_reporting.core.error_handler import RequestError, TransportError
from servicenow_reporting.itsm.incident_rules import IncidentCategory, IncidentDecision
from servicenow_reporting.itsm.servicenow_client import (
    AuthMode,
    IncidentResult,
    ServiceNowClient,
    build_incident_payload,
    build_short_description,
    select_auth,
)


@pytest.fixture
def settings(settings_hash):
    return Settings.from_dict(settings_hash)


@pytest.fixture
def report(make_report):
    return make_report("failed")


def _decision(category):
    return IncidentDecision(should_create=True, category=category)


class TestSelectAuth:
    def test_basic_auth_by_default(self, settings):
        auth = select_auth(settings)

        assert auth.kind == "basic"
        assert auth.request_options() == {"auth": ("test_user", "test_password")}

    def test_oauth_wins_when_both_are_configured(self, settings_hash):
        settings = Settings.from_dict(dict(settings_hash, oauth_token="test_token"))

        auth = select_auth(settings)

        assert auth.is_oauth is True
        options = auth.request_options()
        assert options == {"headers": {"Authorization": "Bearer test_token"}}
        assert "auth" not in options

    def test_credentials_hidden_from_repr(self):
        auth = AuthMode(kind="basic", user="u", password="secret-password", token="secret-token")

        assert "secret-password" not in repr(auth)
        assert "secret-token" not in repr(auth)


class TestPayload:
    @pytest.mark.parametrize(
        "category, wording",
        [
            (IncidentCategory.CORRECTIVE, "changed"),
            (IncidentCategory.INTENTIONAL, "changed"),
            (IncidentCategory.FAILED, "failed"),
            (IncidentCategory.PENDING, "pending changes"),
            (IncidentCategory.UNCHANGED, "unchanged"),
        ],
    )
    def test_short_description_wording(self, report, category, wording):
        short_description = build_short_description(_decision(category), report)

        assert f"(status: {wording})" in short_description

    def test_short_description_context(self, report):
        short_description = build_short_description(_decision(IncidentCategory.FAILED), report)

        assert short_description == "Puppet run report 00:00:00 (status: failed) for node host (job 1)"

    def test_short_description_without_job_id(self, make_report):
        report = make_report("failed", job_id=None)

        short_description = build_short_description(_decision(IncidentCategory.FAILED), report)

        assert "job" not in short_description

    def test_missing_host_and_time_read_as_unknown(self, settings, make_report):
        report = make_report("failed", host=None, time=None, job_id=None)

        payload = build_incident_payload(_decision(IncidentCategory.FAILED), settings, report)

        assert payload["short_description"] == "Puppet run report unknown (status: failed) for node unknown"
        assert "None" not in payload["description"]
        assert "Node: unknown" in payload["description"]

    def test_settings_fields_are_copied(self, settings, report):
        payload = build_incident_payload(_decision(IncidentCategory.FAILED), settings, report)

        assert payload["caller_id"] == "test_caller"
        for field in ("category", "contact_type", "state", "impact", "urgency", "assignment_group", "assigned_to"):
            assert payload[field] == "1"
        assert payload["pe_console_url"] == "test_console"
        assert payload["instance"] == "test_instance"

    def test_credentials_never_in_payload(self, settings_hash, report):
        settings = Settings.from_dict(dict(settings_hash, oauth_token="test_token"))

        payload = build_incident_payload(_decision(IncidentCategory.FAILED), settings, report)

        values = " ".join(payload.values())
        assert "test_password" not in values
        assert "test_token" not in values
        assert "user" not in payload

    def test_empty_optional_fields_are_omitted(self, settings_hash, report):
        data = dict(settings_hash)
        del data["assigned_to"]
        settings = Settings.from_dict(data)

        payload = build_incident_payload(_decision(IncidentCategory.FAILED), settings, report)

        assert "assigned_to" not in payload

    def test_description_links_to_console(self, settings, report):
        payload = build_incident_payload(_decision(IncidentCategory.FAILED), settings, report)

        assert "Node: host" in payload["description"]
        assert "test_console/#/enforcement/node/host/reports" in payload["description"]

    def test_refuses_skip_decisions(self, settings, report):
        with pytest.raises(ValueError):
            build_incident_payload(IncidentDecision.skip(), settings, report)


class TestSubmit:
    def test_posts_once_to_incident_endpoint(self, settings, mock_session):
        client = ServiceNowClient(settings, session=mock_session)

        client.submit({"short_description": "x"}, select_auth(settings))

        mock_session.post.assert_called_once()
        args, kwargs = mock_session.post.call_args
        assert args[0] == "test_console/api/now/table/incident"
        assert kwargs["json"] == {"short_description": "x"}
        assert kwargs["auth"] == ("test_user", "test_password")
        assert kwargs["verify"] is True
        assert kwargs["timeout"] == (60.0, 60.0)

    def test_json_headers_sent_per_request(self, settings, mock_session):
        client = ServiceNowClient(settings, session=mock_session)

        client.submit({}, select_auth(settings))

        headers = mock_session.post.call_args.kwargs["headers"]
        assert headers["Content-Type"] == "application/json"
        assert headers["Accept"] == "application/json"
        assert "Authorization" not in headers

    def test_injected_session_headers_are_untouched(self, settings_hash, mock_session):
        mock_session.headers = {"X-Caller": "kept"}
        settings = Settings.from_dict(dict(settings_hash, oauth_token="test_token"))
        client = ServiceNowClient(settings, session=mock_session)

        client.submit({}, select_auth(settings))

        assert mock_session.headers == {"X-Caller": "kept"}

    def test_success_returns_incident(self, settings, mock_session):
        client = ServiceNowClient(settings, session=mock_session)

        result = client.submit({}, select_auth(settings))

        assert isinstance(result, IncidentResult)
        assert result.status_code == 200
        assert result.sys_id == "foo_sys_id"
        assert result.number == "INC0010001"
        assert result.url == "https://test_instance/incident.do?sys_id=foo_sys_id"

    def test_success_without_json_body(self, settings, mock_session, mock_response):
        mock_session.post.return_value = mock_response(200, text="OK")
        client = ServiceNowClient(settings, session=mock_session)

        result = client.submit({}, select_auth(settings))

        assert result == IncidentResult(status_code=200)

    @pytest.mark.parametrize("status_code", [201, 300, 400, 401, 500])
    def test_other_status_codes_raise(self, settings, mock_session, mock_response, status_code):
        mock_session.post.return_value = mock_response(status_code, {"sys_id": "foo_sys_id"})
        client = ServiceNowClient(settings, session=mock_session)

        with pytest.raises(RequestError, match=f"status: {status_code}") as exc_info:
            client.submit({}, select_auth(settings))

        assert exc_info.value.status_code == status_code
        mock_session.post.assert_called_once()

    @pytest.mark.parametrize(
        "exception",
        [
            requests.exceptions.ConnectionError("connection refused"),
            requests.exceptions.Timeout("read timed out"),
        ],
    )
    def test_network_failures_raise_transport_error(self, settings, mock_session, exception):
        mock_session.post.side_effect = exception
        client = ServiceNowClient(settings, session=mock_session)

        with pytest.raises(TransportError) as exc_info:
            client.submit({}, select_auth(settings))

        assert exc_info.value.__cause__ is exception
        mock_session.post.assert_called_once()

    def test_oauth_request_carries_bearer_only(self, settings_hash, mock_session):
        settings = Settings.from_dict(dict(settings_hash, oauth_token="test_token"))
        client = ServiceNowClient(settings, session=mock_session)

        client.submit({}, select_auth(settings))

        kwargs = mock_session.post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer test_token"
        assert "auth" not in kwargs

    def test_skip_certificate_validation(self, settings_hash, mock_session):
        settings = Settings.from_dict(dict(settings_hash, skip_certificate_validation=True))
        client = ServiceNowClient(settings, session=mock_session)

        client.submit({}, select_auth(settings))

        assert mock_session.post.call_args.kwargs["verify"] is False

    def test_trailing_slash_in_console_url(self, settings_hash, mock_session):
        settings = Settings.from_dict(dict(settings_hash, pe_console_url="https://console.example.com/"))

        client = ServiceNowClient(settings, session=mock_session)

        assert client.incident_url == "https://console.example.com/api/now/table/incident"


class TestSessionLifecycle:
    def test_injected_session_is_left_open(self, settings, mock_session):
        with ServiceNowClient(settings, session=mock_session):
            pass

        mock_session.close.assert_not_called()

    def test_own_session_is_closed(self, settings, monkeypatch):
        session = MagicMock()
        session.headers = {}
        monkeypatch.setattr(requests, "Session", Mock(return_value=session))

        with ServiceNowClient(settings):
            pass

        session.close.assert_called_once()


class TestCreateIncident:
    def test_builds_and_submits(self, settings, mock_session, report):
        client = ServiceNowClient(settings, session=mock_session)

        result = client.create_incident(_decision(IncidentCategory.FAILED), report)

        assert result.sys_id == "foo_sys_id"
        payload = mock_session.post.call_args.kwargs["json"]
        assert "(status: failed)" in payload["short_description"]
