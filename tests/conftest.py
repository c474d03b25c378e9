#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pytest configuration for the ServiceNow report processor
Handles test environment setup and fixtures
"""

import base64
import datetime
import os
import sys
import textwrap
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import NameOID

# Add src directory to Python path
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

# Keep test runs away from real host files
os.environ["SERVICENOW_REPORTING_CONFIG"] = "/nonexistent/servicenow_reporting.yaml"
os.environ["EYAML_CONFIG"] = "/nonexistent/eyaml/config.yaml"
os.environ.pop("SERVICENOW_REPORTING_LOG_DIR", None)

from servicenow_reporting.core.error_handler import ErrorReporter  # noqa: E402


class RaisingErrorReporter(ErrorReporter):
    """Re-raises whatever the processor reports so failures are not swallowed"""

    def report(self, error):
        raise error


@pytest.fixture
def settings_hash():
    """Settings file content shared by processor tests"""
    return {
        "pe_console_url": "test_console",
        "caller": "test_caller",
        "category": "1",
        "contact_type": "1",
        "state": "1",
        "impact": "1",
        "urgency": "1",
        "assignment_group": "1",
        "assigned_to": "1",
        "instance": "test_instance",
        "user": "test_user",
        "password": "test_password",
    }


@pytest.fixture
def write_settings(tmp_path):
    """Write a settings mapping to servicenow_reporting.yaml and return its path"""

    def _write(data):
        path = tmp_path / "servicenow_reporting.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_report():
    """Run report stub exposing only the accessors the processor reads"""

    def _make(status, corrective_change=False, noop_pending=False, host="host", time="00:00:00", job_id="1"):
        report = Mock()
        report.status = status
        report.corrective_change = corrective_change
        report.noop_pending = noop_pending
        report.host = host
        report.time = time
        report.job_id = job_id
        return report

    return _make


@pytest.fixture
def raising_reporter():
    return RaisingErrorReporter()


def new_mock_response(status_code, body=None, text=None):
    """Build a mock requests.Response"""
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ""
    else:
        response.json.return_value = body
        response.text = text if text is not None else str(body)
    return response


@pytest.fixture
def mock_session():
    """requests.Session stand-in answering 200 with a created incident"""
    session = MagicMock()
    session.headers = {}
    session.post.return_value = new_mock_response(
        200, {"result": {"sys_id": "foo_sys_id", "number": "INC0010001"}}
    )
    return session


@pytest.fixture
def mock_response():
    """Factory fixture for mock responses"""
    return new_mock_response


def generate_key_pair(name):
    """RSA key plus self-signed certificate, as `eyaml createkeys` produces"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(1)
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return key, cert


def write_key_pair(directory, key, cert):
    private_key_path = directory / "private_key.pkcs7.pem"
    public_key_path = directory / "public_key.pkcs7.pem"
    private_key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    public_key_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return str(private_key_path), str(public_key_path)


@pytest.fixture
def key_pair_factory():
    """(generate, write) helpers for tests needing their own key pair"""
    return generate_key_pair, write_key_pair


@pytest.fixture(scope="session")
def eyaml_keys(tmp_path_factory):
    """Throwaway eyaml key pair on disk"""
    directory = tmp_path_factory.mktemp("eyaml")
    key, cert = generate_key_pair("eyaml-test")
    private_key_path, public_key_path = write_key_pair(directory, key, cert)
    return {"cert": cert, "private": private_key_path, "public": public_key_path}


@pytest.fixture(scope="session")
def encrypt(eyaml_keys):
    """Encrypt plaintext the way `eyaml encrypt -s` does and return the ENC[...] block"""

    def _encrypt(plaintext):
        der = (
            pkcs7.PKCS7EnvelopeBuilder()
            .set_data(plaintext.encode("utf-8"))
            .add_recipient(eyaml_keys["cert"])
            .encrypt(serialization.Encoding.DER, [])
        )
        return f"ENC[PKCS7,{base64.b64encode(der).decode('ascii')}]"

    return _encrypt


@pytest.fixture
def eyaml_config(tmp_path, eyaml_keys):
    """eyaml config.yaml pointing at the throwaway keys, written with Ruby symbol keys"""
    path = tmp_path / "eyaml_config.yaml"
    path.write_text(
        f"---\n:pkcs7_private_key: {eyaml_keys['private']}\n:pkcs7_public_key: {eyaml_keys['public']}\n",
        encoding="utf-8",
    )
    return str(path)


def multiline(value, width=60, indent=" " * 10):
    """Reflow an ENC block over several indented lines, like a YAML block scalar"""
    return "\n".join(indent + line for line in textwrap.wrap(value, width)) + "\n"


@pytest.fixture
def reflow():
    return multiline
