#!/usr/bin/env python3
"""
hiera-eyaml Secret Resolver
Decrypts ENC[PKCS7,...] values found in the settings file
"""

import base64
import binascii
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Tuple

import yaml
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from servicenow_reporting.config.constants import EYAML_DEFAULT_KEYS, get_path
from servicenow_reporting.core.error_handler import ConfigError, handle_errors
from servicenow_reporting.utils.unified_logger import get_logger

logger = get_logger(__name__)

ENCRYPTED_VALUE_PREFIX = "ENC["
ENCRYPTED_VALUE_PATTERN = re.compile(r"^ENC\[(?P<scheme>[A-Za-z0-9_]+),(?P<payload>[A-Za-z0-9+/=]+)\]$")
SUPPORTED_SCHEMES = ("PKCS7",)


def strip_whitespace(value: str) -> str:
    """Remove every whitespace character, including newlines and indentation"""
    return "".join(value.split())


@dataclass(frozen=True)
class EyamlKeyConfig:
    """Key material locations read from the hiera-eyaml config file"""

    pkcs7_private_key: str
    pkcs7_public_key: str

    @classmethod
    def load(cls, config_path: str) -> "EyamlKeyConfig":
        """
        Load the eyaml config, falling back to default key discovery.

        A missing file means defaults; a file that exists but cannot be
        read or parsed is a ConfigError.
        """
        keys = dict(EYAML_DEFAULT_KEYS)
        path = Path(config_path)

        if not path.is_file():
            logger.debug(f"No hiera-eyaml config at {config_path}, using default key locations")
            return cls(**keys)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Unable to load hiera-eyaml config {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"hiera-eyaml config {config_path} must be a mapping")

        for key, value in data.items():
            # Ruby-generated configs write symbol keys (":pkcs7_private_key")
            name = str(key).lstrip(":")
            if name in keys and value:
                keys[name] = str(value)

        return cls(**keys)


class Pkcs7Decryptor:
    """PKCS#7 enveloped-data decryption with the eyaml key pair"""

    def __init__(self, private_key_path: str, public_key_path: str):
        self.private_key_path = private_key_path
        self.public_key_path = public_key_path
        self._private_key = None
        self._certificate = None

    @handle_errors(ConfigError, catch=(OSError, ValueError, TypeError, UnsupportedAlgorithm))
    def _load_keys(self):
        with open(self.private_key_path, "rb") as f:
            self._private_key = serialization.load_pem_private_key(f.read(), password=None)
        with open(self.public_key_path, "rb") as f:
            self._certificate = x509.load_pem_x509_certificate(f.read())

    @handle_errors(ConfigError, catch=(ValueError, TypeError, UnsupportedAlgorithm))
    def decrypt(self, ciphertext: bytes) -> bytes:
        if self._private_key is None:
            self._load_keys()
        return pkcs7.pkcs7_decrypt_der(ciphertext, self._certificate, self._private_key, [])


DecryptorFactory = Callable[[str, str], Pkcs7Decryptor]


class SecretResolver:
    """
    Resolves raw settings values to plaintext.

    Values that do not look like ``ENC[...]`` pass through unchanged. The
    key config is looked up once, on the first encrypted value, and kept
    for the lifetime of this resolver.
    """

    def __init__(self, config_path: str = None, decryptor_factory: DecryptorFactory = Pkcs7Decryptor):
        self.config_path = config_path or get_path("EYAML_CONFIG")
        self.decryptor_factory = decryptor_factory
        self._key_config: Optional[EyamlKeyConfig] = None
        self._decryptor = None

    @staticmethod
    def is_encrypted(value) -> bool:
        return isinstance(value, str) and value.strip().startswith(ENCRYPTED_VALUE_PREFIX)

    @property
    def key_config(self) -> EyamlKeyConfig:
        if self._key_config is None:
            self._key_config = EyamlKeyConfig.load(self.config_path)
        return self._key_config

    @property
    def decryptor(self):
        if self._decryptor is None:
            config = self.key_config
            self._decryptor = self.decryptor_factory(config.pkcs7_private_key, config.pkcs7_public_key)
        return self._decryptor

    def parse(self, value: str) -> Tuple[str, bytes]:
        """Split an ENC[...] block into its scheme and DER ciphertext"""
        match = ENCRYPTED_VALUE_PATTERN.match(strip_whitespace(value))
        if not match:
            raise ConfigError("Malformed encrypted value: expected ENC[<scheme>,<base64>]")

        scheme = match.group("scheme").upper()
        if scheme not in SUPPORTED_SCHEMES:
            raise ConfigError(f"Unsupported encryption scheme: {scheme}")

        try:
            ciphertext = base64.b64decode(match.group("payload"), validate=True)
        except binascii.Error as e:
            raise ConfigError(f"Encrypted value is not valid base64: {e}") from e

        return scheme, ciphertext

    def resolve(self, value):
        if not self.is_encrypted(value):
            return value

        _, ciphertext = self.parse(value)
        plaintext = self.decryptor.decrypt(ciphertext)

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigError("Decrypted value is not valid UTF-8") from e
