# SPDX-License-Identifier: Apache-2.0
"""Configurable translation backend for arbitrary HTTP APIs."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from translation_engine.config import BackendConfig, CustomConfig
from translation_engine.errors import BackendError
from translation_engine.languages import LanguageCode
from translation_engine.models import BackendType
from translation_engine.transport import Transport
from translation_engine.validation import validate_url

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_LANGUAGES: tuple[LanguageCode, ...] = (
    LanguageCode.AUTO,
    LanguageCode.ZH_CN,
    LanguageCode.ZH_TW,
    LanguageCode.EN,
    LanguageCode.JA,
    LanguageCode.KO,
    LanguageCode.FR,
    LanguageCode.DE,
    LanguageCode.ES,
    LanguageCode.IT,
    LanguageCode.PT,
    LanguageCode.RU,
    LanguageCode.AR,
    LanguageCode.TH,
    LanguageCode.VI,
    LanguageCode.ID,
    LanguageCode.MS,
    LanguageCode.TR,
    LanguageCode.PL,
    LanguageCode.NL,
    LanguageCode.SV,
    LanguageCode.DA,
    LanguageCode.NO,
    LanguageCode.FI,
    LanguageCode.CS,
    LanguageCode.HU,
    LanguageCode.RO,
    LanguageCode.BG,
    LanguageCode.HR,
    LanguageCode.SK,
    LanguageCode.SL,
    LanguageCode.ET,
    LanguageCode.LV,
    LanguageCode.LT,
    LanguageCode.CA,
    LanguageCode.EL,
    LanguageCode.HE,
    LanguageCode.HI,
)

SUPPORTED_METHODS = ("GET", "POST")

_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


def get_nested_value(data: Any, path: str) -> Any:
    """Look up a dotted path such as ``choices.0.text``.

    Numeric segments index into lists. Returns None when any segment is
    missing.
    """
    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and key.lstrip("-").isdigit():
            index = int(key)
            current = current[index] if -len(current) <= index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def render_template(template: str, variables: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; dotted names are looked up as paths.

    Placeholders without a value are left in place.
    """

    def replace(match: re.Match[str]) -> str:
        value = get_nested_value(variables, match.group(1))
        if value is None:
            return match.group(0)
        return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)

    return _PLACEHOLDER_PATTERN.sub(replace, template)


def _render_values(node: Any, variables: dict[str, Any]) -> Any:
    if isinstance(node, str):
        return render_template(node, variables)
    if isinstance(node, dict):
        return {key: _render_values(value, variables) for key, value in node.items()}
    if isinstance(node, list):
        return [_render_values(item, variables) for item in node]
    return node


class CustomAdapter:
    """Translates through a user-described HTTP endpoint.

    The request is built either from the ``*_field`` name mappings or from
    ``request_template``. A JSON template is parsed first and placeholders
    are substituted inside its string values, so the text never needs
    escaping by the user.
    """

    type = BackendType.CUSTOM.value
    display_name = "Custom Translator"
    config_model: type[BackendConfig] = CustomConfig

    def __init__(
        self,
        config: CustomConfig | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config: CustomConfig = config or CustomConfig()
        self._owns_transport = transport is None
        self._transport = transport or Transport()

    @property
    def config(self) -> CustomConfig:
        return self._config

    @config.setter
    def config(self, value: CustomConfig) -> None:
        self._config = value

    @property
    def method(self) -> str:
        return (self._config.method or "POST").upper()

    def get_supported_languages(self) -> list[str]:
        if self._config.supported_languages:
            return list(self._config.supported_languages)
        return [code.value for code in DEFAULT_SUPPORTED_LANGUAGES]

    def validate_config(self) -> bool:
        if not validate_url(self._config.endpoint):
            logger.error("Invalid custom endpoint URL: %r", self._config.endpoint)
            return False
        if self.method not in SUPPORTED_METHODS:
            logger.error("Invalid HTTP method %s, only GET and POST are supported", self.method)
            return False
        return True

    async def setup(self) -> None:
        self._transport.set_default_timeout(self._config.timeout)

    async def close(self) -> None:
        if self._owns_transport:
            await self._transport.close()

    async def translate_raw(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
    ) -> str:
        config = self._config
        variables = {
            "text": text,
            "from": str(source_lang),
            "to": str(target_lang),
            "apiKey": config.api_key or "",
        }
        headers = {
            key: render_template(value, variables)
            for key, value in {**config.custom_headers, **config.headers}.items()
        }
        payload = self._build_payload(text, str(source_lang), str(target_lang), variables)

        if self.method == "GET":
            if not isinstance(payload, dict):
                raise BackendError("GET request template must be a JSON object")
            params = {
                key: value if isinstance(value, str) else json.dumps(value)
                for key, value in payload.items()
            }
            response = await self._transport.get(
                config.endpoint,
                headers=headers,
                params=params,
                timeout=config.timeout,
                retries=config.retry_count,
            )
        else:
            response = await self._transport.post(
                config.endpoint,
                payload,
                headers=headers,
                timeout=config.timeout,
                retries=config.retry_count,
            )

        if not response.data:
            raise BackendError("Empty response from custom API")
        result = self._parse_response(response.data)
        logger.debug("Custom API translation completed")
        return result

    def _build_payload(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        variables: dict[str, Any],
    ) -> Any:
        config = self._config
        if config.request_template:
            try:
                template = json.loads(config.request_template)
            except ValueError:
                return render_template(config.request_template, variables)
            return _render_values(template, variables)

        payload: dict[str, Any] = {
            config.text_field: text,
            config.from_field: source_lang,
            config.to_field: target_lang,
        }
        if config.api_key:
            payload["apiKey"] = config.api_key
        return payload

    def _parse_response(self, data: Any) -> str:
        config = self._config
        if config.error_field:
            error = get_nested_value(data, config.error_field)
            if error:
                if not isinstance(error, str):
                    error = json.dumps(error, ensure_ascii=False)
                raise BackendError(f"Custom API error: {error}")

        if config.response_template:
            if not isinstance(data, dict):
                raise BackendError("No translation result found in response")
            result: Any = render_template(config.response_template, data)
            if _PLACEHOLDER_PATTERN.search(result):
                result = None
        else:
            result = get_nested_value(data, config.result_field)

        if result is None or result == "":
            raise BackendError("No translation result found in response")
        return result if isinstance(result, str) else json.dumps(result, ensure_ascii=False)
