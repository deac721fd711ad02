"""
Jinja2 template renderer - Implements TemplateRenderer protocol.

Templates live in one directory per locale (templates/<lang>/<name>.html).
A template missing for a locale falls back to the default locale.

Subjects are gettext messages read from per-locale catalogs
(locales/<lang>/LC_MESSAGES/messages.po) through Babel. A message missing
from a locale's catalog falls back to the default locale's catalog.
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import Any

from babel.messages.mofile import write_mo
from babel.messages.pofile import read_po
from babel.support import NullTranslations, Translations
from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.domain.accounts import NotificationKind

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_LOCALES_DIR = Path(__file__).parent / "locales"
MESSAGES_DOMAIN = "messages"

TEMPLATE_NAMES = {
    NotificationKind.ACTIVATION: "activation_email.html",
    NotificationKind.CREATION: "creation_email.html",
    NotificationKind.PASSWORD_RESET: "password_reset_email.html",
}

TITLE_KEYS = {
    NotificationKind.ACTIVATION: "email.activation.title",
    NotificationKind.CREATION: "email.creation.title",
    NotificationKind.PASSWORD_RESET: "email.reset.title",
}


def load_translations(locales_dir: Path | str, locale: str) -> Translations | None:
    """
    Load the message catalog of one locale.

    A compiled messages.mo is used when present; otherwise messages.po is
    compiled in memory, so catalogs work without a build step.

    Returns:
        The locale's translations, or None when it has no catalog
    """
    lc_messages = Path(locales_dir) / locale / "LC_MESSAGES"
    mo_path = lc_messages / f"{MESSAGES_DOMAIN}.mo"
    if mo_path.exists():
        with mo_path.open("rb") as mo_file:
            return Translations(mo_file, domain=MESSAGES_DOMAIN)

    po_path = lc_messages / f"{MESSAGES_DOMAIN}.po"
    if not po_path.exists():
        return None
    with po_path.open("rb") as po_file:
        catalog = read_po(po_file, locale=locale, domain=MESSAGES_DOMAIN)
    compiled = BytesIO()
    write_mo(compiled, catalog)
    compiled.seek(0)
    return Translations(compiled, domain=MESSAGES_DOMAIN)


class JinjaTemplateRenderer:
    """Render lifecycle emails with Jinja2, HTML-escaping every variable."""

    def __init__(
        self,
        templates_dir: Path | str = DEFAULT_TEMPLATES_DIR,
        default_locale: str = "en",
        locales_dir: Path | str = DEFAULT_LOCALES_DIR,
    ) -> None:
        self._default_locale = default_locale
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

        default = load_translations(locales_dir, default_locale)
        if default is None:
            logger.warning("No message catalog for default locale %s", default_locale)
            default = NullTranslations()
        self._default_translations = default
        self._translations: dict[str, NullTranslations] = {default_locale: default}

        locales_path = Path(locales_dir)
        if locales_path.is_dir():
            for locale_dir in sorted(locales_path.iterdir()):
                locale = locale_dir.name
                if locale == default_locale:
                    continue
                translations = load_translations(locales_path, locale)
                if translations is not None:
                    translations.add_fallback(default)
                    self._translations[locale] = translations

    def render(self, kind: NotificationKind, locale: str, variables: dict[str, Any]) -> str:
        name = TEMPLATE_NAMES[kind]
        template = self._env.select_template(
            [f"{locale}/{name}", f"{self._default_locale}/{name}"]
        )
        return template.render(**variables)

    def subject(self, kind: NotificationKind, locale: str) -> str:
        translations = self._translations.get(locale, self._default_translations)
        return translations.gettext(TITLE_KEYS[kind])
