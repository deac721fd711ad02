"""Mail adapters - Template rendering and message transports."""

from .console import ConsoleMailTransport
from .smtp import SmtpMailTransport
from .templates import JinjaTemplateRenderer

__all__ = ["ConsoleMailTransport", "JinjaTemplateRenderer", "SmtpMailTransport"]
