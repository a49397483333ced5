"""Django app configuration for Kitman."""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class KitmanConfig(AppConfig):
    """Configuration for Kitman app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "kitman"
    verbose_name = _("Kitting and MRP")
