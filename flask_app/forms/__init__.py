# flask_app/forms/__init__.py
"""
WTForms package
"""

from .auth import LoginForm
from .importer import HostfullySettingsForm

__all__ = [
    "LoginForm",
    "HostfullySettingsForm",
]
