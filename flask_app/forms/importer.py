# flask_app/forms/importer.py
"""
Forms for the Hostfully importer admin page
"""

from urllib.parse import urlparse

from flask_wtf import FlaskForm
from wtforms import BooleanField, IntegerField, PasswordField, SelectField, StringField, SubmitField
from wtforms.validators import Length, Optional, ValidationError

from flask_app.importer.settings import CHANNEL_POLICY_ALL, CHANNEL_POLICY_ANY_TRUE


class HostfullySettingsForm(FlaskForm):
    """Operator-editable importer settings; numbers are clamped when saved"""

    api_key = PasswordField(
        "API Key",
        validators=[Length(max=255, message="API key must be less than 255 characters.")],
        render_kw={"placeholder": "Leave blank to keep the saved key", "autocomplete": "off"},
    )
    agency_uid = StringField(
        "Agency UID",
        validators=[Length(max=64, message="Agency UID must be less than 64 characters.")],
    )
    base_url = StringField(
        "API Base URL",
        validators=[Length(max=255, message="Base URL must be less than 255 characters.")],
        render_kw={"placeholder": "https://api.hostfully.com/api/v3.2"},
    )
    max_photos = IntegerField("Max photos per property", validators=[Optional()])
    bulk_limit = IntegerField("Bulk import limit", validators=[Optional()])
    api_page_limit = IntegerField("API page size (1-100)", validators=[Optional()])
    allow_enrich_api = BooleanField("Fetch amenities from the API when the listing has none")
    amenities_cache_hours = IntegerField("Amenity cache (hours, 1-168)", validators=[Optional()])
    verbose_log = BooleanField("Verbose import log")
    amenity_channel_policy = SelectField(
        "Amenity channel filter",
        choices=[
            (CHANNEL_POLICY_ANY_TRUE, "Any channel flag enabled"),
            (CHANNEL_POLICY_ALL, "Keep every amenity"),
        ],
        default=CHANNEL_POLICY_ANY_TRUE,
    )
    submit = SubmitField("Save Settings")

    def validate_base_url(self, field):
        """Require an http(s) URL when a base URL is given"""
        if field.data:
            field.data = field.data.strip()
            if not field.data:
                return
            parsed = urlparse(field.data)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValidationError("Base URL must start with http:// or https://.")

    def to_settings_payload(self, current_api_key=""):
        """Raw values for ``ImporterSettings.coerce``; a blank API key keeps ``current_api_key``"""
        api_key = (self.api_key.data or "").strip() or current_api_key
        return {
            "api_key": api_key,
            "agency_uid": (self.agency_uid.data or "").strip(),
            "base_url": (self.base_url.data or "").strip(),
            "max_photos": self.max_photos.data,
            "bulk_limit": self.bulk_limit.data,
            "api_page_limit": self.api_page_limit.data,
            "allow_enrich_api": bool(self.allow_enrich_api.data),
            "amenities_cache_hours": self.amenities_cache_hours.data,
            "verbose_log": bool(self.verbose_log.data),
            "amenity_channel_policy": self.amenity_channel_policy.data,
        }
