from werkzeug.datastructures import MultiDict

from flask_app.forms import HostfullySettingsForm, LoginForm


def _settings_form(app, **data):
    with app.test_request_context(method="POST", data=MultiDict(data)):
        form = HostfullySettingsForm()
        valid = form.validate()
        return form, valid


class TestLoginForm:
    def test_valid_credentials(self, app):
        with app.test_request_context(method="POST", data={"username": "admin_1", "password": "secret1"}):
            assert LoginForm().validate()

    def test_username_rules(self, app):
        with app.test_request_context(method="POST", data={"username": "a!", "password": "secret1"}):
            form = LoginForm()
            assert not form.validate()
            assert "Username must be between 3 and 64 characters." in form.username.errors
            assert "Username can only contain letters, numbers, underscores, and hyphens." in form.username.errors

    def test_short_password(self, app):
        with app.test_request_context(method="POST", data={"username": "admin", "password": "123"}):
            form = LoginForm()
            assert not form.validate()
            assert form.password.errors == ["Password must be at least 6 characters long."]


class TestHostfullySettingsForm:
    def test_blank_form_is_valid(self, app):
        _form, valid = _settings_form(app)
        assert valid

    def test_base_url_must_be_http(self, app):
        form, valid = _settings_form(app, base_url="api.hostfully.com")
        assert not valid
        assert form.base_url.errors == ["Base URL must start with http:// or https://."]

    def test_base_url_whitespace_is_trimmed(self, app):
        form, valid = _settings_form(app, base_url="  https://api.hostfully.com/api/v3.2  ")
        assert valid
        assert form.base_url.data == "https://api.hostfully.com/api/v3.2"

    def test_non_numeric_limit_is_rejected(self, app):
        _form, valid = _settings_form(app, bulk_limit="lots")
        assert not valid

    def test_unknown_channel_policy_is_rejected(self, app):
        form, valid = _settings_form(app, amenity_channel_policy="none")
        assert not valid
        assert form.amenity_channel_policy.errors

    def test_payload_keeps_current_key_when_blank(self, app):
        form, _valid = _settings_form(app, api_key="   ", agency_uid=" agency-9 ", max_photos="3")
        payload = form.to_settings_payload("saved-key")

        assert payload["api_key"] == "saved-key"
        assert payload["agency_uid"] == "agency-9"
        assert payload["max_photos"] == 3
        assert payload["bulk_limit"] is None
        assert payload["allow_enrich_api"] is False

    def test_payload_uses_new_key(self, app):
        form, _valid = _settings_form(app, api_key=" new-key ", allow_enrich_api="y", verbose_log="y")
        payload = form.to_settings_payload("saved-key")

        assert payload["api_key"] == "new-key"
        assert payload["allow_enrich_api"] is True
        assert payload["verbose_log"] is True
