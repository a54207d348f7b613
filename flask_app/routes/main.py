# flask_app/routes/main.py

from flask import redirect, render_template, url_for
from flask_login import current_user, login_required

from flask_app.utils.importer import is_importer_enabled


def register_main_routes(app):
    """Register the landing route"""

    @app.route("/")
    @login_required
    def index():
        if is_importer_enabled() and current_user.is_super_admin:
            return redirect(url_for("admin_hostfully.hostfully_import_page"))
        return render_template("index.html")
