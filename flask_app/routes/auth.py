# flask_app/routes/auth.py

from flask import current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import SQLAlchemyError

from flask_app.forms import LoginForm
from flask_app.models import AdminLog, User, db


def register_auth_routes(app):
    """Register login/logout routes"""

    @app.route("/login", methods=["GET", "POST"])
    def login():
        if current_user.is_authenticated:
            return redirect(url_for("index"))

        form = LoginForm()
        if form.validate_on_submit():
            user = User.query.filter_by(username=form.username.data).first()
            if user is None or not user.is_active or not user.check_password(form.password.data):
                current_app.logger.warning(f"Failed login attempt for username {form.username.data}")
                flash("Invalid username or password.", "danger")
                return render_template("auth/login.html", form=form), 401

            login_user(user, remember=form.remember_me.data)
            try:
                user.record_login()
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.error(f"Could not record login for {user.username}: {str(e)}")

            AdminLog.log_action(
                admin_user_id=user.id,
                action="LOGIN",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            current_app.logger.info(f"User {user.username} logged in")
            next_page = request.args.get("next")
            if not next_page or not next_page.startswith("/"):
                next_page = url_for("index")
            return redirect(next_page)

        return render_template("auth/login.html", form=form)

    @app.route("/logout")
    @login_required
    def logout():
        current_app.logger.info(f"User {current_user.username} logged out")
        logout_user()
        flash("You have been logged out.", "info")
        return redirect(url_for("login"))
