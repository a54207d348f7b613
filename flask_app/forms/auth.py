# flask_app/forms/auth.py
"""
Authentication forms
"""

from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField, SubmitField
from wtforms.validators import DataRequired, Length, Regexp


class LoginForm(FlaskForm):
    """Operator login form"""

    username = StringField(
        "Username",
        validators=[
            DataRequired(message="Username is required."),
            Length(min=3, max=64, message="Username must be between 3 and 64 characters."),
            Regexp(
                r"^[A-Za-z0-9_-]+$",
                message="Username can only contain letters, numbers, underscores, and hyphens.",
            ),
        ],
        render_kw={"placeholder": "Username", "autocomplete": "username"},
    )
    password = PasswordField(
        "Password",
        validators=[
            DataRequired(message="Password is required."),
            Length(min=6, message="Password must be at least 6 characters long."),
        ],
        render_kw={"placeholder": "Password", "autocomplete": "current-password"},
    )
    remember_me = BooleanField("Remember me")
    submit = SubmitField("Log In")
