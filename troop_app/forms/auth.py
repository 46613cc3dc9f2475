# troop_app/forms/auth.py
"""
Authentication forms
"""

from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import DataRequired, Length


class LoginForm(FlaskForm):
    """Login form accepting JSON credentials"""

    class Meta:
        csrf = False

    username = StringField(
        "Username",
        validators=[
            DataRequired(message="Username is required."),
            Length(min=3, max=80, message="Username must be between 3 and 80 characters."),
        ],
    )
    password = PasswordField("Password", validators=[DataRequired(message="Password is required.")])
    remember_me = BooleanField("Remember Me")
