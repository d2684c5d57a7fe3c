"""
Authentication forms
"""

from wtforms import StringField, PasswordField, BooleanField
from wtforms.validators import DataRequired, Email, Length

from app.forms import ApiForm


class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField('Password', validators=[DataRequired()])
    remember_me = BooleanField('Remember Me')
