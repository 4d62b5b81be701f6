"""Base form for JSON request bodies."""

from flask_wtf import FlaskForm  # type: ignore
from wtforms.validators import StopValidation
from wtforms.validators import ValidationError as FieldValidationError

from matchday.errors import ValidationError


class JSONForm(FlaskForm):
    """A FlaskForm fed from the request's JSON body.

    Flask-WTF reads ``request.get_json()`` when the request is JSON. Session
    cookies are covered by CSRFProtect on the app, so forms skip their own
    token field.
    """

    class Meta:
        csrf = False

    def validate_or_raise(self):
        """Validate the form, raising the first error as a ValidationError."""
        if self.validate():
            return
        for field_name, errors in self.errors.items():
            if errors:
                raise ValidationError(f"{field_name}: {errors[0]}")
        raise ValidationError()


def required_whole_number(form, field):
    """Require a JSON integer; IntegerField alone would coerce floats and booleans.

    InputRequired treats a submitted 0 as missing, so presence is checked here.
    """
    raw = field.raw_data[0] if field.raw_data else None
    if raw is None or raw == "":
        raise StopValidation("This field is required.")
    if isinstance(raw, bool) or (not isinstance(raw, int) and not str(raw).isdigit()):
        raise FieldValidationError("Must be a whole number.")
