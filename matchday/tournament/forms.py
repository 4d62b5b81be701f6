"""Forms for the tournament blueprint."""

from wtforms import BooleanField, FloatField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from matchday.core.constants import KNOCKOUT, LEAGUE
from matchday.core.forms import JSONForm, required_whole_number
from matchday.tournament.services import MAX_NAME_LENGTH


class TournamentForm(JSONForm):
    """Form for creating a tournament."""

    name = StringField(
        "Tournament Name", validators=[DataRequired(), Length(max=MAX_NAME_LENGTH)]
    )
    description = StringField("Description", validators=[Optional(), Length(max=500)])
    type = SelectField(
        "Format",
        choices=[(KNOCKOUT, "Knockout"), (LEAGUE, "League")],
        validators=[DataRequired()],
    )
    maxPlayers = IntegerField(
        "Max Players", validators=[required_whole_number, NumberRange(min=1)]
    )
    isPublic = BooleanField("Public", default=True)
    matchDeadlineHours = FloatField(
        "Match Deadline (hours)", validators=[Optional(), NumberRange(min=0.1)]
    )


class JoinByCodeForm(JSONForm):
    """Form for joining a private tournament by its invite code."""

    code = StringField("Invite Code", validators=[DataRequired()])
