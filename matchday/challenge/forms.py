"""Forms for the challenge blueprint."""

from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from matchday.core.constants import PENALTY_SUDDEN_DEATH
from matchday.core.forms import JSONForm, required_whole_number
from matchday.errors import ValidationError


class ChallengeForm(JSONForm):
    """Form for challenging a known opponent."""

    opponentId = StringField("Opponent", validators=[DataRequired(), Length(max=128)])
    opponentName = StringField("Opponent Name", validators=[Optional(), Length(max=80)])
    opponentPhotoURL = StringField("Opponent Photo", validators=[Optional()])


class ClaimForm(JSONForm):
    """Form for claiming a link challenge by its invite code."""

    code = StringField("Invite Code", validators=[DataRequired()])


class ScoreForm(JSONForm):
    """Form for reporting a finished round."""

    score = IntegerField(
        "Score", validators=[required_whole_number, NumberRange(min=0)]
    )
    roundRef = StringField("Round", validators=[DataRequired()])


class PenaltyForm(JSONForm):
    """Form for reporting a penalty shootout score."""

    penaltyScore = IntegerField(
        "Penalty Score", validators=[required_whole_number, NumberRange(min=0)]
    )
    penaltyRound = IntegerField(
        "Shootout Round",
        validators=[Optional(), required_whole_number, NumberRange(min=1)],
    )

    def penalty_round_for(self, tie_policy):
        """The shootout round being reported; sudden death needs it for retries."""
        if tie_policy == PENALTY_SUDDEN_DEATH and self.penaltyRound.data is None:
            raise ValidationError("penaltyRound: Required for sudden-death shootouts.")
        return self.penaltyRound.data
