"""
Validation errors raised by the tournament engine.

Every error carries a stable ``code`` so the HTTP layer can report it
without parsing messages.
"""


class TournamentError(Exception):
    """Base class for all local validation failures."""

    code = 'tournament_error'
    default_message = 'Invalid tournament operation.'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidSize(TournamentError):
    code = 'invalid_size'
    default_message = 'Bracket size must be a power of two (4, 8, 16, 32...).'


class TeamCountMismatch(TournamentError):
    code = 'team_count_mismatch'
    default_message = 'Number of seeded teams must equal the bracket size.'


class TeamsNotAssigned(TournamentError):
    code = 'teams_not_assigned'
    default_message = 'Both teams must be set before entering a result.'


class DrawNotAllowed(TournamentError):
    code = 'draw_not_allowed'
    default_message = 'A knockout match cannot end in a draw. Please pick a winner.'


class TeamAlreadyGrouped(TournamentError):
    code = 'team_already_grouped'
    default_message = 'Team already belongs to another group.'


class InvalidMatch(TournamentError):
    code = 'invalid_match'
    default_message = 'A match needs two different teams.'


class InvalidScore(TournamentError):
    code = 'invalid_score'
    default_message = 'Scores must be non-negative integers.'


class InvalidTransition(TournamentError):
    code = 'invalid_transition'
    default_message = 'Match status cannot move backward.'


class TeamNotInGroup(TournamentError):
    code = 'team_not_in_group'
    default_message = 'Team is not a member of the group feeding this side.'


class NotFound(TournamentError):
    """Referenced entity does not exist."""

    code = 'not_found'
    default_message = 'Not found.'


class MatchNotFound(NotFound):
    code = 'match_not_found'
    default_message = 'Match not found.'


class TeamNotFound(NotFound):
    code = 'team_not_found'
    default_message = 'Team not found.'


class GroupNotFound(NotFound):
    code = 'group_not_found'
    default_message = 'Group not found.'


class TournamentNotFound(NotFound):
    code = 'tournament_not_found'
    default_message = 'Tournament not found.'


class ValidationError(TournamentError):
    """Malformed input such as a blank name or an unknown status."""

    code = 'validation_error'
    default_message = 'Invalid input.'
