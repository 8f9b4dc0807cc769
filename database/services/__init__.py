"""
Database Services

Business logic layer on top of the repositories.
"""

from database.services.ballot_intake import BallotIntakeService, IntakeResult, IntakeState, VotingWindow

__all__ = ['BallotIntakeService', 'IntakeResult', 'IntakeState', 'VotingWindow']
