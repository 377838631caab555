"""
Event participation package for the roster system.
"""

from .participation_counter import ParticipationCounter, StatusPolicy, is_past_event, is_well_formed_item

__all__ = ['ParticipationCounter', 'StatusPolicy', 'is_past_event', 'is_well_formed_item']
