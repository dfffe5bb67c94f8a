from .base_repository import BaseRepository
from .bidding_repository import BiddingRepository

__all__ = ['BaseRepository', 'BiddingRepository']
