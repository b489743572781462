"""SQLAlchemy ORM models.

Models represent database tables:
- commerces: Stores with location, categories and approval flag
- offers: Time-boxed offers owned by a commerce
- commerce_follows: User -> commerce subscription edges
"""

from nearby_offers.models.commerce import Commerce
from nearby_offers.models.follow import CommerceFollow
from nearby_offers.models.offer import Offer

__all__ = ["Commerce", "CommerceFollow", "Offer"]
