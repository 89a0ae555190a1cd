from artsafe.models.profile import Profile
from artsafe.models.artwork import Artwork, Gallery, GalleryArtist
from artsafe.models.offer import Offer, EscrowApproval, OfferAuditLog, OfferDispute
from artsafe.models.alert import AdminAlert
from artsafe.models.founder import FounderSettings, FounderProject, AISpendLog, ProjectExpense
from artsafe.models.order import Order
from artsafe.models.pricing import MarketSale, PriceEvaluation
from artsafe.models.notification import EmailNotification

__all__ = [
    "Profile",
    "Artwork",
    "Gallery",
    "GalleryArtist",
    "Offer",
    "EscrowApproval",
    "OfferAuditLog",
    "OfferDispute",
    "AdminAlert",
    "FounderSettings",
    "FounderProject",
    "AISpendLog",
    "ProjectExpense",
    "Order",
    "MarketSale",
    "PriceEvaluation",
    "EmailNotification",
]
