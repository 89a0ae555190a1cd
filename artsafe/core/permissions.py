from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    ARTIST = "artist"
    GALLERY = "gallery"
    BUYER = "buyer"


class Permission(str, Enum):
    MAKE_OFFERS = "make:offers"
    SELL_ARTWORKS = "sell:artworks"
    EVALUATE_PRICES = "evaluate:prices"
    EVALUATE_ALL_PRICES = "evaluate:all_prices"
    PRICING_ADVISOR = "pricing:advisor"
    MANAGE_GALLERY = "manage:gallery"
    MANAGE_ALERTS = "manage:alerts"
    RESOLVE_DISPUTES = "resolve:disputes"
    VIEW_FOUNDER_ECONOMICS = "view:founder_economics"
    MANAGE_AI_SPEND = "manage:ai_spend"


ROLE_PERMISSIONS = {
    Role.ADMIN: [
        Permission.MAKE_OFFERS,
        Permission.SELL_ARTWORKS,
        Permission.EVALUATE_PRICES,
        Permission.EVALUATE_ALL_PRICES,
        Permission.MANAGE_ALERTS,
        Permission.RESOLVE_DISPUTES,
        Permission.VIEW_FOUNDER_ECONOMICS,
        Permission.MANAGE_AI_SPEND,
    ],
    Role.ARTIST: [
        Permission.MAKE_OFFERS,
        Permission.SELL_ARTWORKS,
        Permission.EVALUATE_PRICES,
        Permission.PRICING_ADVISOR,
    ],
    Role.GALLERY: [
        Permission.MAKE_OFFERS,
        Permission.SELL_ARTWORKS,
        Permission.EVALUATE_PRICES,
        Permission.MANAGE_GALLERY,
    ],
    Role.BUYER: [
        Permission.MAKE_OFFERS,
    ],
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, [])
