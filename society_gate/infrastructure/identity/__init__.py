from .provider import HeaderIdentityProvider, IdentityProvider

__all__ = ["HeaderIdentityProvider", "IdentityProvider"]
