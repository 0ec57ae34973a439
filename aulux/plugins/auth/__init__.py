from .google_oauth import GoogleIdentity, GoogleOAuth

__all__ = ["GoogleIdentity", "GoogleOAuth"]
