from .service import AuthService, check_password, hash_password

__all__ = ["AuthService", "check_password", "hash_password"]
