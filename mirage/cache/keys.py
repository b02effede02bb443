class CacheKeys:
    """
    Centralized cache key builders.
    """

    # ─────────────────────────────────────────────
    # Auth
    # ─────────────────────────────────────────────

    @staticmethod
    def revoked_token(jti: str) -> str:
        return f"revoked_token:{jti}"
