"""
Authentication for Pawlog.

Routes take an AnalysisContext from get_analysis_context; the provider
behind it is chosen here.

Usage:
    from app.services.auth.dependencies import get_analysis_context

    @router.post("/ai-analysis")
    async def analyze(context: AnalysisContext = Depends(get_analysis_context)):
        ...
"""
from app.services.auth.base import AuthProvider
from app.services.auth.local_provider import local_auth_provider


def get_auth_provider() -> AuthProvider:
    """The configured provider. Only local password sessions exist today."""
    return local_auth_provider


__all__ = [
    "AuthProvider",
    "get_auth_provider",
    "local_auth_provider",
]
