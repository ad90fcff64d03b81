from .user_service import authenticate, ensure_default_staff

# Import the other service modules directly where needed; reportlab and
# openpyxl are only loaded by the pages that use them.

__all__ = ["authenticate", "ensure_default_staff"]
