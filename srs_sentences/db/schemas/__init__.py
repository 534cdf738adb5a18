from .app_state import AppStateRecord

__all__ = ["AppStateRecord"]
