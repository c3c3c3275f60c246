from mdnotes.models.note import Note
from mdnotes.models.session import AuthSession

__all__ = ["Note", "AuthSession"]
