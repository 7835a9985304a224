"""
mailfiler

Analyzes the folders of an IMAP mailbox, classifies them as list or
whitelist folders, infers related sender domains, and files incoming
mail into the folders it found.
"""

__version__ = "1.0.0"
__app_name__ = "mailfiler"
