from citizencard.app.commands import card, photo

COMMAND_MODULES = [card, photo]

__all__ = ["COMMAND_MODULES"]
