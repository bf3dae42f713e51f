# filename : main.py
# created  : 03/14/2026


import logging

from citizencard.app.session import session

lg = logging.getLogger(__name__)


def main(
    file: str | None = None,
    **options,
) -> bool:
    lg.debug("citizencard v1")
    return session(file=file, **options)
