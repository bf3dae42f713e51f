# filename : scripts.py
# created  : 03/14/2026


import logging

import click

from citizencard.core.citizen.constants import APPLET_AID, PHOTO_BUDGET, TRANSFER_TIMEOUT
from citizencard.core.smartcard.logging import PROTOCOL, TRACE

lg = logging.getLogger(__name__)


def _parse_aid(ctx, param, value):
    if value is None:
        return APPLET_AID
    try:
        aid = bytes.fromhex(value)
    except ValueError:
        raise click.BadParameter(f"expected hex, got '{value}'")
    if not 5 <= len(aid) <= 16:
        raise click.BadParameter("AID must be 5 to 16 bytes")
    return aid


@click.command()
@click.option("-v", "--verbose", is_flag=True, help="TRACE level (show raw APDUs).")
@click.option(
    "-f",
    "--file",
    "file",
    type=click.Path(exists=True),
    default=None,
    help="Run commands from a script file instead of the REPL.",
)
@click.option(
    "--aid",
    default=None,
    callback=_parse_aid,
    help=f"Applet AID in hex (default {APPLET_AID.hex().upper()}).",
)
@click.option(
    "--budget",
    type=click.IntRange(min=1),
    default=PHOTO_BUDGET,
    show_default=True,
    help="Photo size budget in bytes.",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=TRANSFER_TIMEOUT,
    show_default=True,
    help="Photo transfer timeout in seconds.",
)
@click.option("--reader", default=None, help="Use the first reader whose name contains this text.")
@click.option(
    "--protocol",
    type=click.Choice(["T0", "T1"]),
    default=None,
    help="Force the card transmission protocol.",
)
def citizencard(verbose, file, aid, budget, timeout, reader, protocol):

    logging.basicConfig(
        level=TRACE if verbose else PROTOCOL,
        format="%(levelname)-8s %(name)s: %(message)s",
    )

    from citizencard.app.main import main
    ok = main(file=file, aid=aid, budget=budget, timeout=timeout, reader=reader, protocol=protocol)
    if not ok:
        raise SystemExit(1)
