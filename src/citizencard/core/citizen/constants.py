"""Instruction codes, status words and defaults shared with the card applet."""

from __future__ import annotations

import enum

CLA = 0x00

# Applet AID of the citizen card program
APPLET_AID = bytes.fromhex("01020304050607080900")

PIN_LENGTH = 4

# Largest photo the card stores
PHOTO_BUDGET = 15360
PHOTO_CHUNK_SIZE = 200
PHOTO_MORE_CHUNKS = 0x80

# Watchdog bound for photo transfers, in seconds
TRANSFER_TIMEOUT = 30.0

CHALLENGE_LENGTH = 16


class INS(enum.IntEnum):
    INITIALIZE = 0x10
    VERIFY_PIN = 0x20
    CHANGE_PIN = 0x21
    GET_CARD_ID = 0x30
    GET_PUBLIC_KEY = 0x31
    SIGN_CHALLENGE = 0x32
    GET_BALANCE = 0x40
    TOP_UP = 0x41
    PAYMENT = 0x42
    UPLOAD_PHOTO = 0x50
    DOWNLOAD_PHOTO = 0x51
    SELECT = 0xA4


SELECT_BY_NAME = 0x04


class SW(enum.IntEnum):
    SUCCESS = 0x9000
    PIN_MISMATCH = 0x6300
    WRONG_LENGTH = 0x6700
    SECURITY_STATUS_NOT_SATISFIED = 0x6982
    AUTH_BLOCKED = 0x6983
    CONDITIONS_NOT_SATISFIED = 0x6985
    FILE_NOT_FOUND = 0x6A82
    FILE_FULL = 0x6A84
    INS_NOT_SUPPORTED = 0x6D00
