"""Telephony audio helpers.

Twilio Media Streams carry 8 kHz G.711 mu-law audio; this package holds the
codec pieces needed to speak that format towards the caller.
"""
