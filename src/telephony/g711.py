from __future__ import annotations

import numpy as np

# G.711 mu-law constants for 16-bit linear input.
ULAW_BIAS = 0x84
ULAW_CLIP = 32635

TELEPHONY_SAMPLE_RATE = 8000


def ulaw_encode_sample(sample: int) -> int:
    """Encode one signed 16-bit linear sample to a G.711 mu-law byte."""

    sample = max(-32768, min(32767, int(sample)))
    sign = 0x80 if sample < 0 else 0x00
    magnitude = min(abs(sample), ULAW_CLIP) + ULAW_BIAS

    exponent = 0
    for exp in range(7, 0, -1):
        if magnitude >= (1 << (exp + 7)):
            exponent = exp
            break

    mantissa = (magnitude >> (exponent + 3)) & 0x0F
    return ~(sign | (exponent << 4) | mantissa) & 0xFF


def ulaw_encode(pcm16: np.ndarray) -> bytes:
    """Encode PCM16 int16 array to G.711 mu-law bytes.

    This is a vectorized mu-law encoder suitable for realtime packetization.
    """

    if pcm16.size == 0:
        return b""

    x = np.clip(pcm16.astype(np.int32), -32768, 32767)
    sign = (x < 0).astype(np.int32)
    x = np.minimum(np.abs(x), ULAW_CLIP) + ULAW_BIAS

    # Find exponent and mantissa.
    exponent = np.zeros_like(x)
    for exp in range(1, 8):
        exponent = np.where(x >= (1 << (exp + 7)), exp, exponent)

    mantissa = (x >> (exponent + 3)) & 0x0F

    ulaw = np.bitwise_not((sign << 7) | (exponent << 4) | mantissa) & 0xFF
    return ulaw.astype(np.uint8).tobytes()


def ulaw_decode(ulaw_bytes: bytes) -> np.ndarray:
    """Decode G.711 mu-law bytes to PCM16 int16 array."""

    data = np.frombuffer(ulaw_bytes, dtype=np.uint8)
    mu = np.bitwise_not(data).astype(np.int32)

    sign = mu & 0x80
    exponent = (mu & 0x70) >> 4
    mantissa = mu & 0x0F

    magnitude = ((mantissa << 3) + ULAW_BIAS) << exponent
    pcm = np.where(sign != 0, ULAW_BIAS - magnitude, magnitude - ULAW_BIAS)
    return pcm.astype(np.int16)


def generate_tone(frequency_hz: float, duration_ms: int, *, amplitude: float = 0.3) -> bytes:
    """Synthesize a mu-law encoded sine tone at 8 kHz.

    Used for connectivity checks towards the caller only.
    """

    num_samples = TELEPHONY_SAMPLE_RATE * int(duration_ms) // 1000
    if num_samples <= 0:
        return b""

    t = np.arange(num_samples, dtype=np.float64) / TELEPHONY_SAMPLE_RATE
    wave = np.sin(2 * np.pi * float(frequency_hz) * t) * (32767.0 * amplitude)
    pcm = np.round(wave).astype(np.int16)
    return ulaw_encode(pcm)


def downsample_and_encode(
    pcm16: np.ndarray,
    src_rate: int,
    dst_rate: int = TELEPHONY_SAMPLE_RATE,
) -> bytes:
    """Decimate PCM16 to the telephony rate and mu-law encode it.

    Keeps every Nth sample without anti-alias filtering. A trailing partial
    group of fewer than N samples is dropped, so the output holds
    ``len(pcm16) // N`` bytes.
    """

    if src_rate % dst_rate != 0:
        raise ValueError(f"Cannot decimate {src_rate} Hz to {dst_rate} Hz by an integer factor")

    factor = src_rate // dst_rate
    usable = pcm16.size - (pcm16.size % factor)
    return ulaw_encode(pcm16[:usable:factor])


def pcm16_bytes_to_ulaw(raw: bytes, src_rate: int, dst_rate: int = TELEPHONY_SAMPLE_RATE) -> bytes:
    """Convert little-endian PCM16 bytes (as streamed by the AI peer) to mu-law."""

    if len(raw) % 2:
        raw = raw[:-1]
    pcm = np.frombuffer(raw, dtype="<i2")
    return downsample_and_encode(pcm, src_rate, dst_rate)
