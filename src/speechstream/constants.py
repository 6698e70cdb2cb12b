"""Core constants for the speechstream client.

The transcription service expects 48kHz mono PCM16 audio, base64 encoded
inside JSON text frames.
"""

# Audio format requirements
SAMPLE_RATE: int = 48000  # Hz - matches the config message sent upstream
CHANNELS: int = 1
BYTES_PER_SAMPLE: int = 2  # 16-bit PCM
SAMPLE_DTYPE: str = "int16"

# Capture block: 1024 samples at 48kHz (~21ms per callback)
BLOCK_SIZE: int = 1024

# Level meter
LEVEL_GAIN: float = 40.0
LEVEL_FLOOR: float = 0.2
LEVEL_CEILING: float = 2.0

# Service protocol
DEFAULT_WS_URL: str = "wss://api.gladia.io/audio/text/audio-transcription"
API_KEY_HEADER: str = "x-gladia-key"
ENCODING: str = "wav/pcm"
FRAMES_FORMAT: str = "base64"
LANGUAGE_BEHAVIOUR: str = "manual"
MODEL_TYPE: str = "accurate"
ENDPOINTING_MS: int = 200

# Network timeouts
CONNECT_TIMEOUT_S: float = 10.0
WRITE_TIMEOUT_S: float = 5.0
CLOSE_TIMEOUT_S: float = 2.0
PING_INTERVAL_S: float = 20.0
PING_TIMEOUT_S: float = 30.0

# Frames waiting for the sender task (~2s of audio)
FRAME_QUEUE_SIZE: int = 100

# Vocabulary hints biasing the recognizer toward common Punjabi words
DEFAULT_VOCABULARY: tuple[str, ...] = (
    "ਮੈਂ", "ਤੁਹਾਡਾ", "ਇਹ", "ਕੀ", "ਹੈ", "ਪੰਜਾਬੀ", "ਸੱਚ", "ਗੱਲ", "ਕਰਨਾ", "ਕਮਹ",
    "ਤੁਸੀਂ", "ਕਰਦੇ", "ਕਰਦੀ", "ਕਰਦਾ", "ਕੀਹ", "ਪਤਾ", "ਇੱਕ", "ਅਜਿਹਾ", "ਕਦੇ",
)
