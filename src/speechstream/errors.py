"""Exception taxonomy for capture, transport and protocol failures."""


class SpeechStreamError(Exception):
    """Base class for all speechstream errors."""


class ConfigurationError(SpeechStreamError):
    """Required settings are missing or invalid."""


class AudioError(SpeechStreamError):
    """The microphone stream could not be opened or started."""


class DeviceUnavailableError(AudioError):
    """No usable input device, or the device failed to activate."""


class UnsupportedFormatError(AudioError):
    """The device rejected the requested PCM format."""


class PermissionDeniedError(AudioError):
    """The OS refused microphone access."""


class TransportError(SpeechStreamError):
    """Connect, write or close failed, timed out, or the peer went away."""


class ParseError(SpeechStreamError):
    """An inbound message could not be decoded."""


class StartError(SpeechStreamError):
    """A listening session could not be started.

    The underlying AudioError or TransportError is chained as ``__cause__``.
    """
