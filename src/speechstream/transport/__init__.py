"""Socket transports for the transcription protocol."""

from speechstream.transport.protocol import Connector, Transport

__all__ = ["Connector", "Transport"]
