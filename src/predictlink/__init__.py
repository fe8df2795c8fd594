"""PredictLink - hybrid oracle core: evidence attestation, resolution lifecycle, dispute monitor."""

__version__ = "0.1.0"
