"""Failure types raised inside the signal pipeline."""


class EvidenceMissingError(ValueError):
    """Asset evidence lacks the price or indicators needed to build a signal."""


class ProposalParseError(ValueError):
    """External opinion response could not be parsed into a proposal."""


class CycleFailedError(RuntimeError):
    """Every asset in a cycle failed for the same structural reason."""
