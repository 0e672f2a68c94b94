"""Offer execution backends."""

from lendbot.execution.paper_submitter import PaperSubmitter

__all__ = ["PaperSubmitter"]
