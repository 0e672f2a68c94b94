"""Funding-market lending bot: allocates available funds across lending offers."""

__version__ = "2.0.0"
