"""Application layer - workflows and services built on the domain ports."""
