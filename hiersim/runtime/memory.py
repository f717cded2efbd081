from __future__ import annotations


class MainMemory:
    """Fixed-latency backing store at the bottom of the hierarchy."""

    def __init__(self, latency: int):
        if latency <= 0:
            raise ValueError("Memory latency must be a positive integer.")
        self.latency = latency
        self.references = 0

    def access(self, address: int) -> int:
        self.references += 1
        return self.latency
